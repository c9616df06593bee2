# -*- coding: utf-8 -*-
from . import leave_controller
from . import helpdesk_controller
