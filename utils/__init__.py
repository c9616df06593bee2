# -*- coding: utf-8 -*-
from . import workflow_dates
