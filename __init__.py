# -*- coding: utf-8 -*-
from . import models
from . import controllers
from . import utils
from .hooks import post_init_hook
