# -*- coding: utf-8 -*-
from . import hr_employee
from . import leave_policy
from . import holiday_calendar
from . import leave_balance
from . import sla_policy
from . import workflow_notifier
from . import leave_request
from . import leave_evidence
from . import leave_approval
from . import helpdesk_ticket
from . import helpdesk_approval
