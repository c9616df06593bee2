# -*- coding: utf-8 -*-
from . import test_workflow_dates
from . import test_leave_policy
from . import test_leave_request
from . import test_leave_evidence
from . import test_leave_sla
from . import test_leave_balance
from . import test_helpdesk_ticket
from . import test_helpdesk_approvals
from . import test_notifier
from . import test_controllers
