# -*- coding: utf-8 -*-
import logging
from datetime import timedelta

from odoo import api, fields, models
from odoo.exceptions import AccessError, UserError, ValidationError

from ..utils import workflow_dates
from .sla_policy import APPROVAL_STAGES

_logger = logging.getLogger(__name__)

APPROVAL_LEVELS = {
    'reliever_pending': 1,
    'supervisor_pending': 2,
    'hr_pending': 3,
}
STAGE_KEYS = tuple(stage for stage, _label in APPROVAL_STAGES)
PENDING_STATES = ('pending_evidence',) + STAGE_KEYS
# States that hold the employee's (or reliever's) calendar
BLOCKING_STATES = PENDING_STATES + ('approved',)
DRAFT_ONLY_FIELDS = {'employee_id', 'leave_type_id', 'date_start', 'days_count', 'reliever_id', 'reason'}
# Owned by the approval actions, never written by users directly
WORKFLOW_FIELDS = {
    'name', 'state', 'stage_entered_at', 'sla_reminder_sent', 'sla_escalated',
    'supervisor_id', 'date_end', 'date_resume', 'required_document_ids',
    'eligibility_reason', 'rejected_reason', 'approved_by_id', 'approved_date',
    'request_kind', 'original_request_id',
}
WORKFLOW_CREATE_DEFAULTS = {'name': 'New', 'state': 'draft', 'request_kind': 'standard'}

HR_GROUP = 'erp_approvals.group_erp_hr_officer'


class ErpLeaveRequest(models.Model):
    _name = 'erp.leave.request'
    _description = 'Leave Request'
    _inherit = ['mail.thread', 'mail.activity.mixin']
    _order = 'create_date desc'
    _rec_name = 'name'

    name = fields.Char(string='Reference', readonly=True, copy=False, default='New')
    employee_id = fields.Many2one(
        'hr.employee',
        string='Employee',
        required=True,
        tracking=True,
        index=True,
        default=lambda self: self.env.user.employee_id
    )
    user_id = fields.Many2one(related='employee_id.user_id', store=True, string='Requester')
    department_id = fields.Many2one(related='employee_id.department_id', store=True)
    company_id = fields.Many2one(
        'res.company',
        default=lambda self: self.env.company
    )
    leave_type_id = fields.Many2one('hr.leave.type', string='Leave Type', required=True, tracking=True)
    date_start = fields.Date(string='Start Date', required=True, tracking=True)
    days_count = fields.Integer(string='Days', required=True, default=1, tracking=True)
    date_end = fields.Date(string='End Date', readonly=True, tracking=True)
    date_resume = fields.Date(string='Resumption Date', readonly=True)
    reason = fields.Text(string='Reason')
    handover_note = fields.Text(string='Handover Note')

    reliever_id = fields.Many2one('hr.employee', string='Reliever', tracking=True)
    supervisor_id = fields.Many2one('hr.employee', string='Supervisor', tracking=True)

    state = fields.Selection([
        ('draft', 'Draft'),
        ('pending_evidence', 'Pending Evidence'),
        ('reliever_pending', 'Pending Reliever'),
        ('supervisor_pending', 'Pending Supervisor'),
        ('hr_pending', 'Pending HR'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('cancelled', 'Cancelled'),
    ], string='Status', default='draft', required=True, tracking=True, copy=False, index=True)
    stage_entered_at = fields.Datetime(string='Stage Entered', readonly=True, copy=False)

    request_kind = fields.Selection([
        ('standard', 'Standard'),
        ('extension', 'Extension'),
    ], string='Kind', default='standard', required=True, readonly=True)
    original_request_id = fields.Many2one('erp.leave.request', string='Extends', readonly=True)
    extension_ids = fields.One2many('erp.leave.request', 'original_request_id', string='Extensions')

    required_document_ids = fields.Many2many(
        'erp.leave.document.type',
        'erp_leave_request_document_rel',
        'request_id', 'document_type_id',
        string='Required Documents',
        readonly=True,
        copy=False
    )
    missing_document_ids = fields.Many2many(
        'erp.leave.document.type',
        string='Missing Documents',
        compute='_compute_evidence_status'
    )
    evidence_complete = fields.Boolean(compute='_compute_evidence_status')
    evidence_ids = fields.One2many('erp.leave.evidence', 'request_id', string='Evidence')
    approval_ids = fields.One2many('erp.leave.approval', 'request_id', string='Approval History')

    eligibility_reason = fields.Char(string='Eligibility Note', readonly=True, copy=False)
    rejected_reason = fields.Text(string='Rejection / Cancellation Reason', readonly=True, copy=False)
    hr_comment = fields.Text(string='HR Comment', copy=False)
    approved_by_id = fields.Many2one('res.users', string='Approved By', readonly=True, copy=False)
    approved_date = fields.Datetime(string='Approved On', readonly=True, copy=False)

    sla_due_at = fields.Datetime(string='SLA Due', compute='_compute_sla')
    sla_status = fields.Selection([
        ('on_track', 'On Track'),
        ('due_soon', 'Due Soon'),
        ('overdue', 'Overdue'),
    ], string='SLA', compute='_compute_sla')
    sla_reminder_sent = fields.Boolean(readonly=True, copy=False)
    sla_escalated = fields.Boolean(readonly=True, copy=False)

    @api.depends('required_document_ids', 'evidence_ids.state', 'evidence_ids.document_type_id')
    def _compute_evidence_status(self):
        for request in self:
            verified = request.evidence_ids.filtered(lambda e: e.state == 'verified').mapped('document_type_id')
            missing = request.required_document_ids - verified
            request.missing_document_ids = missing
            request.evidence_complete = not missing

    @api.depends('state', 'stage_entered_at')
    def _compute_sla(self):
        now = fields.Datetime.now()
        SlaPolicy = self.env['erp.approval.sla.policy']
        for request in self:
            if request.state not in STAGE_KEYS or not request.stage_entered_at:
                request.sla_due_at = False
                request.sla_status = False
                continue
            due_hours, reminder_hours, _group = SlaPolicy._get_for_stage(request.state)
            due_at, status, _remaining = workflow_dates.sla_due_status(
                request.stage_entered_at, due_hours, reminder_hours, now
            )
            request.sla_due_at = due_at
            request.sla_status = status

    @api.constrains('days_count')
    def _check_days_count(self):
        for request in self:
            if request.days_count <= 0:
                raise ValidationError('Number of days must be greater than zero.')

    @api.constrains('employee_id', 'reliever_id')
    def _check_reliever(self):
        for request in self:
            if request.reliever_id and request.reliever_id == request.employee_id:
                raise ValidationError('You cannot select yourself as reliever.')

    @api.model_create_multi
    def create(self, vals_list):
        for vals in vals_list:
            if not self._is_workflow_env():
                tampered = [
                    name for name in WORKFLOW_FIELDS.intersection(vals)
                    if vals[name] and vals[name] != WORKFLOW_CREATE_DEFAULTS.get(name)
                ]
                if tampered:
                    raise AccessError(
                        'These fields are set by the approval workflow: %s.' % ', '.join(sorted(tampered)))
            if vals.get('name', 'New') == 'New':
                vals['name'] = self.env['ir.sequence'].next_by_code('erp.leave.request') or 'New'
        return super().create(vals_list)

    def write(self, vals):
        if not self._is_workflow_env():
            tampered = WORKFLOW_FIELDS.intersection(vals)
            if tampered:
                raise AccessError(
                    'These fields are set by the approval workflow: %s.' % ', '.join(sorted(tampered)))
        if DRAFT_ONLY_FIELDS & set(vals) and not self.env.context.get('erp_leave_workflow'):
            if any(request.state != 'draft' for request in self):
                raise UserError('Only draft leave requests can be edited.')
        return super().write(vals)

    def unlink(self):
        if any(request.state != 'draft' for request in self):
            raise UserError('Only draft leave requests can be deleted.')
        return super().unlink()

    # ---- Helpers ----

    def _is_workflow_env(self):
        # sudo is only reached from server code, after the action's own checks
        return self.env.su or self.env.context.get('erp_leave_workflow')

    def _workflow_write(self, vals):
        return self.sudo().with_context(erp_leave_workflow=True).write(vals)

    def _notifier(self):
        return self.env['erp.workflow.notifier']

    def _is_hr_user(self):
        return self.env.su or self.env.user.has_group(HR_GROUP)

    def _is_requester(self):
        self.ensure_one()
        return self.env.su or (self.user_id and self.user_id == self.env.user)

    def _hr_users(self):
        return self._notifier()._users_in_groups(self.env.ref(HR_GROUP))

    def _first_stage(self):
        self.ensure_one()
        return 'reliever_pending' if self.reliever_id else 'supervisor_pending'

    @staticmethod
    def _next_stage(stage):
        if stage == 'reliever_pending':
            return 'supervisor_pending'
        if stage == 'supervisor_pending':
            return 'hr_pending'
        return 'approved'

    def _get_stage_users(self, stage=None):
        """Users expected to act on ``stage`` (defaults to the current state)."""
        self.ensure_one()
        request = self.sudo()
        stage = stage or request.state
        if stage == 'reliever_pending':
            return request.reliever_id.user_id
        if stage == 'supervisor_pending':
            return request.supervisor_id.user_id
        if stage == 'hr_pending':
            return self._hr_users()
        return self.env['res.users']

    def _can_decide_stage(self):
        self.ensure_one()
        if self.env.su:
            return True
        user = self.env.user
        if self.state == 'hr_pending':
            return self._is_hr_user()
        if user in self._get_stage_users():
            return True
        # HR may act for an absent reliever or supervisor when the policy allows it
        return self._is_hr_user() and self.leave_type_id.policy_override_allowed

    def _compute_leave_dates(self):
        self.ensure_one()
        mode = self.leave_type_id._get_policy_mode()
        holidays = set()
        if mode == workflow_dates.BUSINESS_DAYS:
            holidays = self.env['erp.holiday.calendar']._get_holiday_set(
                self.employee_id.sudo().holiday_location or 'global',
                self.date_start,
                workflow_dates.business_search_window(self.date_start, self.days_count),
            )
        try:
            return workflow_dates.compute_leave_dates(self.date_start, self.days_count, mode, holidays)
        except ValueError as e:
            raise UserError(str(e))

    def _assert_no_overlap(self, employee, date_start, date_end, message):
        overlapping = self.sudo().search_count([
            ('employee_id', '=', employee.id),
            ('state', 'in', BLOCKING_STATES),
            ('date_start', '<=', date_end),
            ('date_end', '>=', date_start),
            ('id', 'not in', self.ids),
        ], limit=1)
        if overlapping:
            raise UserError(message)

    def _enter_stage(self, stage, actor_message=None):
        """Move to an approval stage, reset its SLA clock and ask the approvers."""
        self.ensure_one()
        self.sudo().activity_unlink(['mail.mail_activity_data_todo'])
        self._workflow_write({
            'state': stage,
            'stage_entered_at': fields.Datetime.now(),
            'sla_reminder_sent': False,
            'sla_escalated': False,
        })
        self._notifier().notify(
            self,
            self._get_stage_users(stage),
            'Leave approval required',
            actor_message or '%s requested %s day(s) of %s from %s. Your approval is required.' % (
                self.employee_id.name, self.days_count, self.leave_type_id.name,
                fields.Date.to_string(self.date_start)),
            activity=True,
        )

    def _log_decision(self, decision, comments=None):
        self.ensure_one()
        self.env['erp.leave.approval'].sudo().create({
            'request_id': self.id,
            'approver_id': self.env.user.id,
            'stage': self.state,
            'level': APPROVAL_LEVELS.get(self.state, 1),
            'decision': decision,
            'comments': comments or False,
            'decided_at': fields.Datetime.now(),
        })

    def _get_balance(self, create=False):
        self.ensure_one()
        Balance = self.env['erp.leave.balance'].sudo()
        balance = Balance._get_balance(self.employee_id, self.leave_type_id, self.date_start.year)
        if not balance and create:
            balance = Balance.create({
                'employee_id': self.employee_id.id,
                'leave_type_id': self.leave_type_id.id,
                'year': self.date_start.year,
            })
        return balance

    # ---- State actions ----

    def action_submit(self):
        """Validate a draft request and send it into the approval chain."""
        for request in self:
            if request.state != 'draft':
                raise UserError('Only draft leave requests can be submitted.')
            if not request._is_requester() and not request._is_hr_user():
                raise AccessError('You can only submit your own leave requests.')
            request = request.sudo()
            if request.days_count <= 0:
                raise UserError('Number of days must be greater than zero.')
            if request.reliever_id and request.reliever_id == request.employee_id:
                raise UserError('You cannot select yourself as reliever.')

            supervisor = request.employee_id._get_leave_supervisor()
            if request.reliever_id and supervisor == request.reliever_id:
                raise UserError('Reliever and supervisor must be different people.')

            date_end, date_resume = request._compute_leave_dates()
            request._assert_no_overlap(
                request.employee_id, request.date_start, date_end,
                'You already have an overlapping leave request for this date range.',
            )
            if request.reliever_id:
                request._assert_no_overlap(
                    request.reliever_id, request.date_start, date_end,
                    'Selected reliever is unavailable in the requested date range.',
                )

            if request.leave_type_id.policy_affects_balance:
                balance = request._get_balance()
                if balance and request.days_count > balance.balance_days:
                    raise UserError(
                        'Insufficient leave balance. You have %s days remaining.' % round(balance.balance_days, 2)
                    )

            outcome = request.leave_type_id._evaluate_eligibility(
                request.employee_id, request.date_start, request.days_count
            )
            if outcome['status'] == 'not_eligible':
                raise UserError(outcome['reason'])

            required = self.env['erp.leave.document.type']._get_by_codes(outcome['required_documents'])
            request._workflow_write({
                'supervisor_id': supervisor.id,
                'date_end': date_end,
                'date_resume': date_resume,
                'required_document_ids': [(6, 0, required.ids)],
                'eligibility_reason': outcome['reason'] or False,
            })

            if outcome['status'] == 'missing_evidence' and not request.evidence_complete:
                request._workflow_write({'state': 'pending_evidence', 'stage_entered_at': fields.Datetime.now()})
                request._notifier().notify(
                    request,
                    request.user_id,
                    'Leave request needs evidence',
                    '%s Missing: %s.' % (outcome['reason'], ', '.join(request.missing_document_ids.mapped('name'))),
                )
            else:
                request._enter_stage(request._first_stage())
            _logger.info('Leave request %s submitted by %s, state %s', request.name, self.env.user.login, request.state)
        return True

    def action_approve(self, comments=None):
        """Approve the current stage and move the request along the chain."""
        for request in self:
            if request.state not in STAGE_KEYS:
                raise UserError('Only leave requests pending approval can be approved.')
            if not request._can_decide_stage():
                raise AccessError('You are not allowed to approve this leave request at its current stage.')
            request = request.sudo()
            if not request.evidence_complete:
                raise UserError('Required evidence must be verified before approval. Missing: %s.' % ', '.join(
                    request.missing_document_ids.mapped('name')))

            request._log_decision('approved', comments)
            next_stage = request._next_stage(request.state)
            if next_stage != 'approved':
                request._enter_stage(next_stage)
                continue

            request.sudo().activity_unlink(['mail.mail_activity_data_todo'])
            request._workflow_write({
                'state': 'approved',
                'approved_by_id': self.env.user.id,
                'approved_date': fields.Datetime.now(),
            })
            if request.leave_type_id.policy_affects_balance:
                request._get_balance(create=True)._consume(request.days_count)
            request._notifier().notify(
                request,
                request.user_id,
                'Leave request approved',
                'Your %s leave of %s day(s) from %s has been approved.' % (
                    request.leave_type_id.name, request.days_count, fields.Date.to_string(request.date_start)),
            )
        return True

    def action_reject(self, reason=None):
        for request in self:
            if request.state not in STAGE_KEYS:
                raise UserError('Only leave requests pending approval can be rejected.')
            if not request._can_decide_stage():
                raise AccessError('You are not allowed to reject this leave request at its current stage.')
            request = request.sudo()
            request._log_decision('rejected', reason)
            request.sudo().activity_unlink(['mail.mail_activity_data_todo'])
            request._workflow_write({
                'state': 'rejected',
                'rejected_reason': reason or 'No reason provided',
            })
            request._notifier().notify(
                request,
                request.user_id,
                'Leave request rejected',
                'Your leave request was rejected: %s' % (reason or 'No reason provided'),
            )
        return True

    def action_withdraw(self, reason=None):
        """Requester pulls back a request that is still in the workflow."""
        for request in self:
            if not request._is_requester():
                raise AccessError('Only the requester can withdraw a leave request.')
            request = request.sudo()
            if request.state not in PENDING_STATES:
                raise UserError('Only pending leave requests can be withdrawn.')
            request.sudo().activity_unlink(['mail.mail_activity_data_todo'])
            request._workflow_write({
                'state': 'cancelled',
                'rejected_reason': reason or 'Withdrawn by requester',
            })
        return True

    def action_cancel_approved(self, reason=None):
        for request in self:
            is_hr = request._is_hr_user()
            if not request._is_requester() and not is_hr:
                raise AccessError('Only the requester or HR can cancel approved leave.')
            request = request.sudo()
            if request.state != 'approved':
                raise UserError('Only approved leave can be cancelled.')
            if request.date_start <= fields.Date.context_today(request) and not is_hr:
                raise UserError('You can only cancel leave before it starts.')
            request._workflow_write({
                'state': 'cancelled',
                'rejected_reason': reason or 'Cancelled',
            })
            if request.leave_type_id.policy_affects_balance:
                request._get_balance()._restore(request.days_count)
        return True

    def action_request_extension(self, days, reason=None):
        """Create a linked request continuing the day after this leave ends."""
        self.ensure_one()
        if not self._is_requester():
            raise AccessError('Only the requester can request an extension.')
        if self.state != 'approved':
            raise UserError('Only approved leave can be extended.')
        try:
            days = int(days or 0)
        except (TypeError, ValueError):
            days = 0
        if days <= 0:
            raise UserError('A valid number of extension days is required.')

        date_start = self.date_end + timedelta(days=1)
        date_end, date_resume = workflow_dates.compute_leave_dates(date_start, days)
        self._assert_no_overlap(
            self.employee_id, date_start, date_end,
            'The extension overlaps another leave request.',
        )
        extension = self.sudo().with_context(erp_leave_workflow=True).create({
            'employee_id': self.employee_id.id,
            'leave_type_id': self.leave_type_id.id,
            'date_start': date_start,
            'days_count': days,
            'date_end': date_end,
            'date_resume': date_resume,
            'reason': reason or 'Extension request linked to %s' % self.name,
            'reliever_id': self.reliever_id.id,
            'supervisor_id': self.supervisor_id.id,
            'handover_note': self.handover_note,
            'request_kind': 'extension',
            'original_request_id': self.id,
        })
        extension._enter_stage(extension._first_stage())
        return extension

    def action_early_return(self, return_date, comment=None):
        """HR shortens an approved leave when the employee comes back early."""
        self.ensure_one()
        if not self._is_hr_user():
            raise AccessError('Only HR can process an early return.')
        if self.state != 'approved':
            raise UserError('Early return applies to approved leave only.')
        if not return_date:
            raise UserError('An early return date is required.')
        try:
            return_date = workflow_dates.parse_iso_date(return_date)
        except ValueError as e:
            raise UserError(str(e))
        if return_date < self.date_start or return_date > self.date_end:
            raise UserError('The early return date must be within the leave period.')

        new_days = (return_date - self.date_start).days + 1
        delta = self.days_count - new_days
        self._workflow_write({
            'date_end': return_date,
            'date_resume': return_date + timedelta(days=1),
            'days_count': new_days,
            'hr_comment': comment or 'Early return processed by HR',
        })
        if delta > 0 and self.leave_type_id.policy_affects_balance:
            self._get_balance()._restore(delta)
        return delta

    def _check_evidence_complete(self):
        """Release requests waiting on evidence once every document is verified."""
        released = self.browse()
        for request in self.sudo():
            if request.state != 'pending_evidence' or not request.evidence_complete:
                continue
            request._enter_stage(
                request._first_stage(),
                'Required evidence for %s has been verified and the leave request has entered the approval '
                'workflow.' % request.name,
            )
            supervisor_users = request.supervisor_id.user_id - request._get_stage_users()
            if supervisor_users:
                request._notifier().notify(
                    request,
                    supervisor_users,
                    'Leave request ready for approval',
                    'Required evidence has been completed for %s.' % request.name,
                )
            released |= request
        return released

    # ---- Queries ----

    def _queue_entry(self, now):
        self.ensure_one()
        due_hours, reminder_hours, _group = self.env['erp.approval.sla.policy']._get_for_stage(self.state)
        due_at, status, remaining = workflow_dates.sla_due_status(
            self.stage_entered_at or self.create_date, due_hours, reminder_hours, now
        )
        return {
            'id': self.id,
            'name': self.name,
            'employee': self.employee_id.name,
            'leave_type': self.leave_type_id.name,
            'date_start': fields.Date.to_string(self.date_start),
            'date_end': fields.Date.to_string(self.date_end),
            'days_count': self.days_count,
            'state': self.state,
            'reliever': self.reliever_id.name or None,
            'supervisor': self.supervisor_id.name or None,
            'required_documents': self.required_document_ids.mapped('code'),
            'missing_documents': self.missing_document_ids.mapped('code'),
            'evidence_complete': self.evidence_complete,
            'sla': {
                'due_at': fields.Datetime.to_string(due_at),
                'due_status': status,
                'hours_remaining': remaining,
            },
        }

    @api.model
    def get_approval_queue(self):
        """Requests waiting on the current user, oldest first."""
        user = self.env.user
        if self._is_hr_user():
            domain = [('state', '=', 'hr_pending')]
        else:
            domain = ['|',
                      '&', ('state', '=', 'reliever_pending'), ('reliever_id.user_id', '=', user.id),
                      '&', ('state', '=', 'supervisor_pending'), ('supervisor_id.user_id', '=', user.id)]
        requests = self.sudo().search(domain, order='stage_entered_at asc, id asc')
        now = fields.Datetime.now()
        return [request._queue_entry(now) for request in requests]

    @api.model
    def get_payroll_feed(self, date_from=None, date_to=None):
        if not self._is_hr_user():
            raise AccessError('Only HR can read the payroll leave feed.')
        domain = [('state', 'in', ('approved', 'cancelled'))]
        if date_from:
            domain.append(('date_start', '>=', workflow_dates.parse_iso_date(date_from)))
        if date_to:
            domain.append(('date_end', '<=', workflow_dates.parse_iso_date(date_to)))
        requests = self.sudo().search(domain, order='write_date desc')
        return [{
            'id': request.id,
            'name': request.name,
            'employee_id': request.employee_id.id,
            'employee': request.employee_id.name,
            'leave_type': request.leave_type_id.name,
            'date_start': fields.Date.to_string(request.date_start),
            'date_end': fields.Date.to_string(request.date_end),
            'date_resume': fields.Date.to_string(request.date_resume),
            'days_count': request.days_count,
            'state': request.state,
            'approved_date': fields.Datetime.to_string(request.approved_date) if request.approved_date else None,
        } for request in requests]

    # ---- Cron ----

    @api.model
    def _cron_process_sla(self):
        """Send stage reminders inside the reminder window, escalate once overdue."""
        now = fields.Datetime.now()
        SlaPolicy = self.env['erp.approval.sla.policy']
        notifier = self._notifier()
        reminders = escalations = 0

        for request in self.sudo().search([('state', 'in', STAGE_KEYS)]):
            due_hours, reminder_hours, group = SlaPolicy._get_for_stage(request.state)
            due_at, status, _remaining = workflow_dates.sla_due_status(
                request.stage_entered_at or request.create_date, due_hours, reminder_hours, now
            )
            if status == 'due_soon' and not request.sla_reminder_sent:
                sent = notifier.notify(
                    request,
                    request._get_stage_users(),
                    'Leave approval SLA reminder',
                    'Leave request %s is due soon. Please review before SLA breach.' % request.name,
                )
                request.sla_reminder_sent = True
                reminders += len(sent['user_ids'])
            elif status == 'overdue' and not request.sla_escalated and group:
                sent = notifier.notify(
                    request,
                    notifier._users_in_groups(group),
                    'Leave approval SLA breached',
                    'Leave request %s has breached SLA at %s.' % (
                        request.name, dict(APPROVAL_STAGES).get(request.state)),
                )
                request.sla_escalated = True
                escalations += len(sent['user_ids'])

        _logger.info('erp_approvals: leave SLA run sent %s reminder(s) and %s escalation(s)', reminders, escalations)
        return reminders + escalations
