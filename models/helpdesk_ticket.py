# -*- coding: utf-8 -*-
import logging

import pytz

from odoo import api, fields, models
from odoo.exceptions import AccessError, UserError, ValidationError

from ..utils import workflow_dates

_logger = logging.getLogger(__name__)

TICKET_STATES = [
    ('new', 'New'),
    ('assigned', 'Assigned'),
    ('in_progress', 'In Progress'),
    ('pending_approval', 'Pending Approval'),
    ('approved_for_procurement', 'Approved for Procurement'),
    ('rejected', 'Rejected'),
    ('resolved', 'Resolved'),
    ('closed', 'Closed'),
    ('cancelled', 'Cancelled'),
]

# Manual transitions; pending_approval is only reached by procurement creation or pivot
ALLOWED_TRANSITIONS = {
    'new': ('assigned', 'in_progress', 'cancelled'),
    'assigned': ('in_progress', 'cancelled'),
    'in_progress': ('resolved', 'cancelled'),
    'pending_approval': ('cancelled',),
    'approved_for_procurement': ('in_progress', 'resolved'),
    'rejected': ('closed',),
    'resolved': ('closed', 'in_progress'),
}

APPROVAL_STAGE_ORDER = ['department_lead', 'head_corporate_services', 'managing_director']
FINISHED_STATES = ('resolved', 'closed', 'cancelled')
PIVOTABLE_STATES = ('new', 'assigned', 'in_progress')

GROUP_ADMIN = 'erp_approvals.group_erp_admin'
GROUP_LEAD = 'erp_approvals.group_erp_helpdesk_lead'
GROUP_CORPORATE = 'erp_approvals.group_erp_corporate_services'
GROUP_DIRECTOR = 'erp_approvals.group_erp_managing_director'

# Set by the ticket actions only
WORKFLOW_FIELDS = {
    'name', 'state', 'request_type', 'requester_id', 'assigned_to_id', 'assigned_by_id',
    'approval_required', 'pivoted_to_procurement', 'procurement_reason',
    'sla_target_at', 'submitted_at', 'assigned_at', 'started_at', 'paused_at', 'resumed_at',
    'resolved_at', 'closed_at', 'sla_breach_notified', 'csat_rating', 'csat_feedback',
}
# Chosen by the requester when the ticket is opened
CREATE_FIELDS = {'name', 'request_type', 'requester_id'}


class ErpHelpdeskTicket(models.Model):
    _name = 'erp.helpdesk.ticket'
    _description = 'Help Desk Ticket'
    _inherit = ['mail.thread', 'mail.activity.mixin']
    _order = 'submitted_at desc, id desc'

    name = fields.Char(string='Ticket Number', readonly=True, copy=False, default='New')
    title = fields.Char(string='Title', required=True, tracking=True)
    description = fields.Text(string='Description', required=True)
    request_type = fields.Selection([
        ('support', 'Support'),
        ('procurement', 'Procurement'),
    ], string='Request Type', default='support', required=True, readonly=True)
    category = fields.Char(string='Category')
    service_department_id = fields.Many2one(
        'hr.department', string='Service Department',
        required=True, tracking=True
    )
    priority = fields.Selection([
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ], string='Priority', default='medium', required=True, tracking=True)
    state = fields.Selection(
        TICKET_STATES, string='Status',
        default='new', required=True, readonly=True, tracking=True, index=True, copy=False
    )

    requester_id = fields.Many2one(
        'res.users', string='Requester',
        required=True, readonly=True, index=True,
        default=lambda self: self.env.user
    )
    assigned_to_id = fields.Many2one('res.users', string='Assigned To', readonly=True, tracking=True, index=True)
    assigned_by_id = fields.Many2one('res.users', string='Assigned By', readonly=True)

    approval_required = fields.Boolean(readonly=True)
    pivoted_to_procurement = fields.Boolean(readonly=True)
    procurement_reason = fields.Text(readonly=True)

    sla_target_at = fields.Datetime(string='SLA Target', readonly=True)
    submitted_at = fields.Datetime(string='Submitted', readonly=True)
    assigned_at = fields.Datetime(readonly=True)
    started_at = fields.Datetime(readonly=True)
    paused_at = fields.Datetime(readonly=True)
    resumed_at = fields.Datetime(readonly=True)
    resolved_at = fields.Datetime(readonly=True)
    closed_at = fields.Datetime(readonly=True)
    sla_breach_notified = fields.Boolean(readonly=True, copy=False)
    sla_breached = fields.Boolean(string='SLA Breached', compute='_compute_sla_breached')

    csat_rating = fields.Integer(string='Rating', readonly=True)
    csat_feedback = fields.Text(string='Feedback', readonly=True)

    approval_ids = fields.One2many('erp.helpdesk.approval', 'ticket_id', string='Approvals')
    comment_ids = fields.One2many('erp.helpdesk.comment', 'ticket_id', string='Comments')
    event_ids = fields.One2many('erp.helpdesk.event', 'ticket_id', string='History')

    @api.depends('sla_target_at', 'state', 'paused_at')
    def _compute_sla_breached(self):
        now = fields.Datetime.now()
        for ticket in self:
            ticket.sla_breached = bool(
                ticket.sla_target_at
                and ticket.sla_target_at < now
                and ticket.state not in FINISHED_STATES
                and not ticket.paused_at
            )

    @api.constrains('csat_rating')
    def _check_csat_rating(self):
        for ticket in self:
            if ticket.csat_rating and not 1 <= ticket.csat_rating <= 5:
                raise ValidationError('CSAT rating must be between 1 and 5.')

    @api.model
    def _compute_sla_target(self, priority, submitted_at):
        """SLA target counted in the working hours of the user's timezone, stored in UTC."""
        tz = pytz.timezone(self.env.user.tz or 'UTC')
        local = pytz.utc.localize(submitted_at).astimezone(tz).replace(tzinfo=None)
        target = workflow_dates.help_desk_sla_target(priority, local)
        return tz.localize(target).astimezone(pytz.utc).replace(tzinfo=None)

    @api.model_create_multi
    def create(self, vals_list):
        now = fields.Datetime.now()
        for vals in vals_list:
            if vals.get('name', 'New') == 'New':
                vals['name'] = self.env['ir.sequence'].next_by_code('erp.helpdesk.ticket') or 'New'
            if not (vals.get('title') or '').strip() or not (vals.get('description') or '').strip():
                raise UserError('Title and description are required.')
            if not self.env.su:
                self._check_workflow_fields(set(vals) - CREATE_FIELDS)
                vals['requester_id'] = self.env.user.id
            vals.setdefault('requester_id', self.env.user.id)
            procurement = vals.get('request_type') == 'procurement'
            vals.update({
                'submitted_at': now,
                'state': 'pending_approval' if procurement else 'new',
                'approval_required': procurement,
                'paused_at': now if procurement else False,
                'sla_target_at': self._compute_sla_target(vals.get('priority') or 'medium', now),
            })
        tickets = super().create(vals_list)

        for ticket in tickets:
            if ticket.request_type == 'procurement':
                ticket._create_approval_stages()
            ticket._log_event('ticket_created', new_state=ticket.state, details={
                'priority': ticket.priority,
                'request_type': ticket.request_type,
            })
            ticket._notify(
                ticket._get_department_lead_users(),
                'New help desk ticket',
                '%s was submitted to %s with %s priority.' % (
                    ticket.title, ticket.service_department_id.name, ticket.priority),
                activity=ticket.state == 'pending_approval',
            )
        return tickets

    def write(self, vals):
        if not self.env.su:
            self._check_workflow_fields(set(vals))
        return super().write(vals)

    @api.model
    def _check_workflow_fields(self, names):
        tampered = WORKFLOW_FIELDS & names
        if tampered:
            raise AccessError(
                'These ticket fields are set by the help desk workflow: %s.' % ', '.join(sorted(tampered)))

    # ---- Roles ----

    def _is_admin(self):
        return self.env.su or self.env.user.has_group(GROUP_ADMIN)

    def _is_department_lead(self):
        self.ensure_one()
        if self._is_admin():
            return True
        user = self.env.user
        department = self.service_department_id.sudo()
        if department.manager_id.user_id == user:
            return True
        return user.has_group(GROUP_LEAD) and user.sudo().employee_id.department_id == department

    def _get_department_lead_users(self):
        self.ensure_one()
        department = self.service_department_id.sudo()
        notifier = self.env['erp.workflow.notifier']
        leads = notifier._users_in_groups(self.env.ref(GROUP_LEAD)).filtered(
            lambda u: u.employee_id.department_id == department
        )
        return department.manager_id.user_id | leads

    def _is_participant(self):
        self.ensure_one()
        user = self.env.user
        return (
            self._is_department_lead()
            or self.requester_id == user
            or self.assigned_to_id == user
        )

    def _can_decide_stage(self, stage):
        self.ensure_one()
        if self._is_admin():
            return True
        if stage == 'department_lead':
            return self._is_department_lead()
        if stage == 'head_corporate_services':
            return self.env.user.has_group(GROUP_CORPORATE)
        if stage == 'managing_director':
            return self.env.user.has_group(GROUP_DIRECTOR)
        return False

    def _get_stage_approver_users(self, stage):
        self.ensure_one()
        notifier = self.env['erp.workflow.notifier']
        if stage == 'department_lead':
            return self._get_department_lead_users()
        if stage == 'head_corporate_services':
            return notifier._users_in_groups(self.env.ref(GROUP_CORPORATE))
        if stage == 'managing_director':
            return notifier._users_in_groups(self.env.ref(GROUP_DIRECTOR))
        return self.env['res.users']

    # ---- Helpers ----

    def _log_event(self, event_type, old_state=None, new_state=None, details=None):
        self.ensure_one()
        return self.env['erp.helpdesk.event'].sudo().create({
            'ticket_id': self.id,
            'actor_id': self.env.user.id,
            'event_type': event_type,
            'old_state': old_state or False,
            'new_state': new_state or False,
            'details': details or {},
        })

    def _notify(self, users, title, message, activity=False):
        self.ensure_one()
        return self.env['erp.workflow.notifier'].notify(
            self, users - self.env.user if not self.env.su else users, title, message,
            subject='%s: %s' % (title, self.name),
            activity=activity,
        )

    def _create_approval_stages(self):
        self.ensure_one()
        if self.approval_ids:
            return self.approval_ids
        return self.env['erp.helpdesk.approval'].sudo().create([{
            'ticket_id': self.id,
            'stage': stage,
            'sequence': index,
        } for index, stage in enumerate(APPROVAL_STAGE_ORDER, start=1)])

    # ---- Actions ----

    def action_assign(self, user):
        self.ensure_one()
        if not self._is_department_lead():
            raise AccessError('Only the department lead or an administrator can assign this ticket.')
        if isinstance(user, int):
            user = self.env['res.users'].browse(user).exists()
        if not user:
            raise UserError('An assignee is required.')
        if self.state in ('closed', 'cancelled'):
            raise UserError('Closed or cancelled tickets cannot be assigned.')

        old_state = self.state
        previous = self.assigned_to_id
        vals = {
            'assigned_to_id': user.id,
            'assigned_by_id': self.env.user.id,
            'assigned_at': self.assigned_at or fields.Datetime.now(),
        }
        if self.state == 'new':
            vals['state'] = 'assigned'
        self.sudo().write(vals)

        self._log_event('ticket_assigned', old_state, self.state, {
            'from': previous.id or None,
            'to': user.id,
        })
        self._notify(
            user,
            'Help desk ticket assigned',
            '%s (%s) has been assigned to you.' % (self.name, self.title),
            activity=True,
        )
        return True

    def action_set_state(self, state):
        self.ensure_one()
        if state not in dict(TICKET_STATES):
            raise UserError('Invalid status.')
        if not self._is_participant():
            raise AccessError('You are not allowed to update this ticket.')
        if state not in ALLOWED_TRANSITIONS.get(self.state, ()):
            raise UserError('A ticket cannot move from %s to %s.' % (self.state, state))

        old_state = self.state
        now = fields.Datetime.now()
        vals = {'state': state}
        if state == 'in_progress' and not self.started_at:
            vals['started_at'] = now
        if state == 'resolved':
            vals['resolved_at'] = now
        if state == 'closed':
            vals['closed_at'] = now
        if state == 'cancelled':
            vals['paused_at'] = False
        self.sudo().write(vals)
        if state in FINISHED_STATES:
            self.sudo().activity_unlink(['mail.mail_activity_data_todo'])

        self._log_event('ticket_updated', old_state, state, {
            key: fields.Datetime.to_string(value) if key.endswith('_at') and value else value
            for key, value in vals.items()
        })
        if state == 'resolved':
            self._notify(
                self.requester_id,
                'Help desk ticket resolved',
                '%s has been resolved. Please confirm and provide your service rating.' % self.title,
            )
        return True

    # Form buttons
    def action_start(self):
        return self.action_set_state('in_progress')

    def action_resolve(self):
        return self.action_set_state('resolved')

    def action_close(self):
        return self.action_set_state('closed')

    def action_cancel(self):
        return self.action_set_state('cancelled')

    def action_approve_procurement(self):
        return self.action_decide_approval('approved')

    def action_reject_procurement(self):
        return self.action_decide_approval('rejected')

    def action_rate(self, rating, feedback=None):
        self.ensure_one()
        if not self.env.su and self.requester_id != self.env.user:
            raise AccessError('Only the requester can rate a ticket.')
        try:
            rating = int(rating)
        except (TypeError, ValueError):
            raise UserError('CSAT rating must be between 1 and 5.')
        if not 1 <= rating <= 5:
            raise UserError('CSAT rating must be between 1 and 5.')
        if self.state not in ('resolved', 'closed'):
            raise UserError('Only resolved or closed tickets can be rated.')

        self.sudo().write({'csat_rating': rating, 'csat_feedback': feedback or False})
        self._log_event('ticket_rated', self.state, self.state, {'csat_rating': rating})
        return True

    def action_pivot_to_procurement(self, reason=None):
        self.ensure_one()
        if not self._is_department_lead() and self.assigned_to_id != self.env.user:
            raise AccessError('Only the assignee, department lead or an administrator can pivot this ticket.')
        if self.state not in PIVOTABLE_STATES:
            raise UserError('Only open tickets can be moved to procurement.')

        reason = (reason or '').strip() or 'Procurement required to proceed'
        old_state = self.state
        self.sudo().write({
            'request_type': 'procurement',
            'approval_required': True,
            'pivoted_to_procurement': True,
            'procurement_reason': reason,
            'state': 'pending_approval',
            'paused_at': fields.Datetime.now(),
        })
        self._create_approval_stages()

        approvers = self.env['res.users']
        for stage in APPROVAL_STAGE_ORDER:
            approvers |= self._get_stage_approver_users(stage)
        self._notify(
            approvers,
            'Ticket requires procurement approval',
            '%s has been moved to procurement flow and is awaiting approval actions.' % self.title,
        )
        self._log_event('pivot_to_procurement', old_state, 'pending_approval', {'reason': reason})
        return True

    def action_decide_approval(self, decision, comments=None):
        """Decide the first pending approval stage."""
        self.ensure_one()
        decision = str(decision or '').strip().lower()
        if decision not in ('approved', 'rejected'):
            raise UserError('Decision must be "approved" or "rejected".')

        pending = self.approval_ids.filtered(lambda a: a.state == 'pending').sorted('sequence')[:1]
        if self.state != 'pending_approval' or not pending:
            raise UserError('No pending approval for this ticket.')
        if not self._can_decide_stage(pending.stage):
            raise AccessError('You are not authorized to decide this approval stage.')

        now = fields.Datetime.now()
        old_state = self.state
        pending.sudo().write({
            'state': decision,
            'approver_id': self.env.user.id,
            'comments': comments or False,
            'decided_at': now,
        })
        self.sudo().activity_unlink(['mail.mail_activity_data_todo'])
        stage_label = dict(pending._fields['stage'].selection).get(pending.stage)

        if decision == 'rejected':
            self.sudo().write({'state': 'rejected'})
            self._notify(
                self.requester_id | self.assigned_to_id,
                'Procurement request rejected',
                '%s was rejected at %s. Review and update the request.' % (self.title, stage_label),
            )
        else:
            upcoming = self.approval_ids.filtered(lambda a: a.state == 'pending').sorted('sequence')[:1]
            if upcoming:
                self._notify(
                    self._get_stage_approver_users(upcoming.stage),
                    'Procurement approval required',
                    '%s is waiting for your decision at %s.' % (
                        self.title, dict(upcoming._fields['stage'].selection).get(upcoming.stage)),
                    activity=True,
                )
            else:
                vals = {
                    'state': 'approved_for_procurement',
                    'resumed_at': now,
                    'paused_at': False,
                }
                if self.paused_at and self.sla_target_at:
                    vals['sla_target_at'] = self.sla_target_at + (now - self.paused_at)
                self.sudo().write(vals)
                self._notify(
                    self.requester_id | self.assigned_to_id,
                    'Procurement approved',
                    '%s has passed all approval levels and work can continue.' % self.title,
                )

        self._log_event(
            'approval_approved' if decision == 'approved' else 'approval_rejected',
            old_state, self.state,
            {'stage': pending.stage, 'decision': decision, 'comments': comments or None},
        )
        return True

    def add_comment(self, body, visibility='internal'):
        self.ensure_one()
        body = (body or '').strip()
        if not body:
            raise UserError('Comment body is required.')
        if visibility not in ('internal', 'requester'):
            raise UserError('Invalid comment visibility.')
        if not self._is_participant():
            raise AccessError('You are not allowed to comment on this ticket.')

        comment = self.env['erp.helpdesk.comment'].sudo().create({
            'ticket_id': self.id,
            'author_id': self.env.user.id,
            'body': body,
            'visibility': visibility,
        })
        self._log_event('comment_added', self.state, self.state, {'visibility': visibility})

        if self.requester_id == self.env.user:
            recipients = self.assigned_to_id or self._get_department_lead_users()
        elif visibility == 'requester':
            recipients = self.requester_id
        else:
            recipients = self.env['res.users']
        if recipients:
            self._notify(recipients, 'New comment on help desk ticket', '%s: %s' % (self.name, body))
        return comment

    def _get_visible_comments(self):
        self.ensure_one()
        comments = self.comment_ids.sudo()
        user = self.env.user
        if self._is_department_lead() or self.assigned_to_id == user:
            return comments
        return comments.filtered(lambda c: c.visibility == 'requester' or c.author_id == user)

    # ---- Queries ----

    def _ticket_dict(self):
        self.ensure_one()
        return {
            'id': self.id,
            'ticket_number': self.name,
            'title': self.title,
            'description': self.description,
            'request_type': self.request_type,
            'category': self.category or None,
            'service_department': self.service_department_id.name,
            'priority': self.priority,
            'state': self.state,
            'requester': self.requester_id.name,
            'assigned_to': self.assigned_to_id.name or None,
            'sla_target_at': fields.Datetime.to_string(self.sla_target_at) if self.sla_target_at else None,
            'sla_breached': self.sla_breached,
            'submitted_at': fields.Datetime.to_string(self.submitted_at) if self.submitted_at else None,
            'resolved_at': fields.Datetime.to_string(self.resolved_at) if self.resolved_at else None,
            'csat_rating': self.csat_rating or None,
        }

    def get_ticket_detail(self):
        self.ensure_one()
        if not self._is_participant():
            raise AccessError('You are not allowed to view this ticket.')
        ticket = self.sudo()
        return {
            'ticket': ticket._ticket_dict(),
            'comments': [{
                'id': comment.id,
                'author': comment.author_id.name,
                'body': comment.body,
                'visibility': comment.visibility,
                'created_at': fields.Datetime.to_string(comment.create_date),
            } for comment in self._get_visible_comments().sorted('id')],
            'approvals': [{
                'stage': approval.stage,
                'state': approval.state,
                'approver': approval.approver_id.name or None,
                'comments': approval.comments or None,
                'decided_at': fields.Datetime.to_string(approval.decided_at) if approval.decided_at else None,
            } for approval in ticket.approval_ids.sorted('sequence')],
            'events': [{
                'event_type': event.event_type,
                'actor': event.actor_id.name,
                'old_state': event.old_state or None,
                'new_state': event.new_state or None,
                'details': event.details or {},
                'created_at': fields.Datetime.to_string(event.create_date),
            } for event in ticket.event_ids.sorted('id')],
        }

    @api.model
    def _get_scope_domain(self, scope='mine'):
        user = self.env.user
        if scope == 'department':
            if self._is_admin():
                return []
            if not user.has_group(GROUP_LEAD):
                raise AccessError('Only department leads can list department tickets.')
            departments = user.sudo().employee_id.department_id | self.env['hr.department'].sudo().search([
                ('manager_id.user_id', '=', user.id),
            ])
            return [('service_department_id', 'in', departments.ids)]
        return ['|', ('requester_id', '=', user.id), ('assigned_to_id', '=', user.id)]

    @api.model
    def get_ticket_list(self, scope='mine'):
        tickets = self.sudo().search(self._get_scope_domain(scope))
        return [ticket._ticket_dict() for ticket in tickets]

    @api.model
    def get_dashboard_data(self):
        if self._is_admin():
            domain = []
        elif self.env.user.has_group(GROUP_LEAD):
            domain = self._get_scope_domain('department')
        else:
            domain = self._get_scope_domain('mine')
        tickets = self.sudo().search(domain)

        counts = {'total': len(tickets)}
        for state, _label in TICKET_STATES:
            counts[state] = len(tickets.filtered(lambda t: t.state == state))
        counts['breached'] = len(tickets.filtered('sla_breached'))

        resolved = tickets.filtered(lambda t: t.resolved_at and t.assigned_at)
        avg_resolution = 0.0
        if resolved:
            avg_resolution = sum(
                (t.resolved_at - t.assigned_at).total_seconds() / 3600.0 for t in resolved
            ) / len(resolved)

        rated = tickets.filtered('csat_rating')
        avg_csat = sum(rated.mapped('csat_rating')) / len(rated) if rated else 0.0

        compliance = 100.0
        if tickets:
            compliance = (len(tickets) - counts['breached']) / len(tickets) * 100.0

        return {
            'counts': counts,
            'kpis': {
                'avg_resolution_hours': round(avg_resolution, 2),
                'avg_csat': round(avg_csat, 2),
                'sla_compliance_percent': round(compliance, 2),
            },
        }

    # ---- Cron ----

    @api.model
    def _cron_notify_sla_breaches(self):
        tickets = self.sudo().search([
            ('sla_target_at', '<', fields.Datetime.now()),
            ('state', 'not in', FINISHED_STATES),
            ('paused_at', '=', False),
            ('sla_breach_notified', '=', False),
        ])
        for ticket in tickets:
            recipients = ticket.assigned_to_id or ticket._get_department_lead_users()
            ticket._notify(
                recipients,
                'Help desk SLA breached',
                '%s (%s) has passed its SLA target.' % (ticket.name, ticket.title),
            )
            ticket.sla_breach_notified = True
            ticket._log_event('sla_breached', ticket.state, ticket.state)
        _logger.info('erp_approvals: %s help desk ticket(s) breached SLA', len(tickets))
        return len(tickets)
