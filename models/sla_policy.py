# -*- coding: utf-8 -*-
from odoo import api, fields, models
from odoo.exceptions import ValidationError

from ..utils import workflow_dates

APPROVAL_STAGES = [
    ('reliever_pending', 'Reliever'),
    ('supervisor_pending', 'Supervisor'),
    ('hr_pending', 'HR'),
]


class ErpApprovalSlaPolicy(models.Model):
    _name = 'erp.approval.sla.policy'
    _description = 'Leave Approval SLA Policy'
    _order = 'stage'
    _rec_name = 'stage'

    stage = fields.Selection(APPROVAL_STAGES, string='Stage', required=True)
    due_hours = fields.Integer(string='Due Within (hours)', required=True, default=workflow_dates.DEFAULT_DUE_HOURS)
    reminder_hours_before = fields.Integer(
        string='Remind Before Due (hours)',
        required=True,
        default=workflow_dates.DEFAULT_REMINDER_HOURS
    )
    escalate_group_id = fields.Many2one(
        'res.groups',
        string='Escalate To',
        help='Members of this group are notified once the stage is overdue.'
    )
    active = fields.Boolean(default=True)

    _stage_unique = models.Constraint(
        'unique(stage)',
        'Only one SLA policy per approval stage is allowed.',
    )

    @api.constrains('due_hours', 'reminder_hours_before')
    def _check_hours(self):
        for policy in self:
            if policy.due_hours <= 0:
                raise ValidationError('Due hours must be greater than 0.')
            if policy.reminder_hours_before < 0 or policy.reminder_hours_before > policy.due_hours:
                raise ValidationError('Reminder hours must be between 0 and the due hours.')

    @api.model
    def _get_for_stage(self, stage):
        """Return ``(due_hours, reminder_hours, escalation_group)`` for a stage."""
        policy = self.sudo().search([('stage', '=', stage), ('active', '=', True)], limit=1)
        if not policy:
            return workflow_dates.DEFAULT_DUE_HOURS, workflow_dates.DEFAULT_REMINDER_HOURS, self.env['res.groups']
        return policy.due_hours, policy.reminder_hours_before, policy.escalate_group_id
