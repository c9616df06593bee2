# -*- coding: utf-8 -*-
from odoo import fields, models


class ErpHelpdeskApproval(models.Model):
    _name = 'erp.helpdesk.approval'
    _description = 'Help Desk Procurement Approval'
    _order = 'ticket_id, sequence'

    ticket_id = fields.Many2one(
        'erp.helpdesk.ticket', string='Ticket',
        required=True, ondelete='cascade', index=True
    )
    stage = fields.Selection([
        ('department_lead', 'Department Lead'),
        ('head_corporate_services', 'Head of Corporate Services'),
        ('managing_director', 'Managing Director'),
    ], string='Stage', required=True)
    sequence = fields.Integer(default=1)
    state = fields.Selection([
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ], string='Status', default='pending', required=True)
    approver_id = fields.Many2one('res.users', string='Approver')
    comments = fields.Text(string='Comments')
    decided_at = fields.Datetime(string='Decided On')

    _ticket_stage_unique = models.Constraint(
        'unique(ticket_id, stage)',
        'Each approval stage can only appear once per ticket.',
    )


class ErpHelpdeskComment(models.Model):
    _name = 'erp.helpdesk.comment'
    _description = 'Help Desk Comment'
    _order = 'create_date, id'

    ticket_id = fields.Many2one(
        'erp.helpdesk.ticket', string='Ticket',
        required=True, ondelete='cascade', index=True
    )
    author_id = fields.Many2one('res.users', string='Author', required=True, default=lambda self: self.env.user)
    body = fields.Text(string='Comment', required=True)
    visibility = fields.Selection([
        ('internal', 'Internal'),
        ('requester', 'Visible to Requester'),
    ], string='Visibility', default='internal', required=True)


class ErpHelpdeskEvent(models.Model):
    """Append-only audit trail of ticket changes."""
    _name = 'erp.helpdesk.event'
    _description = 'Help Desk Ticket Event'
    _order = 'create_date, id'

    ticket_id = fields.Many2one(
        'erp.helpdesk.ticket', string='Ticket',
        required=True, ondelete='cascade', index=True
    )
    actor_id = fields.Many2one('res.users', string='Actor', required=True)
    event_type = fields.Char(string='Event', required=True)
    old_state = fields.Char(string='From')
    new_state = fields.Char(string='To')
    details = fields.Json(string='Details')
