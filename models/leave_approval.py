# -*- coding: utf-8 -*-
from odoo import fields, models

from .sla_policy import APPROVAL_STAGES


class ErpLeaveApproval(models.Model):
    _name = 'erp.leave.approval'
    _description = 'Leave Approval Decision'
    _order = 'decided_at desc, id desc'

    request_id = fields.Many2one(
        'erp.leave.request', string='Leave Request',
        required=True, ondelete='cascade', index=True
    )
    approver_id = fields.Many2one('res.users', string='Approver', required=True)
    stage = fields.Selection(APPROVAL_STAGES, string='Stage', required=True)
    level = fields.Integer(string='Level', required=True, default=1)
    decision = fields.Selection([
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ], string='Decision', required=True)
    comments = fields.Text(string='Comments')
    decided_at = fields.Datetime(string='Decided On', default=fields.Datetime.now)
