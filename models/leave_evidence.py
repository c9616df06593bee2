# -*- coding: utf-8 -*-
import logging

from odoo import api, fields, models
from odoo.exceptions import AccessError, UserError, ValidationError

_logger = logging.getLogger(__name__)

CLOSED_STATES = ('approved', 'rejected', 'cancelled')
REVIEW_FIELDS = ('state', 'verified_by_id', 'verified_at')


class ErpLeaveEvidence(models.Model):
    _name = 'erp.leave.evidence'
    _description = 'Leave Evidence'
    _order = 'create_date desc'
    _rec_name = 'document_type_id'

    request_id = fields.Many2one(
        'erp.leave.request', string='Leave Request',
        required=True, ondelete='cascade', index=True
    )
    document_type_id = fields.Many2one('erp.leave.document.type', string='Document', required=True)
    attachment = fields.Binary(string='File', attachment=True)
    attachment_name = fields.Char(string='File Name')
    file_url = fields.Char(string='File URL')
    notes = fields.Text(string='Notes')
    state = fields.Selection([
        ('pending', 'Pending Review'),
        ('verified', 'Verified'),
        ('rejected', 'Rejected'),
    ], string='Status', default='pending', required=True, readonly=True)
    uploaded_by_id = fields.Many2one(
        'res.users', string='Uploaded By',
        readonly=True,
        default=lambda self: self.env.user
    )
    verified_by_id = fields.Many2one('res.users', string='Reviewed By', readonly=True)
    verified_at = fields.Datetime(string='Reviewed On', readonly=True)

    @api.constrains('attachment', 'file_url')
    def _check_file(self):
        for evidence in self:
            if not evidence.attachment and not evidence.file_url:
                raise ValidationError('Attach a file or provide a file URL.')

    @api.model_create_multi
    def create(self, vals_list):
        requests = self.env['erp.leave.request'].browse([vals.get('request_id') for vals in vals_list])
        for request in requests:
            if not request._is_requester() and not request._is_hr_user():
                raise AccessError('Only the requester or HR can upload evidence for this leave request.')
            if request.state in CLOSED_STATES:
                raise UserError('Evidence cannot be added to a %s leave request.' % request.state)
        if not requests._is_hr_user():
            # Uploads always start pending; only HR reviews them
            for vals in vals_list:
                for name in REVIEW_FIELDS:
                    vals.pop(name, None)
                vals['uploaded_by_id'] = self.env.user.id
        records = super(ErpLeaveEvidence, self.sudo()).create(vals_list)
        records.mapped('request_id')._check_evidence_complete()
        return records.with_env(self.env)

    def _review(self, state, notes=None):
        if not self.env.su and not self.env.user.has_group('erp_approvals.group_erp_hr_officer'):
            raise AccessError('Only HR can review leave evidence.')
        vals = {
            'state': state,
            'verified_by_id': self.env.user.id,
            'verified_at': fields.Datetime.now(),
        }
        if notes:
            vals['notes'] = notes
        self.sudo().write(vals)
        _logger.info('Evidence %s marked %s by %s', self.ids, state, self.env.user.login)
        return self.mapped('request_id')._check_evidence_complete()

    def action_verify(self, notes=None):
        self._review('verified', notes)
        return True

    def action_reject(self, notes=None):
        self._review('rejected', notes)
        return True
