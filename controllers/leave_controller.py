# -*- coding: utf-8 -*-
import base64
import logging

from odoo import http
from odoo.http import request
from odoo.exceptions import AccessError, UserError, ValidationError

_logger = logging.getLogger(__name__)

BUSINESS_ERRORS = (UserError, AccessError, ValidationError)


def _run(label, callback):
    """Run ``callback`` and wrap its result in the JSON envelope."""
    try:
        with request.env.cr.savepoint():
            result = callback()
        if isinstance(result, dict) and 'success' in result:
            return result
        return {'success': True, 'data': result}
    except BUSINESS_ERRORS as e:
        _logger.info('%s refused for user %s: %s', label, request.env.uid, e)
        return {'success': False, 'error': str(e)}
    except Exception as e:
        _logger.exception('Error in %s: %s', label, str(e))
        return {'success': False, 'error': 'Unexpected error, please contact your administrator.'}


def _get_request(request_id):
    leave = request.env['erp.leave.request'].browse(int(request_id or 0)).exists()
    if not leave:
        raise UserError('Leave request not found.')
    return leave


class LeaveController(http.Controller):

    @http.route('/erp_approvals/leave/submit', type='json', auth='user', methods=['POST'], csrf=True)
    def submit(self, **kwargs):
        """
        Create and submit a leave request for the current user.
        Expected JSON payload:
          - leave_type_id (int)
          - date_start (str, YYYY-MM-DD)
          - days (int)
          - reliever (id, email or name, optional)
          - reason, handover_note (str, optional)
        """
        def _submit():
            Employee = request.env['hr.employee']
            employee = Employee.search([('user_id', '=', request.env.uid)], limit=1)
            if not employee:
                raise UserError('No employee linked to your user account.')
            vals = {
                'employee_id': employee.id,
                'leave_type_id': int(kwargs.get('leave_type_id') or 0),
                'date_start': kwargs.get('date_start'),
                'days_count': int(kwargs.get('days') or 0),
                'reason': kwargs.get('reason'),
                'handover_note': kwargs.get('handover_note'),
            }
            if kwargs.get('reliever'):
                vals['reliever_id'] = Employee.resolve_identifier(kwargs['reliever'], 'Reliever').id
            leave = request.env['erp.leave.request'].create(vals)
            leave.action_submit()
            return {'id': leave.id, 'name': leave.name, 'state': leave.state}
        return _run('leave submit', _submit)

    @http.route('/erp_approvals/leave/decide', type='json', auth='user', methods=['POST'], csrf=True)
    def decide(self, request_id=None, decision=None, comments=None, **kwargs):
        def _decide():
            leave = _get_request(request_id)
            if decision == 'approved':
                leave.action_approve(comments)
            elif decision == 'rejected':
                leave.action_reject(comments)
            else:
                raise UserError('Decision must be "approved" or "rejected".')
            return {'id': leave.id, 'state': leave.state}
        return _run('leave decision', _decide)

    @http.route('/erp_approvals/leave/lifecycle', type='json', auth='user', methods=['POST'], csrf=True)
    def lifecycle(self, request_id=None, action=None, **kwargs):
        """Post-submission actions: withdraw, cancel, extend or early_return."""
        def _lifecycle():
            leave = _get_request(request_id)
            if action == 'withdraw':
                leave.action_withdraw(kwargs.get('reason'))
            elif action == 'cancel':
                leave.action_cancel_approved(kwargs.get('reason'))
            elif action == 'extend':
                extension = leave.action_request_extension(kwargs.get('days'), kwargs.get('reason'))
                return {'id': extension.id, 'name': extension.name, 'state': extension.state}
            elif action == 'early_return':
                restored = leave.action_early_return(kwargs.get('return_date'), kwargs.get('comment'))
                return {'id': leave.id, 'state': leave.state, 'restored_days': restored}
            else:
                raise UserError('Unsupported lifecycle action.')
            return {'id': leave.id, 'state': leave.state}
        return _run('leave lifecycle', _lifecycle)

    @http.route('/erp_approvals/leave/evidence/upload', type='json', auth='user', methods=['POST'], csrf=True)
    def upload_evidence(self, request_id=None, document_code=None, **kwargs):
        def _upload():
            leave = _get_request(request_id)
            document = request.env['erp.leave.document.type']._get_by_codes([document_code])[:1]
            if not document:
                raise UserError('Unknown document type.')
            vals = {
                'request_id': leave.id,
                'document_type_id': document.id,
                'file_url': kwargs.get('file_url'),
                'attachment_name': kwargs.get('file_name'),
                'notes': kwargs.get('notes'),
            }
            if kwargs.get('file'):
                try:
                    base64.b64decode(kwargs['file'], validate=True)
                except ValueError:
                    raise UserError('Invalid file data.')
                vals['attachment'] = kwargs['file']
            evidence = request.env['erp.leave.evidence'].create(vals)
            return {'id': evidence.id, 'request_state': leave.state}
        return _run('evidence upload', _upload)

    @http.route('/erp_approvals/leave/evidence/verify', type='json', auth='user', methods=['POST'], csrf=True)
    def verify_evidence(self, evidence_id=None, decision='verified', notes=None, **kwargs):
        def _verify():
            evidence = request.env['erp.leave.evidence'].browse(int(evidence_id or 0)).exists()
            if not evidence:
                raise UserError('Evidence not found.')
            if decision == 'rejected':
                evidence.action_reject(notes)
            else:
                evidence.action_verify(notes)
            return {'id': evidence.id, 'state': evidence.state, 'request_state': evidence.request_id.state}
        return _run('evidence verification', _verify)

    @http.route('/erp_approvals/leave/queue', type='json', auth='user', methods=['POST'], csrf=True)
    def queue(self, **kwargs):
        return _run('approval queue', lambda: request.env['erp.leave.request'].get_approval_queue())

    @http.route('/erp_approvals/leave/simulate', type='json', auth='user', methods=['POST'], csrf=True)
    def simulate(self, employee=None, date_start=None, days=1, **kwargs):
        """Eligibility of every leave type for an employee (HR) or oneself."""
        def _simulate():
            Employee = request.env['hr.employee']
            if employee:
                if not request.env.user.has_group('erp_approvals.group_erp_hr_officer'):
                    raise AccessError('Only HR can simulate eligibility for other employees.')
                target = Employee.resolve_identifier(employee)
            else:
                target = Employee.search([('user_id', '=', request.env.uid)], limit=1)
                if not target:
                    raise UserError('No employee linked to your user account.')
            return request.env['hr.leave.type'].simulate_eligibility(target, date_start, int(days or 1))
        return _run('eligibility simulation', _simulate)

    @http.route('/erp_approvals/leave/payroll_feed', type='json', auth='user', methods=['POST'], csrf=True)
    def payroll_feed(self, date_from=None, date_to=None, **kwargs):
        return _run('payroll feed', lambda: request.env['erp.leave.request'].get_payroll_feed(date_from, date_to))

    @http.route('/erp_approvals/leave/data_quality', type='json', auth='user', methods=['POST'], csrf=True)
    def data_quality(self, **kwargs):
        def _report():
            if not request.env.user.has_group('erp_approvals.group_erp_hr_officer'):
                raise AccessError('Only HR can read the data quality report.')
            return request.env['hr.employee'].get_leave_data_quality_report()
        return _run('data quality report', _report)
