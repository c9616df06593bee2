# -*- coding: utf-8 -*-
import logging

from odoo import api, fields, models
from odoo.exceptions import ValidationError

from ..utils import workflow_dates

_logger = logging.getLogger(__name__)


class ErpLeaveDocumentType(models.Model):
    _name = 'erp.leave.document.type'
    _description = 'Leave Evidence Document Type'
    _order = 'name'

    name = fields.Char(string='Document', required=True, translate=True)
    code = fields.Char(string='Code', required=True)
    active = fields.Boolean(default=True)

    _code_unique = models.Constraint(
        'unique(code)',
        'A document type with this code already exists.',
    )

    @api.model
    def _get_by_codes(self, codes):
        if not codes:
            return self.browse()
        return self.with_context(active_test=False).search([('code', 'in', list(codes))])


class HrLeaveType(models.Model):
    _inherit = 'hr.leave.type'

    policy_active = fields.Boolean(
        string='Approval Policy Active',
        default=True,
        help='Inactive policies fall back to an unrestricted calendar-day policy.'
    )
    policy_annual_days = fields.Float(string='Annual Entitlement (days)', default=0.0)
    policy_eligibility = fields.Selection([
        ('all', 'All Employees'),
        ('female_only', 'Female Employees Only'),
        ('male_only', 'Male Employees Only'),
    ], string='Eligibility', default='all', required=True)
    policy_min_tenure_months = fields.Integer(string='Minimum Tenure (months)', default=0)
    policy_notice_days = fields.Integer(string='Notice (days)', default=0)
    policy_accrual_mode = fields.Selection([
        (workflow_dates.CALENDAR_DAYS, 'Calendar Days'),
        (workflow_dates.BUSINESS_DAYS, 'Business Days'),
    ], string='Day Counting', default=workflow_dates.CALENDAR_DAYS, required=True)
    policy_required_document_ids = fields.Many2many(
        'erp.leave.document.type',
        'hr_leave_type_erp_document_rel',
        'leave_type_id', 'document_type_id',
        string='Required Documents'
    )
    policy_override_allowed = fields.Boolean(string='HR Override Allowed', default=True)
    policy_affects_balance = fields.Boolean(
        string='Affects Leave Balance',
        default=True,
        help='Uncheck for leave types like Unpaid that should not affect the balance.'
    )
    policy_daily_accrual = fields.Boolean(
        string='Enable Daily Accrual',
        default=False,
        help='If enabled, the annual entitlement is accrued daily into the current year balance.'
    )

    # Eligibility conditions
    policy_allowed_employee_types = fields.Char(
        string='Allowed Employee Types',
        help='Comma separated employee type keys, e.g. "employee,worker". Empty allows all.'
    )
    policy_required_marital_statuses = fields.Char(
        string='Required Marital Status',
        help='Comma separated marital status keys, e.g. "married". Empty allows all.'
    )
    policy_requires_children = fields.Boolean(string='Requires Children')
    policy_requires_pregnancy_event = fields.Boolean(string='Requires Pregnancy')
    policy_requires_birth_or_adoption_event = fields.Boolean(string='Requires Birth or Adoption')
    policy_requires_bereavement_event = fields.Boolean(string='Requires Bereavement')
    policy_requires_study_purpose = fields.Boolean(string='Requires Study Purpose')
    policy_event_window_days = fields.Integer(string='Life Event Window (days)', default=365)

    # Frequency rules
    policy_medical_certificate_after_days = fields.Integer(
        string='Medical Certificate After (days)',
        default=0,
        help='Requests longer than this need a medical certificate. 0 disables the rule.'
    )
    policy_max_days_per_request = fields.Integer(
        string='Max Days per Request',
        default=0,
        help='0 means unlimited.'
    )

    @api.constrains('policy_min_tenure_months', 'policy_notice_days', 'policy_event_window_days',
                    'policy_medical_certificate_after_days', 'policy_max_days_per_request',
                    'policy_annual_days')
    def _check_policy_numbers(self):
        for leave_type in self:
            values = (
                leave_type.policy_min_tenure_months,
                leave_type.policy_notice_days,
                leave_type.policy_event_window_days,
                leave_type.policy_medical_certificate_after_days,
                leave_type.policy_max_days_per_request,
                leave_type.policy_annual_days,
            )
            if any(value < 0 for value in values):
                raise ValidationError('Leave policy values cannot be negative.')

    @staticmethod
    def _split_keys(value):
        return [key.strip() for key in (value or '').split(',') if key.strip()]

    def _get_policy_mode(self):
        self.ensure_one()
        if not self.policy_active:
            return workflow_dates.CALENDAR_DAYS
        return self.policy_accrual_mode

    def _get_required_codes(self):
        self.ensure_one()
        if not self.policy_active:
            return []
        return self.policy_required_document_ids.mapped('code')

    def _evaluate_eligibility(self, employee, date_start, days):
        """
        Check ``employee`` against this leave type's policy.

        Returns a dict with ``status`` (eligible, not_eligible or
        missing_evidence), ``reason``, ``required_documents`` and
        ``missing_documents`` (document codes).
        """
        self.ensure_one()
        employee = employee.sudo()
        date_start = workflow_dates.parse_iso_date(date_start)
        required = list(self._get_required_codes())
        missing = []

        def result(status, reason=None):
            return {
                'status': status,
                'reason': reason,
                'required_documents': list(required),
                'missing_documents': list(missing) if status == 'missing_evidence' else [],
            }

        def need(code):
            if code not in required:
                required.append(code)
            if code not in missing:
                missing.append(code)

        if not self.policy_active:
            return result('eligible')

        gender = (employee.gender or 'unspecified').lower()
        if self.policy_eligibility == 'female_only' and gender != 'female':
            return result('not_eligible', 'This leave type is only available to female employees.')
        if self.policy_eligibility == 'male_only' and gender != 'male':
            return result('not_eligible', 'This leave type is only available to male employees.')

        if self.policy_min_tenure_months > 0:
            if not employee.employment_date:
                return result('not_eligible', 'Employment date is required to validate tenure policy.')
            months = workflow_dates.months_between(employee.employment_date, date_start)
            if months < self.policy_min_tenure_months:
                return result(
                    'not_eligible',
                    'This leave type requires at least %s months tenure.' % self.policy_min_tenure_months,
                )

        if self.policy_notice_days > 0:
            today = fields.Date.context_today(self)
            if (date_start - today).days < self.policy_notice_days:
                return result(
                    'not_eligible',
                    'This leave type requires at least %s days notice.' % self.policy_notice_days,
                )

        allowed_types = self._split_keys(self.policy_allowed_employee_types)
        if allowed_types and employee.employee_type not in allowed_types:
            return result('not_eligible', 'Your employment type is not eligible for this leave type.')

        marital_statuses = self._split_keys(self.policy_required_marital_statuses)
        if marital_statuses and employee.marital not in marital_statuses:
            return result('not_eligible', 'Marital status requirement is not satisfied for this leave type.')

        if self.policy_requires_children and not employee.children:
            return result('not_eligible', 'This leave type requires employees with children.')

        window = self.policy_event_window_days or 365
        if self.policy_requires_pregnancy_event:
            on_profile = employee.pregnancy_status in ('pregnant', 'postpartum')
            if not on_profile and not employee._has_life_event(['pregnancy', 'childbirth'], window):
                need('medical_confirmation')

        if self.policy_requires_birth_or_adoption_event:
            if not employee._has_life_event(['childbirth', 'adoption'], window):
                need('birth_or_adoption_proof')

        if self.policy_requires_bereavement_event:
            if not employee._has_life_event(['bereavement'], window):
                need('bereavement_declaration')

        if self.policy_requires_study_purpose:
            need('admission_or_exam_letter')

        threshold = self.policy_medical_certificate_after_days
        if threshold > 0 and days > threshold:
            need('medical_certificate')

        if self.policy_max_days_per_request > 0 and days > self.policy_max_days_per_request:
            return result(
                'not_eligible',
                'This leave type allows at most %s days per request.' % self.policy_max_days_per_request,
            )

        if missing:
            return result(
                'missing_evidence',
                'Additional evidence is required before %s can proceed for approval.' % (
                    self.name or 'this leave type'),
            )
        return result('eligible')

    @api.model
    def simulate_eligibility(self, employee, date_start, days):
        """Evaluate every active leave type for ``employee``."""
        simulations = []
        for leave_type in self.search([('active', '=', True)], order='name'):
            outcome = leave_type._evaluate_eligibility(employee, date_start, days)
            simulations.append({
                'leave_type_id': leave_type.id,
                'leave_type': leave_type.name,
                'accrual_mode': leave_type._get_policy_mode(),
                'notice_days': leave_type.policy_notice_days if leave_type.policy_active else 0,
                'eligibility_status': outcome['status'],
                'eligibility_reason': outcome['reason'],
                'required_documents': outcome['required_documents'],
                'missing_documents': outcome['missing_documents'],
            })
        _logger.debug('Simulated %s leave type(s) for employee %s', len(simulations), employee.name)
        return simulations
