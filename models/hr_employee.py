# -*- coding: utf-8 -*-
from datetime import timedelta

from odoo import api, fields, models
from odoo.exceptions import UserError


class HrEmployee(models.Model):
    _inherit = 'hr.employee'

    # Leave policy inputs
    employment_date = fields.Date(
        string='Employment Date',
        groups='hr.group_hr_user',
        help='Start of service used for tenure based leave eligibility.'
    )
    pregnancy_status = fields.Selection([
        ('none', 'Not Applicable'),
        ('pregnant', 'Pregnant'),
        ('postpartum', 'Postpartum'),
    ], string='Pregnancy Status', default='none', groups='hr.group_hr_user')
    holiday_location = fields.Char(
        string='Holiday Calendar',
        default='global',
        help='Location key of the holiday calendar used for business-day leave.'
    )
    life_event_ids = fields.One2many(
        'hr.employee.life.event', 'employee_id',
        string='Life Events',
        groups='hr.group_hr_user'
    )

    def _has_life_event(self, event_types, window_days=0):
        self.ensure_one()
        domain = [
            ('employee_id', '=', self.id),
            ('event_type', 'in', list(event_types)),
        ]
        if window_days and window_days > 0:
            earliest = fields.Date.context_today(self) - timedelta(days=window_days)
            domain.append(('event_date', '>=', earliest))
        return bool(self.env['hr.employee.life.event'].sudo().search_count(domain, limit=1))

    def _get_leave_supervisor(self):
        """Manager of the employee, falling back to the department manager."""
        self.ensure_one()
        supervisor = self.parent_id
        if not supervisor or supervisor == self:
            supervisor = self.department_id.manager_id
        if not supervisor or supervisor == self:
            raise UserError('No supervisor or department manager is configured for %s.' % self.name)
        return supervisor

    def _get_notification_emails(self):
        emails = []
        for employee in self.sudo():
            for email in (employee.work_email, employee.private_email):
                email = (email or '').strip().lower()
                if email and email not in emails:
                    emails.append(email)
        return emails

    @api.model
    def resolve_identifier(self, identifier, label='Employee'):
        """Find one employee from an id, an email address or a full name."""
        value = (identifier or '').strip() if isinstance(identifier, str) else identifier
        if not value:
            raise UserError('%s is required.' % label)

        if isinstance(value, int) or str(value).isdigit():
            employee = self.browse(int(value)).exists()
            if not employee:
                raise UserError('%s not found.' % label)
            return employee

        if '@' in value:
            matches = self.search([('work_email', '=ilike', value)])
            if not matches:
                raise UserError('%s email not found.' % label)
            if len(matches) > 1:
                raise UserError('%s email resolved to multiple records.' % label)
            return matches

        matches = self.search([('name', '=ilike', value)])
        if not matches:
            raise UserError('%s name not found.' % label)
        if len(matches) > 1:
            raise UserError('%s name is ambiguous. Use email or ID.' % label)
        return matches

    @api.model
    def get_leave_data_quality_report(self):
        """Employees whose profile cannot be evaluated by the leave policies."""
        employees = self.sudo().search([
            '|', '|', '|',
            ('gender', '=', False),
            ('employment_date', '=', False),
            ('employee_type', '=', False),
            ('holiday_location', '=', False),
        ], order='name')
        return [{
            'id': emp.id,
            'name': emp.name,
            'work_email': emp.work_email,
            'gender': emp.gender or None,
            'employment_date': fields.Date.to_string(emp.employment_date) if emp.employment_date else None,
            'employee_type': emp.employee_type or None,
            'holiday_location': emp.holiday_location or None,
        } for emp in employees]


class HrEmployeeLifeEvent(models.Model):
    _name = 'hr.employee.life.event'
    _description = 'Employee Life Event'
    _order = 'event_date desc'

    employee_id = fields.Many2one(
        'hr.employee', string='Employee',
        required=True, ondelete='cascade', index=True
    )
    event_type = fields.Selection([
        ('pregnancy', 'Pregnancy'),
        ('childbirth', 'Childbirth'),
        ('adoption', 'Adoption'),
        ('bereavement', 'Bereavement'),
        ('marriage', 'Marriage'),
    ], string='Event', required=True)
    event_date = fields.Date(string='Date', required=True, default=fields.Date.context_today)
    notes = fields.Text(string='Notes')
