# -*- coding: utf-8 -*-
import logging

from odoo import api, fields, models
from odoo.exceptions import ValidationError

_logger = logging.getLogger(__name__)


class ErpLeaveBalance(models.Model):
    _name = 'erp.leave.balance'
    _description = 'Leave Balance'
    _order = 'year desc, employee_id'

    employee_id = fields.Many2one(
        'hr.employee', string='Employee',
        required=True, ondelete='cascade', index=True
    )
    leave_type_id = fields.Many2one(
        'hr.leave.type', string='Leave Type',
        required=True, ondelete='cascade'
    )
    year = fields.Integer(
        string='Year',
        required=True,
        default=lambda self: fields.Date.context_today(self).year
    )
    allocated_days = fields.Float(string='Allocated', digits=(10, 4), default=0.0)
    used_days = fields.Float(string='Used', digits=(10, 4), default=0.0)
    balance_days = fields.Float(
        string='Remaining',
        digits=(10, 4),
        compute='_compute_balance_days',
        store=True
    )
    company_id = fields.Many2one(related='employee_id.company_id', store=True)

    _employee_type_year_unique = models.Constraint(
        'unique(employee_id, leave_type_id, year)',
        'A balance already exists for this employee, leave type and year.',
    )

    @api.depends('allocated_days', 'used_days')
    def _compute_balance_days(self):
        for balance in self:
            balance.balance_days = (balance.allocated_days or 0.0) - (balance.used_days or 0.0)

    @api.constrains('allocated_days', 'used_days')
    def _check_days(self):
        for balance in self:
            if balance.allocated_days < 0 or balance.used_days < 0:
                raise ValidationError('Leave balance days cannot be negative.')

    @api.model
    def _get_balance(self, employee, leave_type, year=None):
        year = year or fields.Date.context_today(self).year
        return self.sudo().search([
            ('employee_id', '=', employee.id),
            ('leave_type_id', '=', leave_type.id),
            ('year', '=', year),
        ], limit=1)

    def _consume(self, days):
        for balance in self:
            balance.used_days = (balance.used_days or 0.0) + days

    def _restore(self, days):
        for balance in self:
            balance.used_days = max(0.0, (balance.used_days or 0.0) - days)


class ErpLeaveAccrual(models.AbstractModel):
    _name = 'erp.leave.accrual'
    _description = 'Leave Accrual Engine'

    @api.model
    def run_daily_accrual(self):
        """
        Daily cron: add annual_days / 365 to the current year balance of every
        active employee, for leave types with daily accrual enabled.
        """
        leave_types = self.env['hr.leave.type'].search([
            ('policy_daily_accrual', '=', True),
            ('policy_active', '=', True),
            ('active', '=', True),
        ])

        if not leave_types:
            _logger.warning('erp_approvals: No leave types with accrual enabled. Skipping.')
            return 0

        year = fields.Date.context_today(self).year
        employees = self.env['hr.employee'].search([('active', '=', True)])
        Balance = self.env['erp.leave.balance'].sudo()
        accrued = 0

        for leave_type in leave_types:
            amount = (leave_type.policy_annual_days or 0.0) / 365.0
            if amount <= 0:
                _logger.debug('Leave type %s has no annual entitlement, nothing to accrue', leave_type.name)
                continue
            for emp in employees:
                balance = Balance._get_balance(emp, leave_type, year)
                if not balance:
                    balance = Balance.create({
                        'employee_id': emp.id,
                        'leave_type_id': leave_type.id,
                        'year': year,
                    })
                balance.allocated_days = (balance.allocated_days or 0.0) + amount
                accrued += 1
                _logger.debug(
                    'Accrued %.4f day(s) for employee %s on leave type %s. New allocation: %.4f',
                    amount, emp.name, leave_type.name, balance.allocated_days
                )

        _logger.info('erp_approvals: accrued leave on %s balance(s)', accrued)
        return accrued
