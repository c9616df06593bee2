# -*- coding: utf-8 -*-
from odoo import fields
from odoo.exceptions import ValidationError
from odoo.tests import tagged

from .common import ErpApprovalsCommon


@tagged('erp_approvals', 'post_install', '-at_install')
class TestLeaveBalance(ErpApprovalsCommon):

    def test_balance_is_allocated_minus_used(self):
        balance = self.env['erp.leave.balance'].create({
            'employee_id': self.emp_requester.id,
            'leave_type_id': self.leave_type.id,
            'allocated_days': 12,
            'used_days': 4.5,
        })
        self.assertEqual(balance.balance_days, 7.5)
        balance._restore(10)
        self.assertEqual(balance.used_days, 0)

    def test_negative_days_rejected(self):
        with self.assertRaises(ValidationError):
            self.env['erp.leave.balance'].create({
                'employee_id': self.emp_requester.id,
                'leave_type_id': self.leave_type.id,
                'allocated_days': -1,
            })

    def test_daily_accrual(self):
        """Accrual adds annual_days / 365 to this year's balance"""
        self.env['hr.leave.type'].search([]).write({'policy_daily_accrual': False})
        self.leave_type.write({'policy_daily_accrual': True, 'policy_annual_days': 36.5})

        count = self.env['erp.leave.accrual'].run_daily_accrual()
        self.assertGreaterEqual(count, 4)
        balance = self.env['erp.leave.balance']._get_balance(
            self.emp_requester, self.leave_type, fields.Date.today().year)
        self.assertAlmostEqual(balance.allocated_days, 0.1, places=4)

        self.env['erp.leave.accrual'].run_daily_accrual()
        self.assertAlmostEqual(balance.allocated_days, 0.2, places=4)

    def test_accrual_without_types_is_a_no_op(self):
        self.env['hr.leave.type'].search([]).write({'policy_daily_accrual': False})
        self.assertEqual(self.env['erp.leave.accrual'].run_daily_accrual(), 0)

    def test_final_approval_creates_balance_row(self):
        request = self._approve_all(self._submit(self._create_request()))
        balance = self.env['erp.leave.balance']._get_balance(
            self.emp_requester, self.leave_type, request.date_start.year)
        self.assertEqual(balance.used_days, 3)

    def test_unpaid_types_do_not_touch_balance(self):
        self.leave_type.policy_affects_balance = False
        self._approve_all(self._submit(self._create_request()))
        self.assertFalse(self.env['erp.leave.balance']._get_balance(
            self.emp_requester, self.leave_type, self.start.year))
