# -*- coding: utf-8 -*-
from datetime import date, datetime

from odoo.tests import TransactionCase, tagged

from odoo.addons.erp_approvals.utils import workflow_dates


@tagged('erp_approvals', 'post_install', '-at_install')
class TestWorkflowDates(TransactionCase):

    def test_calendar_days_include_weekends(self):
        """Calendar leave counts every day and resumes the next day"""
        end, resume = workflow_dates.compute_leave_dates(date(2024, 1, 5), 3)
        self.assertEqual(end, date(2024, 1, 7))
        self.assertEqual(resume, date(2024, 1, 8))

    def test_business_days_skip_weekend(self):
        """Business leave starting on a Friday ends on Monday"""
        end, resume = workflow_dates.compute_leave_dates(
            date(2024, 1, 5), 2, workflow_dates.BUSINESS_DAYS)
        self.assertEqual(end, date(2024, 1, 8))
        self.assertEqual(resume, date(2024, 1, 9))

    def test_business_days_skip_holidays(self):
        """Holidays are not counted and push the resumption date"""
        end, resume = workflow_dates.compute_leave_dates(
            date(2024, 1, 5), 2, workflow_dates.BUSINESS_DAYS, {date(2024, 1, 8)})
        self.assertEqual(end, date(2024, 1, 9))
        self.assertEqual(resume, date(2024, 1, 10))

    def test_non_positive_days_rejected(self):
        with self.assertRaises(ValueError):
            workflow_dates.compute_leave_dates(date(2024, 1, 5), 0)

    def test_parse_iso_date(self):
        self.assertEqual(workflow_dates.parse_iso_date('2024-02-29'), date(2024, 2, 29))
        self.assertEqual(workflow_dates.parse_iso_date(datetime(2024, 2, 29, 10, 0)), date(2024, 2, 29))
        with self.assertRaises(ValueError):
            workflow_dates.parse_iso_date('29/02/2024')

    def test_parse_iso_date_rejects_trailing_text(self):
        """Only a full date or a full ISO datetime string is accepted"""
        self.assertEqual(workflow_dates.parse_iso_date('2024-01-01 08:30:00'), date(2024, 1, 1))
        self.assertEqual(workflow_dates.parse_iso_date(' 2024-01-01 '), date(2024, 1, 1))
        for value in ('2024-01-01garbage', '2024-13-01', ''):
            with self.assertRaisesRegex(ValueError, 'Invalid date format'):
                workflow_dates.parse_iso_date(value)

    def test_months_between_ignores_day(self):
        self.assertEqual(workflow_dates.months_between(date(2023, 11, 30), date(2024, 2, 1)), 3)

    def test_urgent_sla_rolls_over_weekend(self):
        """Four business hours from Friday 16:00 end on Monday 11:00"""
        target = workflow_dates.help_desk_sla_target('urgent', datetime(2024, 1, 5, 16, 0))
        self.assertEqual(target, datetime(2024, 1, 8, 11, 0))

    def test_urgent_sla_same_day(self):
        target = workflow_dates.help_desk_sla_target('urgent', datetime(2024, 1, 1, 10, 0))
        self.assertEqual(target, datetime(2024, 1, 1, 14, 0))

    def test_medium_and_low_sla_use_business_days(self):
        submitted = datetime(2024, 1, 5, 9, 30)
        self.assertEqual(workflow_dates.help_desk_sla_target('medium', submitted), datetime(2024, 1, 10, 9, 30))
        self.assertEqual(workflow_dates.help_desk_sla_target('low', submitted), datetime(2024, 1, 16, 9, 30))

    def test_sla_due_status(self):
        entered = datetime(2024, 1, 1, 8, 0)
        due_at, status, hours = workflow_dates.sla_due_status(entered, 24, 4, datetime(2024, 1, 1, 10, 0))
        self.assertEqual(due_at, datetime(2024, 1, 2, 8, 0))
        self.assertEqual((status, hours), ('on_track', 22))

        _due, status, hours = workflow_dates.sla_due_status(entered, 24, 4, datetime(2024, 1, 2, 5, 30))
        self.assertEqual((status, hours), ('due_soon', 2))

        _due, status, hours = workflow_dates.sla_due_status(entered, 24, 4, datetime(2024, 1, 2, 9, 30))
        self.assertEqual((status, hours), ('overdue', -2))
