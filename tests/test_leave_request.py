# -*- coding: utf-8 -*-
from datetime import timedelta

from odoo import fields
from odoo.exceptions import AccessError, UserError, ValidationError
from odoo.tests import tagged

from .common import ErpApprovalsCommon


@tagged('erp_approvals', 'post_install', '-at_install')
class TestLeaveRequest(ErpApprovalsCommon):

    def test_submit_enters_reliever_stage(self):
        request = self._submit(self._create_request())
        self.assertEqual(request.state, 'reliever_pending')
        self.assertEqual(request.supervisor_id, self.emp_supervisor)
        self.assertEqual(request.date_end, self.start + timedelta(days=2))
        self.assertEqual(request.date_resume, self.start + timedelta(days=3))
        self.assertTrue(request.stage_entered_at)
        self.assertTrue(request.name.startswith('LV/'))
        activity_users = request.activity_ids.mapped('user_id')
        self.assertEqual(activity_users, self.user_reliever)

    def test_submit_without_reliever_goes_to_supervisor(self):
        request = self._submit(self._create_request(reliever_id=False))
        self.assertEqual(request.state, 'supervisor_pending')

    def test_full_approval_chain(self):
        """Reliever, supervisor and HR approve in order"""
        request = self._approve_all(self._submit(self._create_request()))
        self.assertEqual(request.state, 'approved')
        self.assertEqual(request.approved_by_id, self.user_hr)
        self.assertTrue(request.approved_date)
        self.assertEqual(request.approval_ids.mapped('level'), [3, 2, 1])
        self.assertEqual(set(request.approval_ids.mapped('decision')), {'approved'})
        self.assertFalse(request.activity_ids)

    def test_wrong_approver_is_refused(self):
        request = self._submit(self._create_request())
        with self.assertRaises(AccessError):
            request.with_user(self.user_supervisor).action_approve()
        with self.assertRaises(AccessError):
            request.with_user(self.user_outsider).action_reject('no')
        self.assertEqual(request.state, 'reliever_pending')

    def test_hr_override_allowed_by_policy(self):
        request = self._submit(self._create_request())
        request.with_user(self.user_hr).action_approve('reliever is travelling')
        self.assertEqual(request.state, 'supervisor_pending')

        self.leave_type.policy_override_allowed = False
        with self.assertRaises(AccessError):
            request.with_user(self.user_hr).action_approve()

    def test_reject_records_reason(self):
        request = self._submit(self._create_request())
        request.with_user(self.user_reliever).action_approve()
        request.with_user(self.user_supervisor).action_reject('Peak season')
        self.assertEqual(request.state, 'rejected')
        self.assertEqual(request.rejected_reason, 'Peak season')
        self.assertEqual(request.approval_ids[0].decision, 'rejected')
        self.assertEqual(request.approval_ids[0].stage, 'supervisor_pending')

    def test_self_reliever_is_refused(self):
        with self.assertRaises(ValidationError):
            self._create_request(reliever_id=self.emp_requester.id)

    def test_overlap_with_own_leave(self):
        self._submit(self._create_request())
        second = self._create_request(date_start=self.start + timedelta(days=2), reliever_id=False)
        with self.assertRaisesRegex(UserError, 'overlapping'):
            self._submit(second)

    def test_reliever_on_leave_is_unavailable(self):
        self.env['erp.leave.request'].create({
            'employee_id': self.emp_reliever.id,
            'leave_type_id': self.leave_type.id,
            'date_start': self.start + timedelta(days=1),
            'days_count': 1,
        }).action_submit()
        with self.assertRaisesRegex(UserError, 'reliever is unavailable'):
            self._submit(self._create_request())

    def test_not_eligible_blocks_submission(self):
        self.leave_type.policy_eligibility = 'male_only'
        request = self._create_request()
        with self.assertRaisesRegex(UserError, 'male employees'):
            self._submit(request)
        self.assertEqual(request.state, 'draft')

    def test_insufficient_balance(self):
        self.env['erp.leave.balance'].create({
            'employee_id': self.emp_requester.id,
            'leave_type_id': self.leave_type.id,
            'year': self.start.year,
            'allocated_days': 2,
        })
        with self.assertRaisesRegex(UserError, 'Insufficient leave balance'):
            self._submit(self._create_request())

    def test_only_requester_submits(self):
        with self.assertRaises(AccessError):
            self._create_request().with_user(self.user_outsider).action_submit()

    def test_edit_and_delete_only_in_draft(self):
        request = self._create_request()
        request.with_user(self.user_requester).write({'days_count': 2})
        self._submit(request)
        with self.assertRaisesRegex(UserError, 'Only draft'):
            request.with_user(self.user_requester).write({'days_count': 5})
        with self.assertRaisesRegex(UserError, 'Only draft'):
            request.unlink()

    def test_workflow_fields_not_writable_by_requester(self):
        """Status, approver and document fields only change through the actions"""
        request = self._submit(self._create_request())
        as_requester = request.with_user(self.user_requester)
        tampering = [
            {'state': 'approved'},
            {'required_document_ids': [(5,)]},
            {'supervisor_id': self.emp_reliever.id},
            {'approved_by_id': self.user_requester.id},
            {'date_end': self.start},
            {'stage_entered_at': fields.Datetime.now()},
        ]
        for vals in tampering:
            with self.assertRaises(AccessError):
                as_requester.write(vals)
        self.assertEqual(request.state, 'reliever_pending')
        self.assertEqual(request.supervisor_id, self.emp_supervisor)
        self.assertFalse(request.approval_ids)

        # Free-text fields stay editable
        as_requester.write({'handover_note': 'Keys are with Remy'})
        self.assertEqual(request.handover_note, 'Keys are with Remy')

    def test_requester_cannot_create_decided_request(self):
        Request = self.env['erp.leave.request'].with_user(self.user_requester)
        values = {
            'employee_id': self.emp_requester.id,
            'leave_type_id': self.leave_type.id,
            'date_start': self.start,
            'days_count': 3,
        }
        with self.assertRaises(AccessError):
            Request.create(dict(values, state='approved'))
        with self.assertRaises(AccessError):
            Request.create(dict(values, supervisor_id=self.emp_requester.id))
        draft = Request.create(dict(values, state='draft'))
        self.assertEqual(draft.state, 'draft')

    def test_requester_cannot_be_own_supervisor(self):
        """The supervisor is always resolved from the employee on submit"""
        request = self._create_request(reliever_id=False, supervisor_id=self.emp_requester.id)
        self._submit(request)
        self.assertEqual(request.state, 'supervisor_pending')
        self.assertEqual(request.supervisor_id, self.emp_supervisor)
        with self.assertRaises(AccessError):
            request.with_user(self.user_requester).action_approve()
        self.assertEqual(request.state, 'supervisor_pending')

    def test_withdraw(self):
        request = self._submit(self._create_request())
        with self.assertRaises(AccessError):
            request.with_user(self.user_reliever).action_withdraw()
        request.with_user(self.user_requester).action_withdraw('Plans changed')
        self.assertEqual(request.state, 'cancelled')
        self.assertEqual(request.rejected_reason, 'Plans changed')
        with self.assertRaises(UserError):
            request.with_user(self.user_requester).action_withdraw()

    def test_approval_queue(self):
        request = self._submit(self._create_request())
        queue = self.env['erp.leave.request'].with_user(self.user_reliever).get_approval_queue()
        self.assertEqual([row['id'] for row in queue], [request.id])
        self.assertEqual(queue[0]['sla']['due_status'], 'on_track')
        self.assertFalse(self.env['erp.leave.request'].with_user(self.user_supervisor).get_approval_queue())

        request.with_user(self.user_reliever).action_approve()
        request.with_user(self.user_supervisor).action_approve()
        hr_queue = self.env['erp.leave.request'].with_user(self.user_hr).get_approval_queue()
        self.assertIn(request.id, [row['id'] for row in hr_queue])

    def test_cancel_approved_restores_balance(self):
        balance = self.env['erp.leave.balance'].create({
            'employee_id': self.emp_requester.id,
            'leave_type_id': self.leave_type.id,
            'year': self.start.year,
            'allocated_days': 10,
        })
        request = self._approve_all(self._submit(self._create_request()))
        self.assertEqual(balance.used_days, 3)

        request.with_user(self.user_requester).action_cancel_approved('Not needed')
        self.assertEqual(request.state, 'cancelled')
        self.assertEqual(balance.used_days, 0)

    def test_requester_cannot_cancel_started_leave(self):
        request = self._approve_all(self._submit(self._create_request()))
        request._workflow_write({'date_start': fields.Date.today()})
        with self.assertRaisesRegex(UserError, 'before it starts'):
            request.with_user(self.user_requester).action_cancel_approved()
        request.with_user(self.user_hr).action_cancel_approved('HR correction')
        self.assertEqual(request.state, 'cancelled')

    def test_extension_starts_after_original(self):
        request = self._approve_all(self._submit(self._create_request()))
        extension = request.with_user(self.user_requester).action_request_extension(2, 'Still unwell')
        self.assertEqual(extension.request_kind, 'extension')
        self.assertEqual(extension.original_request_id, request)
        self.assertEqual(extension.date_start, request.date_end + timedelta(days=1))
        self.assertEqual(extension.date_end, request.date_end + timedelta(days=2))
        self.assertEqual(extension.state, 'reliever_pending')

        with self.assertRaises(UserError):
            request.with_user(self.user_requester).action_request_extension(0)

    def test_extension_requires_approved_leave(self):
        request = self._submit(self._create_request())
        with self.assertRaisesRegex(UserError, 'Only approved leave'):
            request.with_user(self.user_requester).action_request_extension(2)

    def test_early_return(self):
        balance = self.env['erp.leave.balance'].create({
            'employee_id': self.emp_requester.id,
            'leave_type_id': self.leave_type.id,
            'year': self.start.year,
            'allocated_days': 10,
        })
        request = self._approve_all(self._submit(self._create_request(days_count=5)))
        with self.assertRaises(AccessError):
            request.with_user(self.user_requester).action_early_return(self.start)

        return_date = fields.Date.to_string(self.start + timedelta(days=1))
        restored = request.with_user(self.user_hr).action_early_return(return_date, 'Back early')
        self.assertEqual(restored, 3)
        self.assertEqual(request.days_count, 2)
        self.assertEqual(request.date_end, self.start + timedelta(days=1))
        self.assertEqual(balance.used_days, 2)

        with self.assertRaisesRegex(UserError, 'within the leave period'):
            request.with_user(self.user_hr).action_early_return(self.start + timedelta(days=10))

    def test_payroll_feed(self):
        request = self._approve_all(self._submit(self._create_request()))
        with self.assertRaises(AccessError):
            self.env['erp.leave.request'].with_user(self.user_requester).get_payroll_feed()
        feed = self.env['erp.leave.request'].with_user(self.user_hr).get_payroll_feed(
            fields.Date.to_string(self.start), fields.Date.to_string(self.start + timedelta(days=5)))
        self.assertEqual([row['id'] for row in feed], [request.id])
        self.assertEqual(feed[0]['state'], 'approved')

    def test_business_days_follow_holiday_calendar(self):
        self.leave_type.policy_accrual_mode = 'business_days'
        start = self.start
        while start.weekday() != 4:
            start += timedelta(days=1)
        self.env['erp.holiday.calendar'].create({
            'name': 'Founders Day',
            'holiday_date': start + timedelta(days=3),
        })
        request = self._submit(self._create_request(date_start=start, days_count=2))
        self.assertEqual(request.date_end, start + timedelta(days=4))
        self.assertEqual(request.date_resume, start + timedelta(days=5))
