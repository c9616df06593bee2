# -*- coding: utf-8 -*-
from datetime import timedelta

from odoo import fields
from odoo.tests import tagged

from .common import ErpApprovalsCommon


@tagged('erp_approvals', 'post_install', '-at_install')
class TestLeaveSla(ErpApprovalsCommon):

    def _age(self, request, hours):
        request._workflow_write({'stage_entered_at': fields.Datetime.now() - timedelta(hours=hours)})

    def _notes(self, request, title):
        return request.message_ids.filtered(lambda m: title in (m.body or ''))

    def test_sla_fields_follow_stage_policy(self):
        request = self._submit(self._create_request())
        policy = self.env.ref('erp_approvals.sla_policy_reliever')
        self.assertEqual(request.sla_due_at, request.stage_entered_at + timedelta(hours=policy.due_hours))
        self.assertEqual(request.sla_status, 'on_track')
        self._age(request, policy.due_hours + 1)
        request.invalidate_recordset(['sla_status'])
        self.assertEqual(request.sla_status, 'overdue')

    def test_reminder_sent_once(self):
        request = self._submit(self._create_request())
        self._age(request, 21)
        self.env['erp.leave.request']._cron_process_sla()
        self.assertTrue(request.sla_reminder_sent)
        self.assertEqual(len(self._notes(request, 'Leave approval SLA reminder')), 1)

        self.env['erp.leave.request']._cron_process_sla()
        self.assertEqual(len(self._notes(request, 'Leave approval SLA reminder')), 1)

    def test_overdue_escalates_to_policy_group(self):
        request = self._submit(self._create_request())
        self._age(request, 30)
        self.env['erp.leave.request']._cron_process_sla()
        self.assertTrue(request.sla_escalated)
        self.assertEqual(len(self._notes(request, 'Leave approval SLA breached')), 1)

    def test_no_escalation_without_group(self):
        self.env.ref('erp_approvals.sla_policy_reliever').escalate_group_id = False
        request = self._submit(self._create_request())
        self._age(request, 30)
        self.env['erp.leave.request']._cron_process_sla()
        self.assertFalse(request.sla_escalated)

    def test_stage_change_resets_sla_flags(self):
        request = self._submit(self._create_request())
        self._age(request, 21)
        self.env['erp.leave.request']._cron_process_sla()
        self.assertTrue(request.sla_reminder_sent)

        request.with_user(self.user_reliever).action_approve()
        self.assertEqual(request.state, 'supervisor_pending')
        self.assertFalse(request.sla_reminder_sent)
        self.assertEqual(request.sla_status, 'on_track')

    def test_default_policy_when_stage_not_configured(self):
        self.env['erp.approval.sla.policy'].search([]).write({'active': False})
        due, reminder, group = self.env['erp.approval.sla.policy']._get_for_stage('hr_pending')
        self.assertEqual((due, reminder), (24, 4))
        self.assertFalse(group)
