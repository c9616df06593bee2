# -*- coding: utf-8 -*-
from datetime import timedelta

from odoo import fields
from odoo.tests import TransactionCase, new_test_user


class ErpApprovalsCommon(TransactionCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.env['ir.config_parameter'].sudo().set_param('erp_approvals.mail_enabled', '0')

        emp_groups = 'base.group_user,erp_approvals.group_erp_employee'
        cls.user_requester = new_test_user(
            cls.env, login='erp_requester', groups=emp_groups,
            name='Rita Requester', email='rita@example.com')
        cls.user_reliever = new_test_user(
            cls.env, login='erp_reliever', groups=emp_groups,
            name='Remy Reliever', email='remy@example.com')
        cls.user_supervisor = new_test_user(
            cls.env, login='erp_supervisor', groups=emp_groups,
            name='Sam Supervisor', email='sam@example.com')
        cls.user_hr = new_test_user(
            cls.env, login='erp_hr', groups='base.group_user,erp_approvals.group_erp_hr_officer',
            name='Hana HR', email='hana@example.com')
        cls.user_outsider = new_test_user(
            cls.env, login='erp_outsider', groups=emp_groups,
            name='Otto Outsider', email='otto@example.com')

        Employee = cls.env['hr.employee']
        cls.emp_supervisor = Employee.create({
            'name': 'Sam Supervisor',
            'user_id': cls.user_supervisor.id,
            'work_email': 'sam@example.com',
        })
        cls.department = cls.env['hr.department'].create({
            'name': 'Operations',
            'manager_id': cls.emp_supervisor.id,
        })
        cls.emp_requester = Employee.create({
            'name': 'Rita Requester',
            'user_id': cls.user_requester.id,
            'parent_id': cls.emp_supervisor.id,
            'department_id': cls.department.id,
            'work_email': 'Rita@Example.com',
            'private_email': 'rita.home@example.com',
            'gender': 'female',
            'employment_date': fields.Date.today() - timedelta(days=800),
            'employee_type': 'employee',
        })
        cls.emp_reliever = Employee.create({
            'name': 'Remy Reliever',
            'user_id': cls.user_reliever.id,
            'department_id': cls.department.id,
            'work_email': 'remy@example.com',
            'gender': 'male',
        })
        cls.emp_hr = Employee.create({
            'name': 'Hana HR',
            'user_id': cls.user_hr.id,
            'work_email': 'hana@example.com',
        })

        cls.leave_type = cls.env['hr.leave.type'].create({
            'name': 'Test Annual Leave',
            'policy_annual_days': 20,
            'policy_accrual_mode': 'calendar_days',
        })
        cls.doc_medical = cls.env.ref('erp_approvals.document_medical_certificate')
        cls.start = fields.Date.today() + timedelta(days=30)

    def _create_request(self, **vals):
        values = {
            'employee_id': self.emp_requester.id,
            'leave_type_id': self.leave_type.id,
            'date_start': self.start,
            'days_count': 3,
            'reliever_id': self.emp_reliever.id,
        }
        values.update(vals)
        return self.env['erp.leave.request'].create(values)

    def _submit(self, request):
        request.with_user(self.user_requester).action_submit()
        return request

    def _approve_all(self, request):
        request.with_user(self.user_reliever).action_approve('ok')
        request.with_user(self.user_supervisor).action_approve('ok')
        request.with_user(self.user_hr).action_approve('ok')
        return request


class HelpdeskCommon(ErpApprovalsCommon):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.user_agent = new_test_user(
            cls.env, login='erp_agent', groups='base.group_user',
            name='Alex Agent', email='alex@example.com')
        cls.user_lead = new_test_user(
            cls.env, login='erp_lead', groups='base.group_user,erp_approvals.group_erp_helpdesk_lead',
            name='Lena Lead', email='lena@example.com')
        cls.user_corporate = new_test_user(
            cls.env, login='erp_corporate', groups='base.group_user,erp_approvals.group_erp_corporate_services',
            name='Cora Corporate', email='cora@example.com')
        cls.user_director = new_test_user(
            cls.env, login='erp_director', groups='base.group_user,erp_approvals.group_erp_managing_director',
            name='Dario Director', email='dario@example.com')
        cls.user_admin = new_test_user(
            cls.env, login='erp_admin', groups='base.group_user,erp_approvals.group_erp_admin',
            name='Ada Admin', email='ada@example.com')

        cls.it_department = cls.env['hr.department'].create({'name': 'IT Services'})
        cls.env['hr.employee'].create({
            'name': 'Lena Lead',
            'user_id': cls.user_lead.id,
            'department_id': cls.it_department.id,
        })
        cls.env['hr.employee'].create({
            'name': 'Alex Agent',
            'user_id': cls.user_agent.id,
            'department_id': cls.it_department.id,
        })

    def _create_ticket(self, user=None, **vals):
        values = {
            'title': 'Laptop will not boot',
            'description': 'Black screen after the latest update.',
            'service_department_id': self.it_department.id,
            'priority': 'high',
        }
        values.update(vals)
        return self.env['erp.helpdesk.ticket'].with_user(user or self.user_requester).create(values)

    def _events(self, ticket, event_type):
        return ticket.sudo().event_ids.filtered(lambda e: e.event_type == event_type)
