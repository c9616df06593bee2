# -*- coding: utf-8 -*-
{
    'name': 'ERP Approvals - Leave & Help Desk Workflows',
    'version': '19.0.1.0.0',
    'category': 'Human Resources',
    'summary': 'Policy-driven leave approvals with evidence and SLA tracking, help desk tickets with procurement approvals',
    'description': """
        Approval workflows for Odoo 19 Community including:
        - Leave requests with reliever, supervisor and HR approval stages
        - Leave policy engine with eligibility rules and evidence requirements
        - Approval SLA reminders and escalations
        - Leave balances with daily accrual and a payroll feed
        - Help desk tickets with business-hour SLA targets and procurement approvals
    """,
    'author': 'Ali Musa Alhashim',
    'depends': ['base', 'mail', 'hr', 'hr_holidays', 'web'],
    'data': [
        # Security
        'security/erp_approvals_groups.xml',

        # Data
        'data/ir_sequence_data.xml',
        'data/config_parameter_data.xml',
        'data/document_type_data.xml',
        'data/sla_policy_data.xml',
        'data/leave_type_data.xml',
        'data/cron_data.xml',
        # Views
        'views/leave_request_views.xml',
        'views/leave_config_views.xml',
        'views/helpdesk_ticket_views.xml',
        'views/menu_views.xml',
    ],
    'post_init_hook': 'post_init_hook',
    'installable': True,
    'application': True,
    'auto_install': False,
    'license': 'LGPL-3',
}
