# -*- coding: utf-8 -*-
"""
post_init_hook: runs after all models are registered and ir.model records exist.
Creates ACL, record rules, and applies leave policies to standard leave types.
"""
import logging
_logger = logging.getLogger(__name__)

MODULE = 'erp_approvals'


def post_init_hook(env):
    _set_leave_type_policies(env)
    _create_access_rights(env)
    _create_record_rules(env)


# ── Leave types ────────────────────────────────────────────────────────────────

def _set_leave_type_policies(env):
    """Apply approval policies to the leave types shipped by hr_holidays."""
    mappings = [
        ('hr_holidays.holiday_status_cl', {
            'policy_annual_days': 21.0,
            'policy_daily_accrual': True,
            'policy_min_tenure_months': 3,
            'policy_notice_days': 7,
        }),
        ('hr_holidays.holiday_status_sl', {
            'policy_accrual_mode': 'business_days',
            'policy_medical_certificate_after_days': 2,
        }),
        ('hr_holidays.holiday_status_unpaid', {
            'policy_affects_balance': False,
        }),
    ]
    for xmlid, vals in mappings:
        try:
            rec = env.ref(xmlid, raise_if_not_found=False)
            if rec:
                rec.write(vals)
        except Exception as e:
            _logger.warning('%s: could not set leave policy for %s: %s', MODULE, xmlid, e)


# ── Helpers ────────────────────────────────────────────────────────────────────

def _get_model(env, model_name):
    return env['ir.model'].search([('model', '=', model_name)], limit=1)


def _already_exists(env, model, name):
    return bool(env['ir.model.data'].search([
        ('module', '=', MODULE), ('name', '=', name), ('model', '=', model)
    ], limit=1))


def _register_xid(env, xml_name, model, res_id):
    env['ir.model.data'].create({
        'module': MODULE,
        'name': xml_name,
        'model': model,
        'res_id': res_id,
    })


def _groups(env):
    return {
        'emp': env.ref('erp_approvals.group_erp_employee'),
        'hr': env.ref('erp_approvals.group_erp_hr_officer'),
        'lead': env.ref('erp_approvals.group_erp_helpdesk_lead'),
        'corp': env.ref('erp_approvals.group_erp_corporate_services'),
        'md': env.ref('erp_approvals.group_erp_managing_director'),
        'admin': env.ref('erp_approvals.group_erp_admin'),
    }


# ── Access rights ──────────────────────────────────────────────────────────────

def _create_access_rights(env):
    IrModelAccess = env['ir.model.access']
    g = _groups(env)

    acls = [
        ('acl_leave_request_employee',  'erp.leave.request',        g['emp'],   True, True,  True,  True),
        ('acl_leave_request_hr',        'erp.leave.request',        g['hr'],    True, True,  True,  True),
        ('acl_leave_evidence_employee', 'erp.leave.evidence',       g['emp'],   True, False, True,  False),
        ('acl_leave_evidence_hr',       'erp.leave.evidence',       g['hr'],    True, True,  True,  True),
        ('acl_leave_approval_employee', 'erp.leave.approval',       g['emp'],   True, False, False, False),
        ('acl_leave_approval_hr',       'erp.leave.approval',       g['hr'],    True, False, False, False),
        ('acl_document_type_employee',  'erp.leave.document.type',  g['emp'],   True, False, False, False),
        ('acl_document_type_hr',        'erp.leave.document.type',  g['hr'],    True, True,  True,  True),
        ('acl_holiday_employee',        'erp.holiday.calendar',     g['emp'],   True, False, False, False),
        ('acl_holiday_hr',              'erp.holiday.calendar',     g['hr'],    True, True,  True,  True),
        ('acl_balance_employee',        'erp.leave.balance',        g['emp'],   True, False, False, False),
        ('acl_balance_hr',              'erp.leave.balance',        g['hr'],    True, True,  True,  True),
        ('acl_sla_policy_employee',     'erp.approval.sla.policy',  g['emp'],   True, False, False, False),
        ('acl_sla_policy_admin',        'erp.approval.sla.policy',  g['admin'], True, True,  True,  True),
        ('acl_life_event_hr',           'hr.employee.life.event',   g['hr'],    True, True,  True,  True),
        ('acl_ticket_employee',         'erp.helpdesk.ticket',      g['emp'],   True, True,  True,  False),
        ('acl_ticket_admin',            'erp.helpdesk.ticket',      g['admin'], True, True,  True,  True),
        ('acl_ticket_approval_employee', 'erp.helpdesk.approval',   g['emp'],   True, False, False, False),
        ('acl_ticket_approval_admin',   'erp.helpdesk.approval',    g['admin'], True, True,  True,  True),
        ('acl_ticket_comment_employee', 'erp.helpdesk.comment',     g['emp'],   True, False, True,  False),
        ('acl_ticket_comment_admin',    'erp.helpdesk.comment',     g['admin'], True, True,  True,  True),
        ('acl_ticket_event_employee',   'erp.helpdesk.event',       g['emp'],   True, False, False, False),
    ]

    for xid, model_name, group, r, w, c, d in acls:
        if _already_exists(env, 'ir.model.access', xid):
            continue
        model_rec = _get_model(env, model_name)
        if not model_rec:
            _logger.warning('%s: model %s not found, skipping ACL %s', MODULE, model_name, xid)
            continue
        rec = IrModelAccess.create({
            'name': f'{MODULE} {model_name} {group.name}',
            'model_id': model_rec.id,
            'group_id': group.id,
            'perm_read': r, 'perm_write': w,
            'perm_create': c, 'perm_unlink': d,
        })
        _register_xid(env, xid, 'ir.model.access', rec.id)


# ── Record rules ───────────────────────────────────────────────────────────────

def _create_record_rules(env):
    IrRule = env['ir.rule']
    g = _groups(env)
    everything = "[(1, '=', 1)]"

    rules = [
        (
            'rule_leave_request_employee', 'erp.leave.request',
            "['|', '|', '|', ('employee_id.user_id', '=', user.id), ('reliever_id.user_id', '=', user.id), "
            "('supervisor_id.user_id', '=', user.id), ('employee_id.parent_id.user_id', '=', user.id)]",
            [g['emp']], True, True, True, True,
        ),
        (
            'rule_leave_request_hr', 'erp.leave.request', everything,
            [g['hr']], True, True, True, True,
        ),
        (
            'rule_leave_evidence_employee', 'erp.leave.evidence',
            "['|', '|', ('request_id.employee_id.user_id', '=', user.id), "
            "('request_id.reliever_id.user_id', '=', user.id), ('request_id.supervisor_id.user_id', '=', user.id)]",
            [g['emp']], True, False, True, False,
        ),
        (
            'rule_leave_evidence_hr', 'erp.leave.evidence', everything,
            [g['hr']], True, True, True, True,
        ),
        (
            'rule_balance_employee', 'erp.leave.balance',
            "[('employee_id.user_id', '=', user.id)]",
            [g['emp']], True, False, False, False,
        ),
        (
            'rule_balance_hr', 'erp.leave.balance',
            "[('company_id', 'in', company_ids + [False])]",
            [g['hr']], True, True, True, True,
        ),
        (
            'rule_ticket_employee', 'erp.helpdesk.ticket',
            "['|', '|', ('requester_id', '=', user.id), ('assigned_to_id', '=', user.id), "
            "('service_department_id.manager_id.user_id', '=', user.id)]",
            [g['emp']], True, True, True, False,
        ),
        (
            'rule_ticket_lead', 'erp.helpdesk.ticket',
            "[('service_department_id.member_ids.user_id', '=', user.id)]",
            [g['lead']], True, True, True, False,
        ),
        (
            'rule_ticket_approvers', 'erp.helpdesk.ticket',
            "[('state', 'in', ('pending_approval', 'approved_for_procurement', 'rejected'))]",
            [g['corp'], g['md']], True, False, False, False,
        ),
        (
            'rule_ticket_admin', 'erp.helpdesk.ticket', everything,
            [g['admin']], True, True, True, True,
        ),
        (
            'rule_ticket_comment_employee', 'erp.helpdesk.comment',
            "['|', '|', ('ticket_id.assigned_to_id', '=', user.id), "
            "('ticket_id.service_department_id.manager_id.user_id', '=', user.id), "
            "'&', ('ticket_id.requester_id', '=', user.id), "
            "'|', ('visibility', '=', 'requester'), ('author_id', '=', user.id)]",
            [g['emp']], True, False, True, False,
        ),
        (
            'rule_ticket_comment_staff', 'erp.helpdesk.comment', everything,
            [g['lead'], g['admin']], True, True, True, True,
        ),
    ]

    for xid, model_name, domain, groups, r, w, c, d in rules:
        if _already_exists(env, 'ir.rule', xid):
            continue
        model_rec = _get_model(env, model_name)
        if not model_rec:
            _logger.warning('%s: model %s not found, skipping rule %s', MODULE, model_name, xid)
            continue
        rec = IrRule.create({
            'name': f'{MODULE}: {xid}',
            'model_id': model_rec.id,
            'domain_force': domain,
            'groups': [(6, 0, [grp.id for grp in groups])],
            'perm_read': r, 'perm_write': w,
            'perm_create': c, 'perm_unlink': d,
        })
        _register_xid(env, xid, 'ir.rule', rec.id)
