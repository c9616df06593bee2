# -*- coding: utf-8 -*-
"""
Notification fan-out for the approval workflows.

Every workflow step that needs to tell someone something goes through
``erp.workflow.notifier.notify``: it logs the notice on the record, opens a
to-do activity for approval requests and queues one e-mail for all
recipients.
"""
import logging

from markupsafe import Markup

from odoo import api, models

_logger = logging.getLogger(__name__)

PARAM_MAIL_ENABLED = 'erp_approvals.mail_enabled'
PARAM_TEST_RECIPIENT = 'erp_approvals.mail_test_recipient'
PARAM_MAIL_FROM = 'erp_approvals.mail_from'


class ErpWorkflowNotifier(models.AbstractModel):
    _name = 'erp.workflow.notifier'
    _description = 'Approval Workflow Notifications'

    @api.model
    def _get_param(self, key, default=False):
        return self.env['ir.config_parameter'].sudo().get_param(key, default)

    @api.model
    def _mail_enabled(self):
        return str(self._get_param(PARAM_MAIL_ENABLED, '1')).strip().lower() not in ('0', 'false', 'no', '')

    @api.model
    def _collect_emails(self, users):
        emails = []
        employees = self.env['hr.employee'].sudo().search([('user_id', 'in', users.ids)])
        for email in employees._get_notification_emails() + users.sudo().mapped('email'):
            email = (email or '').strip().lower()
            if email and email not in emails:
                emails.append(email)
        return emails

    @api.model
    def _users_in_groups(self, groups):
        """Internal users holding any of ``groups``, implied groups included."""
        xmlids = [xmlid for xmlid in groups.sudo().get_external_id().values() if xmlid]
        if not xmlids:
            return self.env['res.users']
        users = self.env['res.users'].sudo().search([('share', '=', False)])
        return users.filtered(lambda u: any(u.has_group(xmlid) for xmlid in xmlids))

    @api.model
    def _record_url(self, record, link_path=None):
        base_url = record.get_base_url() if record else self._get_param('web.base.url', '')
        if link_path:
            return '%s%s' % (base_url, link_path)
        return '%s/mail/view?model=%s&res_id=%s' % (base_url, record._name, record.id)

    @api.model
    def _build_email_html(self, title, message, url, reference=None, cta_label='Open in ERP'):
        body = Markup(
            '<div style="font-family:Arial,sans-serif;max-width:620px;margin:0 auto;padding:24px;'
            'border:1px solid #e5e7eb;border-radius:10px;">'
            '<h2 style="margin:0 0 12px;color:#0f172a;">%s</h2>'
            '<p style="margin:0 0 16px;color:#334155;line-height:1.6;">%s</p>'
        ) % (title, message)
        if reference:
            body += Markup('<p style="margin:0 0 20px;color:#0f172a;"><strong>Reference:</strong> %s</p>') % reference
        body += Markup(
            '<a href="%s" style="display:inline-block;background:#166534;color:#fff;padding:10px 14px;'
            'text-decoration:none;border-radius:8px;">%s</a></div>'
        ) % (url, cta_label)
        return body

    @api.model
    def notify(self, record, users, title, message, link_path=None, subject=None, activity=False):
        """
        Notify ``users`` about ``record``.

        :param activity: schedule a to-do activity per user, used for
            approval requests
        :return: dict with the notified user ids and the e-mail recipients
        """
        users = users.filtered(lambda u: u and u.active) if users else self.env['res.users']
        users = users.browse(list(dict.fromkeys(users.ids)))
        if not users:
            return {'user_ids': [], 'emails': []}

        record.sudo().message_post(
            body=Markup('<strong>%s</strong><br/>%s') % (title, message),
            subtype_xmlid='mail.mt_note',
        )

        if activity and hasattr(record, 'activity_schedule'):
            for user in users:
                record.sudo().activity_schedule(
                    'mail.mail_activity_data_todo',
                    user_id=user.id,
                    summary=title,
                    note=message,
                )

        emails = self._send_email(record, users, title, message, link_path, subject)
        return {'user_ids': users.ids, 'emails': emails}

    @api.model
    def _send_email(self, record, users, title, message, link_path=None, subject=None):
        if not self._mail_enabled():
            _logger.debug('erp_approvals: mail disabled, skipping "%s"', title)
            return []

        override = (self._get_param(PARAM_TEST_RECIPIENT) or '').strip().lower()
        emails = [override] if override else self._collect_emails(users)
        if not emails:
            return []

        try:
            vals = {
                'subject': subject or title,
                'body_html': self._build_email_html(
                    title, message, self._record_url(record, link_path),
                    reference=record.display_name,
                ),
                'email_to': ','.join(emails),
                'model': record._name,
                'res_id': record.id,
                'auto_delete': True,
            }
            email_from = self._get_param(PARAM_MAIL_FROM) or self.env.company.email_formatted
            if email_from:
                vals['email_from'] = email_from
            self.env['mail.mail'].sudo().create(vals)
        except Exception:
            _logger.exception('erp_approvals: could not queue notification mail "%s"', title)
            return []
        return emails
