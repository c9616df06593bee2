# -*- coding: utf-8 -*-
import logging

from odoo import http
from odoo.http import request
from odoo.exceptions import UserError

from .leave_controller import _run

_logger = logging.getLogger(__name__)


def _get_ticket(ticket_id):
    ticket = request.env['erp.helpdesk.ticket'].sudo().browse(int(ticket_id or 0)).exists()
    if not ticket:
        raise UserError('Ticket not found.')
    # Actions run as the caller; each one checks the caller's role itself
    return ticket.with_user(request.env.user)


class HelpdeskController(http.Controller):

    @http.route('/erp_approvals/helpdesk/create', type='json', auth='user', methods=['POST'], csrf=True)
    def create_ticket(self, **kwargs):
        """
        Expected JSON payload:
          - title, description (str)
          - service_department_id (int)
          - priority (low, medium, high, urgent)
          - request_type (support or procurement)
          - category (str, optional)
        """
        def _create():
            priority = kwargs.get('priority') or 'medium'
            if priority not in ('low', 'medium', 'high', 'urgent'):
                raise UserError('Invalid priority.')
            ticket = request.env['erp.helpdesk.ticket'].sudo().create({
                'title': kwargs.get('title'),
                'description': kwargs.get('description'),
                'service_department_id': int(kwargs.get('service_department_id') or 0) or False,
                'priority': priority,
                'request_type': 'procurement' if kwargs.get('request_type') == 'procurement' else 'support',
                'category': kwargs.get('category'),
                'requester_id': request.env.uid,
            })
            return {'id': ticket.id, 'ticket_number': ticket.name, 'state': ticket.state}
        return _run('ticket creation', _create)

    @http.route('/erp_approvals/helpdesk/list', type='json', auth='user', methods=['POST'], csrf=True)
    def list_tickets(self, scope='mine', **kwargs):
        return _run('ticket list', lambda: request.env['erp.helpdesk.ticket'].get_ticket_list(scope))

    @http.route('/erp_approvals/helpdesk/detail', type='json', auth='user', methods=['POST'], csrf=True)
    def detail(self, ticket_id=None, **kwargs):
        return _run('ticket detail', lambda: _get_ticket(ticket_id).get_ticket_detail())

    @http.route('/erp_approvals/helpdesk/assign', type='json', auth='user', methods=['POST'], csrf=True)
    def assign(self, ticket_id=None, assigned_to=None, **kwargs):
        def _assign():
            if not assigned_to:
                raise UserError('assigned_to is required.')
            ticket = _get_ticket(ticket_id)
            ticket.action_assign(int(assigned_to))
            return {'id': ticket.id, 'state': ticket.state}
        return _run('ticket assignment', _assign)

    @http.route('/erp_approvals/helpdesk/state', type='json', auth='user', methods=['POST'], csrf=True)
    def set_state(self, ticket_id=None, state=None, **kwargs):
        def _set_state():
            ticket = _get_ticket(ticket_id)
            ticket.action_set_state(state)
            return {'id': ticket.id, 'state': ticket.state}
        return _run('ticket state change', _set_state)

    @http.route('/erp_approvals/helpdesk/rate', type='json', auth='user', methods=['POST'], csrf=True)
    def rate(self, ticket_id=None, rating=None, feedback=None, **kwargs):
        def _rate():
            ticket = _get_ticket(ticket_id)
            ticket.action_rate(rating, feedback)
            return {'id': ticket.id, 'csat_rating': ticket.csat_rating}
        return _run('ticket rating', _rate)

    @http.route('/erp_approvals/helpdesk/pivot', type='json', auth='user', methods=['POST'], csrf=True)
    def pivot(self, ticket_id=None, reason=None, **kwargs):
        def _pivot():
            ticket = _get_ticket(ticket_id)
            ticket.action_pivot_to_procurement(reason)
            return {'id': ticket.id, 'state': ticket.state}
        return _run('procurement pivot', _pivot)

    @http.route('/erp_approvals/helpdesk/approval', type='json', auth='user', methods=['POST'], csrf=True)
    def decide_approval(self, ticket_id=None, decision=None, comments=None, **kwargs):
        def _decide():
            ticket = _get_ticket(ticket_id)
            ticket.action_decide_approval(decision, comments)
            return {'id': ticket.id, 'state': ticket.state}
        return _run('procurement approval', _decide)

    @http.route('/erp_approvals/helpdesk/comment', type='json', auth='user', methods=['POST'], csrf=True)
    def comment(self, ticket_id=None, body=None, visibility='internal', **kwargs):
        def _comment():
            comment = _get_ticket(ticket_id).add_comment(body, visibility or 'internal')
            return {'id': comment.id}
        return _run('ticket comment', _comment)

    @http.route('/erp_approvals/helpdesk/dashboard', type='json', auth='user', methods=['POST'], csrf=True)
    def dashboard(self, **kwargs):
        return _run('help desk dashboard', lambda: request.env['erp.helpdesk.ticket'].get_dashboard_data())
