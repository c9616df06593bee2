# -*- coding: utf-8 -*-
from odoo import api, fields, models

from ..utils import workflow_dates


class ErpHolidayCalendar(models.Model):
    _name = 'erp.holiday.calendar'
    _description = 'Holiday Calendar'
    _order = 'holiday_date'
    _rec_name = 'name'

    name = fields.Char(string='Holiday', required=True)
    holiday_date = fields.Date(string='Date', required=True, index=True)
    location = fields.Char(string='Location', required=True, default='global', index=True)
    is_business_day = fields.Boolean(
        string='Working Day',
        default=False,
        help='Marks a listed date that is nevertheless worked, e.g. a swapped holiday.'
    )

    _date_location_unique = models.Constraint(
        'unique(holiday_date, location)',
        'This date is already listed for the location.',
    )

    @api.model
    def _get_holiday_set(self, location, date_from, date_to):
        """Non-working dates of ``location`` between the two dates, inclusive."""
        holidays = self.sudo().search([
            ('location', '=', location or 'global'),
            ('holiday_date', '>=', workflow_dates.parse_iso_date(date_from)),
            ('holiday_date', '<=', workflow_dates.parse_iso_date(date_to)),
            ('is_business_day', '=', False),
        ])
        return set(holidays.mapped('holiday_date'))
