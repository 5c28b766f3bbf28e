"""
Pure helpers: weekly availability expansion, payment deadlines, receipt math
and datetime parsing.
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from app.utils.availability import slots_for_day
from app.utils.dates import parse_datetime
from app.utils.payments import payment_deadline, receipt_amounts, is_insured, to_money

MONDAY = date(2026, 3, 2)
SATURDAY = date(2026, 3, 7)


class TestSlotsForDay:
    def test_fixed_slot_count_spreads_evenly(self):
        availability = {'mon': {'start': '09:00', 'end': '17:00', 'slots': 8}}
        assert slots_for_day(availability, MONDAY) == [
            '09:00', '10:00', '11:00', '12:00', '13:00', '14:00', '15:00', '16:00',
        ]

    def test_range_string_uses_half_hour_steps(self):
        assert slots_for_day({'mon': '09:00-11:00'}, MONDAY) == ['09:00', '09:30', '10:00', '10:30']

    def test_list_of_ranges_is_merged_and_sorted(self):
        availability = {'mon': ['14:00-15:00', '09:00-10:00', '09:30-10:00']}
        assert slots_for_day(availability, MONDAY) == ['09:00', '09:30', '14:00', '14:30']

    def test_off_day_and_missing_day_have_no_slots(self):
        availability = {'mon': '09:00-10:00', 'sat': 'off'}
        assert slots_for_day(availability, SATURDAY) == []
        assert slots_for_day({'tue': '09:00-10:00'}, MONDAY) == []

    def test_unreadable_json_means_no_availability(self):
        assert slots_for_day('{not json', MONDAY) == []

    def test_stored_json_text_is_accepted(self):
        assert slots_for_day('{"mon": "08:00-09:00"}', MONDAY) == ['08:00', '08:30']


class TestPaymentDeadline:
    def test_online_payment_closes_an_hour_before(self):
        assert payment_deadline(MONDAY, '10:00', 'Online') == datetime(2026, 3, 2, 9, 0)

    def test_reception_payment_closes_fifteen_minutes_before(self):
        assert payment_deadline(MONDAY, '10:00', 'Reception') == datetime(2026, 3, 2, 9, 45)


class TestReceiptAmounts:
    def test_self_pay_patient_pays_fee_plus_tax(self):
        amounts = receipt_amounts(Decimal('120.00'), 'self-pay')
        assert amounts['tax_amount'] == Decimal('7.20')
        assert amounts['insurance_covered'] == Decimal('0.00')
        assert amounts['total'] == Decimal('127.20')
        assert amounts['patient_due'] == Decimal('127.20')

    def test_insurance_covers_half_of_the_base_fee(self):
        amounts = receipt_amounts(Decimal('120.00'), 'AIA')
        assert amounts['insurance_covered'] == Decimal('60.00')
        assert amounts['total'] == Decimal('127.20')
        assert amounts['patient_due'] == Decimal('67.20')

    def test_rounding_is_half_up_to_cents(self):
        amounts = receipt_amounts(Decimal('10.25'), None)
        # 10.25 * 0.06 = 0.615
        assert amounts['tax_amount'] == Decimal('0.62')
        assert amounts['total'] == Decimal('10.87')

    def test_missing_fee_falls_back_to_default(self):
        assert to_money(None) == Decimal('120.00')

    def test_insured_detection(self):
        assert is_insured('AIA')
        assert not is_insured('self-pay')
        assert not is_insured('  ')
        assert not is_insured(None)


class TestParseDatetime:
    def test_offset_is_converted_to_utc(self):
        assert parse_datetime('2030-01-01T10:00:00+08:00') == datetime(2030, 1, 1, 2, 0)

    def test_trailing_z_is_utc(self):
        assert parse_datetime('2030-01-01T10:00:00Z') == datetime(2030, 1, 1, 10, 0)

    def test_aware_datetime_is_converted(self):
        value = datetime(2030, 1, 1, 1, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert parse_datetime(value) == datetime(2030, 1, 1, 6, 30)

    def test_bare_date_is_midnight(self):
        assert parse_datetime('2030-01-01') == datetime(2030, 1, 1)

    def test_garbage_is_none(self):
        assert parse_datetime('tomorrow-ish') is None
