"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, today_utc, start_of_day_utc, start_of_week, first_of_month, trailing_months, utc_day_range
from utils.money import Money, DecimalNumber, to_decimal, to_money, sum_money, CENTS, ZERO, HUNDRED
