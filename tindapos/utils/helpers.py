"""
Helper Utilities
Money/weight rounding, parsing and date-range helpers used across the application
"""

from datetime import datetime, time, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from tindapos.errors import ValidationError

CENT = Decimal('0.01')
GRAM = Decimal('0.001')


def to_decimal(value, field='value'):
    """
    Parse a number the way form input arrives (str, int, float, Decimal)

    Raises:
        ValidationError: when value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number")
    return result


def round_money(value):
    """Round to 2 decimals, half up"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def round_weight(value):
    """Round to 3 decimals, half up"""
    return Decimal(str(value)).quantize(GRAM, rounding=ROUND_HALF_UP)


def money_float(value):
    """Money as the float stored in documents"""
    return float(round_money(value))


def format_currency(amount, currency_symbol='₱'):
    """
    Format amount as currency

    Args:
        amount: Amount to format
        currency_symbol: Currency symbol

    Returns:
        str: Formatted currency string
    """
    return f"{currency_symbol} {float(amount):,.2f}"


def parse_datetime(value):
    """Turn a stored ISO string back into a datetime; passes datetimes and None through"""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def start_of_day(day):
    return datetime.combine(day, time.min)


def end_of_day(day):
    return datetime.combine(day, time(23, 59, 59, 999000))


def preset_range(preset, today=None):
    """
    Date range for a reporting preset

    Args:
        preset: daily, weekly, monthly or annual
        today: reference date (defaults to the local date)

    Returns:
        tuple: (start datetime, end datetime)
    """
    today = today or datetime.now().date()

    if preset == 'daily':
        first, last = today, today
    elif preset == 'weekly':
        first = today - timedelta(days=today.weekday())
        last = first + timedelta(days=6)
    elif preset == 'monthly':
        first = today.replace(day=1)
        next_month = (first + timedelta(days=32)).replace(day=1)
        last = next_month - timedelta(days=1)
    elif preset == 'annual':
        first = today.replace(month=1, day=1)
        last = today.replace(month=12, day=31)
    else:
        raise ValidationError(f"Unknown range preset: {preset}")

    return start_of_day(first), end_of_day(last)
