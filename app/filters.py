from datetime import datetime, timezone

from app.listing import confidence_level, is_overdue, time_ago, time_remaining


def format_currency(amount, currency='USD'):
    symbols = {'USD': '$', 'EUR': '€', 'GBP': '£', 'VND': '₫'}
    if amount is None:
        return ''
    if currency == 'VND':
        return f'{amount:,.0f} ₫'
    symbol = symbols.get(currency)
    if symbol:
        return f'{symbol}{amount:,.2f}'
    return f'{amount:,.2f} {currency}'


def format_duration(minutes):
    """90 -> '1h 30m'."""
    minutes = int(minutes or 0)
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f'{hours}h {mins}m'
    if hours:
        return f'{hours}h'
    return f'{mins}m'


def format_date(value, fmt='%Y-%m-%d'):
    if not isinstance(value, datetime):
        return ''
    return value.astimezone(timezone.utc).strftime(fmt)


def register_filters(app):
    app.jinja_env.filters['time_ago'] = time_ago
    app.jinja_env.filters['time_remaining'] = time_remaining
    app.jinja_env.filters['confidence_level'] = confidence_level
    app.jinja_env.filters['currency'] = format_currency
    app.jinja_env.filters['duration'] = format_duration
    app.jinja_env.filters['date'] = format_date
    app.jinja_env.tests['overdue'] = is_overdue
