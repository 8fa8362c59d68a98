from datetime import date

from flask import current_app


def get_today():
    """Current local day, read from the injected ``CLOCK`` setting."""
    return current_app.config['CLOCK']()


def parse_date(value, default=None):
    """ISO ``YYYY-MM-DD`` query argument, or ``default`` when it is empty."""
    if not value:
        return default
    return date.fromisoformat(value)
