from flask import current_app

from panelops import db
from panelops.models import Setting


def default_settings():
    config = current_app.config
    return {
        'business_name': 'Nexus',
        'business_subtitle': 'Panel de gestión',
        'cut_commission_pct': config['DEFAULT_CUT_COMMISSION_PCT'],
        'commission_receiver': '',
        'active_currencies': ['USD', 'MXN', 'COP'],
        'exchange_rates': dict(config['DEFAULT_EXCHANGE_RATES']),
        'team': [],
    }


def get_settings():
    """Stored settings layered over the defaults."""
    settings = default_settings()
    for row in Setting.query.all():
        if row.key in settings:
            settings[row.key] = row.value
    return settings


def get_setting(key):
    return get_settings()[key]


def update_settings(values):
    """Upsert ``values``; the caller commits.

    Dict-valued settings such as ``exchange_rates`` are merged into the
    current value, so sending one rate keeps the others.
    """
    current = get_settings()
    for key, value in values.items():
        if isinstance(value, dict) and isinstance(current.get(key), dict):
            value = {**current[key], **value}
        row = db.session.get(Setting, key)
        if row is None:
            db.session.add(Setting(key=key, value=value))
        else:
            row.value = value
    return get_settings()


def seed_default_settings():
    """Insert the default rows that are missing. Returns the number added."""
    existing = {row.key for row in Setting.query.all()}
    added = 0
    for key, value in default_settings().items():
        if key not in existing:
            db.session.add(Setting(key=key, value=value))
            added += 1
    if added:
        db.session.commit()
    return added
