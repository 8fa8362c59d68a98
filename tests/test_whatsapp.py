from datetime import date
from decimal import Decimal
from urllib.parse import unquote

import pytest

from panelops.models import Client, Subscription
from panelops.utils import whatsapp


@pytest.fixture
def ana():
    return Client(id='c1', name='Ana', whatsapp='+52 (55) 1234-5678', country='Mexico')


def message_of(url):
    return unquote(url.split('?text=', 1)[1])


def test_url_keeps_only_phone_digits(ana):
    url = whatsapp.payment_reminder_url(ana, Decimal('15'), ['ChatGPT'])
    assert url.startswith('https://wa.me/525512345678?text=')
    assert ' ' not in url


def test_renewal_notice_mentions_due_date(ana):
    sub = Subscription(due_date=date(2026, 1, 31))
    message = message_of(whatsapp.renewal_notice_url(ana, sub, 'ChatGPT', 'upcoming'))
    assert 'Hola Ana!' in message
    assert 'ChatGPT' in message
    assert '31 de enero' in message


def test_renewal_notice_kinds_differ(ana):
    sub = Subscription(due_date=date(2026, 1, 15))
    today = message_of(whatsapp.renewal_notice_url(ana, sub, 'Canva', 'today'))
    overdue = message_of(whatsapp.renewal_notice_url(ana, sub, 'Canva', 'overdue'))
    assert 'vence hoy' in today
    assert 'vencio' in overdue


def test_unknown_notice_kind(ana):
    with pytest.raises(ValueError):
        whatsapp.renewal_notice_url(ana, Subscription(due_date=date(2026, 1, 15)), 'Canva', 'later')


def test_payment_reminder_lists_services_and_balance(ana):
    message = message_of(whatsapp.payment_reminder_url(ana, Decimal('12.5'), ['ChatGPT', 'Canva']))
    assert 'ChatGPT, Canva' in message
    assert '$12.50 USD' in message


def test_panel_outage_notice(ana):
    message = message_of(whatsapp.panel_outage_url(ana, 'Panel 3', 'CapCut'))
    assert 'CapCut (Panel 3)' in message


def test_weekly_cut_text():
    text = whatsapp.weekly_cut_text({
        'start_date': '2026-01-09',
        'end_date': '2026-01-15',
        'num_days': 7,
        'project_details': [{
            'name': 'Tienda', 'owner': 'Luis', 'country': 'Mexico',
            'total_payments': 100.0, 'payment_count': 2, 'commission_pct': 20.0,
            'commission_amount': 20.0, 'owed_to_owner': 80.0,
        }],
        'total_income': 100.0,
        'total_operator_commission': 20.0,
        'total_owed_to_owners': 80.0,
        'total_expenses': 70.0,
        'net_profit': -50.0,
    })
    assert '*TIENDA* - Luis (Mexico)' in text
    assert 'Tu comision (20%): $20.00' in text
    assert 'Pagar a Luis: $80.00' in text
    assert 'Gastos (7d): -$70.00' in text
