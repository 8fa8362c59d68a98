from datetime import date
from decimal import Decimal

from panelops.models import Panel, Payment, Service, Subscription
from panelops.utils.timeline import client_history

TODAY = date(2026, 1, 15)
SERVICES = {'v1': Service(id='v1', name='ChatGPT')}
PANELS = {'p1': Panel(id='p1', name='Panel 1')}


def subscription(sub_id, start, due, status='active', panel_id=None, cancelled_on=None):
    return Subscription(id=sub_id, client_id='c1', service_id='v1', panel_id=panel_id, status=status,
                        start_date=start, due_date=due, cancelled_on=cancelled_on, price_usd=Decimal('10'))


def test_history_is_newest_first():
    subs = [
        subscription('old', date(2025, 11, 1), date(2025, 12, 1), status='cancelled',
                     panel_id='p1', cancelled_on=date(2025, 11, 20)),
        subscription('new', date(2026, 1, 5), date(2026, 2, 4)),
    ]
    payments = [Payment(client_id='c1', amount_usd=Decimal('50'), currency='MXN',
                        original_amount=Decimal('1000'), method='Nequi', payment_date=date(2026, 1, 6))]

    events = client_history(subs, payments, SERVICES, PANELS, TODAY)

    assert [e['type'] for e in events] == [
        'payment', 'assignment', 'renewal', 'cancellation', 'registration', 'assignment',
    ]
    assert events[0]['description'] == 'Pago de $50 USD (1000 MXN)'
    assert events[3]['date'] == '2025-11-20'
    assert 'Panel: Panel 1' in events[-1]['detail']
    assert events[-2]['date'] == '2025-11-01'


def test_cancellation_without_date_falls_back_to_due_date():
    subs = [subscription('s1', date(2025, 11, 1), date(2025, 12, 1), status='cancelled')]
    events = client_history(subs, [], SERVICES, PANELS, TODAY)
    cancellation = next(e for e in events if e['type'] == 'cancellation')
    assert cancellation['date'] == '2025-12-01'


def test_lapsed_active_subscription_shows_expiry():
    subs = [subscription('s1', date(2025, 12, 1), date(2025, 12, 31))]
    events = client_history(subs, [], SERVICES, PANELS, TODAY)
    expiry = next(e for e in events if e['type'] == 'expiry')
    assert expiry['date'] == '2025-12-31'
    assert 'sin renovar' in expiry['description']


def test_empty_history():
    assert client_history([], [], SERVICES, PANELS, TODAY) == []
