from datetime import date
from decimal import Decimal

import pytest

from panelops.models import Client, Cut, Panel, Payment, Project, Service, Subscription
from panelops.utils.ledger import LedgerCalculator, round2, round_pct, to_usd, week_bounds

TODAY = date(2026, 1, 15)


def panel(monthly_cost='300', state='active', service_name='ChatGPT', panel_id='p1'):
    return Panel(id=panel_id, name=panel_id, monthly_cost=Decimal(monthly_cost), state=state,
                 service_name=service_name, total_capacity=10)


def payment(amount_usd, payment_date=date(2026, 1, 14), currency='USD', original_amount=None,
            client_id='c1', project_id=None, cut_id=None, payment_id=None):
    return Payment(
        id=payment_id, client_id=client_id, project_id=project_id, cut_id=cut_id,
        amount_usd=Decimal(amount_usd), currency=currency,
        original_amount=Decimal(original_amount) if original_amount else None,
        payment_date=payment_date, method='Zelle',
    )


def subscription(client_id, service_id, price, status='active', start=date(2026, 1, 1), sub_id=None):
    return Subscription(id=sub_id, client_id=client_id, service_id=service_id, status=status,
                        start_date=start, due_date=date(2026, 1, 31), price_usd=Decimal(price))


def test_conversion_rounds_half_up():
    assert to_usd(1000, 20) == Decimal('50.00')
    assert to_usd(Decimal('100'), Decimal('3')) == Decimal('33.33')
    assert round2('2.345') == Decimal('2.35')


def test_conversion_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        to_usd(1000, 0)


def test_week_bounds_runs_monday_to_sunday():
    assert week_bounds(TODAY) == (date(2026, 1, 12), date(2026, 1, 18))
    assert week_bounds(date(2026, 1, 12)) == (date(2026, 1, 12), date(2026, 1, 18))
    assert week_bounds(date(2026, 1, 18)) == (date(2026, 1, 12), date(2026, 1, 18))


def test_compute_cut():
    result = LedgerCalculator.compute_cut(1000, 5, 20, usdt_received=47)
    assert result['total_after_commission'] == Decimal('950.00')
    assert result['usdt_calculated'] == Decimal('47.50')
    assert result['variance'] == Decimal('-0.50')


def test_compute_cut_with_zero_rate():
    result = LedgerCalculator.compute_cut(1000, 5, 0)
    assert result['usdt_calculated'] == Decimal('0.00')
    assert 'variance' not in result


def test_eligible_cut_payments():
    clients = {
        'mx': Client(id='mx', name='Ana', whatsapp='1', country='Mexico'),
        'co': Client(id='co', name='Beto', whatsapp='2', country='Colombia'),
    }
    in_week = payment('50', currency='MXN', original_amount='1000', client_id='mx', payment_id='a')
    linked = payment('50', currency='MXN', original_amount='1000', client_id='mx', cut_id='old', payment_id='b')
    last_week = payment('50', currency='MXN', original_amount='1000', client_id='mx',
                        payment_date=date(2026, 1, 11), payment_id='c')
    usd = payment('10', client_id='mx', payment_id='d')
    other_country = payment('50', currency='MXN', original_amount='1000', client_id='co', payment_id='e')

    eligible = LedgerCalculator.eligible_cut_payments(
        [in_week, linked, last_week, usd, other_country], clients, 'Mexico', TODAY
    )
    assert [p.id for p in eligible] == ['a']


def test_weekly_cut_prorates_expense():
    rollup = LedgerCalculator.weekly_cut([], {}, [panel('300')], date(2026, 1, 9), TODAY)
    assert rollup['num_days'] == 7
    assert rollup['total_expenses'] == 70.0
    assert rollup['net_profit'] == -70.0


def test_weekly_cut_splits_by_project():
    projects = {'pr': Project(id='pr', name='Tienda', owner='Luis', commission_pct=Decimal('20'))}
    payments = [
        payment('60', project_id='pr'),
        payment('40', project_id='pr'),
        payment('50'),
        payment('99', project_id='deleted'),
        payment('500', payment_date=date(2026, 1, 1)),
    ]
    rollup = LedgerCalculator.weekly_cut(
        payments, projects, [panel('300'), panel('900', state='down', panel_id='p2')],
        date(2026, 1, 9), TODAY,
    )

    project, no_project = rollup['project_details']
    assert project['total_payments'] == 100.0
    assert project['payment_count'] == 2
    assert project['commission_amount'] == 20.0
    assert project['owed_to_owner'] == 80.0
    assert no_project['name'] == 'Sin proyecto'
    assert no_project['commission_amount'] == 50.0

    assert rollup['total_income'] == 150.0
    assert rollup['total_operator_commission'] == 70.0
    assert rollup['total_owed_to_owners'] == 80.0
    assert rollup['total_expenses'] == 70.0
    assert rollup['net_profit'] == 0.0


def test_negative_halves_round_toward_positive_infinity():
    assert round2('-0.125') == Decimal('-0.12')
    assert round2('-0.126') == Decimal('-0.13')
    assert round2('0.125') == Decimal('0.13')
    assert round_pct(-1, 8) == -12


def test_weekly_cut_negative_net_profit_half():
    rollup = LedgerCalculator.weekly_cut([], {}, [panel('3.75')], TODAY, TODAY)
    assert rollup['total_expenses'] == 0.13
    assert rollup['net_profit'] == -0.12


def test_commission_and_owner_share_round_independently():
    projects = {'pr': Project(id='pr', name='Tienda', owner='Luis', commission_pct=Decimal('50'))}
    rollup = LedgerCalculator.weekly_cut(
        [payment('0.05', project_id='pr')], projects, [], date(2026, 1, 9), TODAY,
    )

    detail = rollup['project_details'][0]
    assert detail['total_payments'] == 0.05
    assert detail['commission_amount'] == 0.03
    assert detail['owed_to_owner'] == 0.03
    assert rollup['total_operator_commission'] == 0.03
    assert rollup['total_owed_to_owners'] == 0.03


def test_weekly_report():
    clients = [Client(id='c1', name='Ana', whatsapp='1'), Client(id='c2', name='Beto', whatsapp='2')]
    services = {'v1': Service(id='v1', name='ChatGPT')}
    subs = [
        subscription('c1', 'v1', '10', start=date(2026, 1, 13), sub_id='new'),
        subscription('c2', 'v1', '10', start=date(2025, 12, 14), status='cancelled', sub_id='old'),
        subscription('c2', 'v1', '10', start=date(2026, 1, 14), sub_id='renewed'),
    ]
    subs[0].due_date = date(2026, 1, 20)
    payments = [
        payment('20', client_id='c1'),
        payment('50', currency='MXN', original_amount='1000', client_id='c2'),
    ]

    report = LedgerCalculator.weekly_report(clients, subs, payments, [panel('300')], services, TODAY)

    assert report['week_start'] == '2026-01-12'
    assert report['new_clients'] == [{'client': 'Ana', 'service': 'ChatGPT'}]
    assert report['renewals'] == [{'client': 'Beto', 'service': 'ChatGPT'}]
    assert report['payment_count'] == 2
    assert report['total_usd'] == 20.0
    assert report['total_mxn'] == 1000.0
    assert report['total_payments_usd'] == 70.0
    assert [d['client'] for d in report['due_next_week']] == ['Ana']
    assert report['total_expenses'] == 70.0
    assert report['net_profit'] == 0.0


def test_monthly_summary():
    cuts = [Cut(cut_date=date(2026, 1, 10), usdt_received=Decimal('47.50'), usdt_calculated=Decimal('47.50'))]
    payments = [
        payment('20', client_id='c1'),
        payment('45', currency='MXN', original_amount='900', client_id='c2', cut_id='cut'),
        payment('25', currency='MXN', original_amount='500', client_id='c2'),
        payment('999', payment_date=date(2025, 12, 31)),
    ]
    subs = [subscription('c1', 'v1', '20'), subscription('c2', 'v1', '100')]

    summary = LedgerCalculator.monthly_summary([panel('30')], subs, payments, cuts, TODAY)

    assert summary['month'] == '2026-01'
    assert summary['total_income'] == 67.5
    assert summary['total_expenses'] == 30.0
    assert summary['profit'] == 37.5
    assert summary['clients_owing'] == 1
    assert summary['pending_conversion'] == {'count': 1, 'totals': {'MXN': 500.0}}


def test_income_table_balance():
    clients = [Client(id='c1', name='Ana', whatsapp='1'), Client(id='c2', name='Beto', whatsapp='2')]
    services = {'v1': Service(id='v1', name='ChatGPT')}
    subs = [subscription('c1', 'v1', '20'), subscription('c2', 'v1', '15', status='cancelled')]

    rows = LedgerCalculator.income_table(clients, subs, [payment('5', client_id='c1')], services, TODAY)

    assert len(rows) == 1
    assert rows[0]['billable'] == 20.0
    assert rows[0]['paid_this_month'] == 5.0
    assert rows[0]['paid'] is False
    assert rows[0]['balance'] == 15.0


def test_profitability_per_service():
    services = {'v1': Service(id='v1', name='ChatGPT'), 'v2': Service(id='v2', name='Canva')}
    panels = [panel('30', service_name='ChatGPT'), panel('10', service_name='Canva', panel_id='p2')]
    subs = [subscription('c1', 'v1', '20'), subscription('c2', 'v1', '20'), subscription('c3', 'v2', '5')]

    rows = LedgerCalculator.profitability(panels, subs, services)

    assert [r['service'] for r in rows] == ['ChatGPT', 'Canva']
    assert rows[0]['profit'] == 10.0
    assert rows[0]['margin_pct'] == 25
    assert rows[1]['profit'] == -5.0
    assert rows[1]['margin_pct'] == -100


def test_goal_progress():
    progress = LedgerCalculator.goal_progress(Decimal('150'), Decimal('100'))
    assert progress['percent'] == 150
    assert progress['percent_capped'] == 100
    assert progress['remaining'] == 0.0
    assert progress['reached'] is True

    empty = LedgerCalculator.goal_progress(Decimal('50'), 0)
    assert empty['percent'] == 0
    assert empty['reached'] is False


def test_income_by_service_prorates_by_price():
    subs = [subscription('c1', 'v1', '10'), subscription('c1', 'v2', '30')]
    income = LedgerCalculator.income_by_service(subs, [payment('20', client_id='c1')], TODAY)
    assert income == {'v1': Decimal('5.00'), 'v2': Decimal('15.00')}


def test_weekly_trend_has_six_monday_weeks():
    trend = LedgerCalculator.weekly_trend([panel('433')], [subscription('c1', 'v1', '866')],
                                          [payment('30')], TODAY)
    assert len(trend) == 6
    assert trend[-1]['week_start'] == '2026-01-12'
    assert trend[0]['week_start'] == '2025-12-08'
    assert trend[-1]['billable'] == 200
    assert trend[-1]['expenses'] == 100
    assert trend[-1]['profit'] == 100
    assert trend[-1]['collected'] == 30.0
    assert trend[0]['collected'] == 0.0
