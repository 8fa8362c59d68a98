from datetime import date

from panelops.models import WeeklyCut
from factories import (
    make_client, make_cut, make_panel, make_payment, make_project, make_service, make_subscription,
)


def revenue_share_week():
    make_panel(monthly_cost='300')
    make_panel('Old panel', monthly_cost='90', state='down')
    ana = make_client()
    make_payment(ana, '100', project=make_project(), payment_date=date(2026, 1, 14))
    make_payment(ana, '50', payment_date=date(2026, 1, 10))
    make_payment(ana, '999', payment_date=date(2026, 1, 2))


def test_weekly_cut_defaults_to_last_seven_days(client, auth_headers):
    revenue_share_week()

    res = client.get('/api/finance/weekly-cut', headers=auth_headers)

    body = res.get_json()
    assert res.status_code == 200
    assert body['start_date'] == '2026-01-09'
    assert body['end_date'] == '2026-01-15'
    assert body['total_income'] == 150.0
    assert body['total_operator_commission'] == 70.0
    assert body['total_owed_to_owners'] == 80.0
    assert body['total_expenses'] == 70.0
    assert body['net_profit'] == 0.0
    assert [d['name'] for d in body['project_details']] == ['Tienda', 'Sin proyecto']
    assert body['text']


def test_weekly_cut_rejects_reversed_range(client, auth_headers):
    res = client.get('/api/finance/weekly-cut?start=2026-01-15&end=2026-01-09', headers=auth_headers)
    assert res.status_code == 400
    res = client.get('/api/finance/weekly-cut?start=yesterday', headers=auth_headers)
    assert res.status_code == 400


def test_save_list_and_delete_weekly_cut(client, auth_headers):
    revenue_share_week()

    res = client.post('/api/finance/weekly-cuts', json={'notes': 'semana 2'}, headers=auth_headers)

    body = res.get_json()
    assert res.status_code == 201
    assert body['total_income'] == 150.0
    assert body['notes'] == 'semana 2'
    assert len(body['project_details']) == 2

    listed = client.get('/api/finance/weekly-cuts', headers=auth_headers).get_json()
    assert [c['id'] for c in listed] == [body['id']]

    assert client.delete(f"/api/finance/weekly-cuts/{body['id']}", headers=auth_headers).status_code == 200
    assert WeeklyCut.query.count() == 0


def test_monthly_summary_counts_cut_usdt(client, auth_headers):
    make_panel(monthly_cost='300')
    ana = make_client()
    make_payment(ana, '50', payment_date=date(2026, 1, 14))
    make_payment(ana, '30', 'MXN', '600', '20', payment_date=date(2026, 1, 14))
    make_cut(usdt_received='47')

    body = client.get('/api/finance/monthly?month=2026-01', headers=auth_headers).get_json()

    assert body['month'] == '2026-01'
    assert body['total_income'] == 97.0
    assert body['total_expenses'] == 300.0
    assert body['profit'] == -203.0
    assert body['pending_conversion'] == {'count': 1, 'totals': {'MXN': 600.0}}


def test_monthly_summary_rejects_bad_month(client, auth_headers):
    assert client.get('/api/finance/monthly?month=2026-13', headers=auth_headers).status_code == 400


def test_income_table_links_unpaid_clients(client, auth_headers):
    service = make_service()
    ana, beto = make_client('Ana'), make_client('Beto', whatsapp='+57 300 123 4567', country='Colombia')
    make_subscription(ana, service, price='20')
    make_subscription(beto, service, price='10')
    make_payment(ana, '5')
    make_payment(beto, '10')

    body = client.get('/api/finance/income?month=2026-01', headers=auth_headers).get_json()

    ana_row, beto_row = body['rows']
    assert ana_row['balance'] == 15.0
    assert ana_row['whatsapp_url'].startswith('https://wa.me/525512345678')
    assert beto_row['paid'] is True
    assert beto_row['whatsapp_url'] is None
    assert body['total_billable'] == 30.0
    assert body['total_balance'] == 15.0


def test_expenses_skip_down_panels(client, auth_headers):
    make_panel(monthly_cost='300')
    make_panel('Old panel', monthly_cost='90', state='down')

    body = client.get('/api/finance/expenses', headers=auth_headers).get_json()

    assert [p['name'] for p in body['panels']] == ['Panel 1']
    assert body['total'] == 300.0


def test_profitability_per_service(client, auth_headers):
    panel = make_panel(monthly_cost='30')
    service = make_service()
    ana = make_client()
    make_subscription(ana, service, panel, price='20')
    make_subscription(ana, service, panel, price='20')

    rows = client.get('/api/finance/profitability', headers=auth_headers).get_json()

    assert rows == [{
        'service': 'ChatGPT',
        'panel_count': 1,
        'total_cost': 30.0,
        'client_count': 2,
        'total_revenue': 40.0,
        'profit': 10.0,
        'margin_pct': 25,
    }]


def test_goals_overall_and_per_service(client, auth_headers):
    service = make_service()
    ana = make_client()
    make_subscription(ana, service, price='20')
    make_payment(ana, '50')

    res = client.put('/api/finance/goals/2026-01', json={'amount': 100}, headers=auth_headers)
    assert res.get_json() == {'month': '2026-01', 'amount': 100.0}
    client.put(f'/api/finance/goals/2026-01/services/{service.id}', json={'amount': 40}, headers=auth_headers)

    body = client.get('/api/finance/goals?month=2026-01', headers=auth_headers).get_json()

    assert body['overall']['income'] == 50.0
    assert body['overall']['percent'] == 50
    assert body['overall']['remaining'] == 50.0
    assert body['overall']['reached'] is False
    service_entry = body['services'][0]
    assert service_entry['percent'] == 125
    assert service_entry['percent_capped'] == 100
    assert service_entry['reached'] is True


def test_goal_validation(client, auth_headers):
    assert client.put('/api/finance/goals/enero', json={'amount': 1}, headers=auth_headers).status_code == 400
    assert client.put('/api/finance/goals/2026-01', json={'amount': -1}, headers=auth_headers).status_code == 400
    res = client.put('/api/finance/goals/2026-01/services/missing', json={'amount': 1}, headers=auth_headers)
    assert res.status_code == 404


def test_goal_history(client, auth_headers):
    make_payment(make_client(), '20', payment_date=date(2025, 12, 10))
    client.put('/api/finance/goals/2025-12', json={'amount': 10}, headers=auth_headers)

    history = client.get('/api/finance/goals/history?months=2', headers=auth_headers).get_json()

    assert [h['month'] for h in history] == ['2025-11', '2025-12']
    assert history[0]['goal'] == 0.0
    assert history[1]['reached'] is True


def test_weekly_trend(client, auth_headers):
    make_payment(make_client(), '50', payment_date=date(2026, 1, 14))

    trend = client.get('/api/finance/trend?weeks=2', headers=auth_headers).get_json()

    assert [w['week_start'] for w in trend] == ['2026-01-05', '2026-01-12']
    assert [w['collected'] for w in trend] == [0.0, 50.0]
    assert client.get('/api/finance/trend?weeks=0', headers=auth_headers).status_code == 400


def test_weekly_report(client, auth_headers):
    ana, service = make_client(), make_service()
    make_subscription(ana, service, start=date(2026, 1, 13))
    make_payment(ana, '30', 'MXN', '600', '20', payment_date=date(2026, 1, 13))

    body = client.get('/api/finance/weekly-report', headers=auth_headers).get_json()

    assert body['week_start'] == '2026-01-12'
    assert body['new_clients'] == [{'client': 'Ana', 'service': 'ChatGPT'}]
    assert body['total_mxn'] == 600.0
    assert body['total_payments_usd'] == 30.0
    assert 'Ana' in body['text']


def test_country_summary(client, auth_headers):
    ana, beto = make_client(), make_client('Beto', country='Colombia')
    make_payment(ana, '30', 'MXN', '600', '20')
    make_payment(beto, '10', 'COP', '42000', '4200')

    body = client.get('/api/finance/countries?month=2026-01', headers=auth_headers).get_json()

    assert body['total_usd'] == 40.0
    assert [(c['country'], c['share_pct']) for c in body['countries']] == [('Mexico', 75), ('Colombia', 25)]
