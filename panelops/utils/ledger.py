"""Multi-currency ledger: USD conversion, P2P cuts and periodic rollups.

Every payment carries a canonical ``amount_usd`` fixed when it is recorded.
All aggregate math below runs on those USD amounts; local amounts are only
summed for display and for cuts. Rollups are never stored per transaction,
they are recomputed from the collections handed in.
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_DOWN, ROUND_HALF_UP

from dateutil.relativedelta import relativedelta, MO

from panelops.models.client import COUNTRY_CURRENCY

CENT = Decimal('0.01')
UNIT = Decimal('1')
ZERO = Decimal('0')
NO_PROJECT_NAME = 'Sin proyecto'


def to_decimal(value):
    if value is None:
        return ZERO
    return Decimal(str(value))


def round_half_up(value, exp=CENT):
    """Round halves toward positive infinity, so -0.125 becomes -0.12."""
    value = to_decimal(value)
    rounding = ROUND_HALF_UP if value >= 0 else ROUND_HALF_DOWN
    return value.quantize(exp, rounding=rounding)


def round2(value):
    return round_half_up(value)


def round_pct(numerator, denominator):
    if to_decimal(denominator) <= 0:
        return 0
    ratio = to_decimal(numerator) / to_decimal(denominator) * 100
    return int(round_half_up(ratio, UNIT))


def to_usd(original_amount, exchange_rate):
    """Convert a local amount to USD at the rate entered with the payment."""
    rate = to_decimal(exchange_rate)
    if rate <= 0:
        raise ValueError('Exchange rate must be positive')
    return round2(to_decimal(original_amount) / rate)


def prorate(monthly_amount, num_days):
    """Scale a monthly amount linearly to ``num_days`` (30-day month)."""
    return to_decimal(monthly_amount) * num_days / 30


def week_bounds(day):
    """Monday..Sunday week containing ``day``."""
    start = day + relativedelta(weekday=MO(-1))
    return start, start + timedelta(days=6)


def month_bounds(day):
    first = day.replace(day=1)
    return first, first + relativedelta(months=1, days=-1)


def month_key(day):
    return day.strftime('%Y-%m')


def parse_month_key(key):
    """First day of a ``YYYY-MM`` month. Raises ValueError on bad input."""
    return datetime.strptime(key, '%Y-%m').date()


def in_range(day, start, end):
    return day is not None and start <= day <= end


def active_panels(panels):
    return [p for p in panels if p.state == 'active']


def active_subscriptions(subscriptions):
    return [s for s in subscriptions if s.status == 'active']


class LedgerCalculator:
    """Rollups over in-memory snapshots of the entity collections"""

    # ------------------ CUTS ------------------
    @staticmethod
    def eligible_cut_payments(payments, clients_by_id, country, cut_date):
        """Unlinked payments of ``country``'s currency in the cut date's week."""
        currency = COUNTRY_CURRENCY.get(country)
        if not currency:
            return []
        week_start, week_end = week_bounds(cut_date)
        eligible = []
        for payment in payments:
            if payment.cut_id or payment.currency != currency:
                continue
            if not in_range(payment.payment_date, week_start, week_end):
                continue
            client = clients_by_id.get(payment.client_id)
            if client and client.country == country:
                eligible.append(payment)
        return eligible

    @staticmethod
    def compute_cut(total_collected, commission_pct, p2p_rate, usdt_received=None):
        total = to_decimal(total_collected)
        pct = to_decimal(commission_pct)
        rate = to_decimal(p2p_rate)

        after_commission = round2(total * (1 - pct / 100))
        usdt_calculated = round2(after_commission / rate) if rate > 0 else round2(0)

        result = {
            'total_collected': round2(total),
            'commission_pct': pct,
            'total_after_commission': after_commission,
            'p2p_rate': rate,
            'usdt_calculated': usdt_calculated,
        }
        if usdt_received is not None:
            result['usdt_received'] = round2(usdt_received)
            result['variance'] = round2(to_decimal(usdt_received) - usdt_calculated)
        return result

    @staticmethod
    def cut_variance(cut):
        return round2(to_decimal(cut.usdt_received) - to_decimal(cut.usdt_calculated))

    # ------------------ WEEKLY CUT (REVENUE SHARE) ------------------
    @staticmethod
    def weekly_cut(payments, projects_by_id, panels, start_date, end_date):
        """Split the range's payments per project and net them against prorated panel cost.

        Each project's commission and owner share are rounded separately, so
        the two may not add up to the rounded project total.
        """
        num_days = (end_date - start_date).days + 1
        range_payments = [p for p in payments if in_range(p.payment_date, start_date, end_date)]

        groups = OrderedDict()
        without_project = []
        for payment in range_payments:
            if payment.project_id:
                groups.setdefault(payment.project_id, []).append(payment)
            else:
                without_project.append(payment)

        details = []
        total_income = ZERO
        total_commission = ZERO
        total_owed = ZERO

        for project_id, project_payments in groups.items():
            project = projects_by_id.get(project_id)
            if not project:
                continue

            total = sum((to_decimal(p.amount_usd) for p in project_payments), ZERO)
            pct = to_decimal(project.commission_pct)
            commission = total * pct / 100
            owed = total - commission

            details.append({
                'project_id': project.id,
                'name': project.name,
                'owner': project.owner or 'Sin dueno',
                'country': project.country,
                'total_payments': float(round2(total)),
                'payment_count': len(project_payments),
                'commission_pct': float(pct),
                'commission_amount': float(round2(commission)),
                'owed_to_owner': float(round2(owed)),
            })
            total_income += total
            total_commission += commission
            total_owed += owed

        if without_project:
            total = sum((to_decimal(p.amount_usd) for p in without_project), ZERO)
            details.append({
                'project_id': None,
                'name': NO_PROJECT_NAME,
                'owner': '-',
                'country': None,
                'total_payments': float(round2(total)),
                'payment_count': len(without_project),
                'commission_pct': 100.0,
                'commission_amount': float(round2(total)),
                'owed_to_owner': 0.0,
            })
            total_income += total
            total_commission += total

        expenses = sum((prorate(p.monthly_cost, num_days) for p in active_panels(panels)), ZERO)
        net_profit = total_commission - expenses

        return {
            'start_date': start_date.isoformat(),
            'end_date': end_date.isoformat(),
            'num_days': num_days,
            'project_details': details,
            'total_income': float(round2(total_income)),
            'total_operator_commission': float(round2(total_commission)),
            'total_owed_to_owners': float(round2(total_owed)),
            'total_expenses': float(round2(expenses)),
            'net_profit': float(round2(net_profit)),
        }

    # ------------------ WEEKLY ACTIVITY REPORT ------------------
    @staticmethod
    def weekly_report(clients, subscriptions, payments, panels, services_by_id, today):
        week_start, week_end = week_bounds(today)
        next_week_start = week_end + timedelta(days=1)
        next_week_end = next_week_start + timedelta(days=6)
        clients_by_id = {c.id: c for c in clients}

        def service_name(subscription):
            service = services_by_id.get(subscription.service_id)
            return service.name if service else 'Sin servicio'

        new_clients = []
        for client in clients:
            client_subs = [s for s in subscriptions if s.client_id == client.id]
            if not client_subs:
                continue
            earliest = min(client_subs, key=lambda s: s.start_date)
            if in_range(earliest.start_date, week_start, week_end):
                new_clients.append({'client': client.name, 'service': service_name(earliest)})

        renewals = []
        for sub in subscriptions:
            if not in_range(sub.start_date, week_start, week_end):
                continue
            if is_renewal(sub, subscriptions):
                client = clients_by_id.get(sub.client_id)
                renewals.append({
                    'client': client.name if client else '?',
                    'service': service_name(sub),
                })

        week_payments = [p for p in payments if in_range(p.payment_date, week_start, week_end)]
        totals = {'USD': ZERO, 'MXN': ZERO, 'COP': ZERO}
        for payment in week_payments:
            if payment.is_local_currency:
                totals.setdefault(payment.currency, ZERO)
                totals[payment.currency] += to_decimal(payment.original_amount)
            else:
                totals['USD'] += to_decimal(payment.amount_usd)
        total_payments_usd = sum((to_decimal(p.amount_usd) for p in week_payments), ZERO)

        due_next_week = []
        for sub in active_subscriptions(subscriptions):
            if in_range(sub.due_date, next_week_start, next_week_end):
                client = clients_by_id.get(sub.client_id)
                due_next_week.append({
                    'client': client.name if client else '?',
                    'service': service_name(sub),
                    'due_date': sub.due_date.isoformat(),
                })

        expenses = sum((prorate(p.monthly_cost, 7) for p in active_panels(panels)), ZERO)

        return {
            'week_start': week_start.isoformat(),
            'week_end': week_end.isoformat(),
            'new_clients': new_clients,
            'renewals': renewals,
            'payment_count': len(week_payments),
            'total_usd': float(round2(totals['USD'])),
            'total_mxn': float(round_half_up(totals['MXN'], UNIT)),
            'total_cop': float(round_half_up(totals['COP'], UNIT)),
            'total_payments_usd': float(round2(total_payments_usd)),
            'due_next_week': due_next_week,
            'total_expenses': float(round2(expenses)),
            'net_profit': float(round2(total_payments_usd - expenses)),
        }

    # ------------------ MONTHLY SUMMARY ------------------
    @staticmethod
    def collected_income(payments, cuts, month_day):
        """USDT actually received from the month's cuts plus direct USD payments.

        Local-currency payments are only counted once converted through a
        cut, so they are never added on their own here.
        """
        start, end = month_bounds(month_day)
        from_cuts = sum((to_decimal(c.usdt_received) for c in cuts if in_range(c.cut_date, start, end)), ZERO)
        direct_usd = sum(
            (to_decimal(p.amount_usd) for p in payments
             if in_range(p.payment_date, start, end) and not p.is_local_currency and not p.cut_id),
            ZERO,
        )
        return round2(from_cuts + direct_usd)

    @staticmethod
    def billable_by_client(subscriptions):
        billable = {}
        for sub in active_subscriptions(subscriptions):
            billable[sub.client_id] = billable.get(sub.client_id, ZERO) + to_decimal(sub.price_usd)
        return billable

    @staticmethod
    def paid_by_client(payments, month_day):
        start, end = month_bounds(month_day)
        paid = {}
        for payment in payments:
            if in_range(payment.payment_date, start, end):
                paid[payment.client_id] = paid.get(payment.client_id, ZERO) + to_decimal(payment.amount_usd)
        return paid

    @staticmethod
    def monthly_summary(panels, subscriptions, payments, cuts, month_day):
        start, end = month_bounds(month_day)
        expenses = sum((to_decimal(p.monthly_cost) for p in active_panels(panels)), ZERO)
        income = LedgerCalculator.collected_income(payments, cuts, month_day)

        billable = LedgerCalculator.billable_by_client(subscriptions)
        paid = LedgerCalculator.paid_by_client(payments, month_day)
        clients_owing = sum(1 for client_id, amount in billable.items() if paid.get(client_id, ZERO) < amount)

        pending = [
            p for p in payments
            if in_range(p.payment_date, start, end) and p.is_local_currency and not p.cut_id
        ]
        pending_totals = {}
        for payment in pending:
            pending_totals[payment.currency] = pending_totals.get(payment.currency, ZERO) + to_decimal(payment.original_amount)

        return {
            'month': month_key(month_day),
            'total_income': float(income),
            'total_expenses': float(round2(expenses)),
            'profit': float(round2(income - expenses)),
            'clients_owing': clients_owing,
            'pending_conversion': {
                'count': len(pending),
                'totals': {currency: float(amount) for currency, amount in pending_totals.items()},
            },
        }

    @staticmethod
    def income_table(clients, subscriptions, payments, services_by_id, month_day):
        """Billable vs paid per client with at least one active subscription."""
        paid = LedgerCalculator.paid_by_client(payments, month_day)
        rows = []
        for client in clients:
            client_subs = [s for s in active_subscriptions(subscriptions) if s.client_id == client.id]
            if not client_subs:
                continue
            service_names = []
            for sub in client_subs:
                service = services_by_id.get(sub.service_id)
                service_names.append(service.name if service else 'Sin servicio')
            billable = sum((to_decimal(s.price_usd) for s in client_subs), ZERO)
            paid_amount = paid.get(client.id, ZERO)
            rows.append({
                'client_id': client.id,
                'client': client.name,
                'whatsapp': client.whatsapp,
                'services': service_names,
                'billable': float(round2(billable)),
                'paid_this_month': float(round2(paid_amount)),
                'paid': paid_amount >= billable,
                'balance': float(round2(max(ZERO, billable - paid_amount))),
            })
        return rows

    @staticmethod
    def expense_table(panels):
        panels = active_panels(panels)
        rows = [{
            'panel_id': p.id,
            'name': p.name,
            'service_name': p.service_name,
            'provider': p.provider,
            'monthly_cost': float(round2(p.monthly_cost)),
            'expiration_date': p.expiration_date.isoformat() if p.expiration_date else None,
        } for p in panels]
        total = sum((to_decimal(p.monthly_cost) for p in panels), ZERO)
        return {'panels': rows, 'total': float(round2(total))}

    @staticmethod
    def profitability(panels, subscriptions, services_by_id):
        """Billable revenue vs panel cost per service name, best profit first."""
        panels = active_panels(panels)
        subs = active_subscriptions(subscriptions)

        def sub_service_name(sub):
            service = services_by_id.get(sub.service_id)
            return service.name if service else None

        names = []
        for name in [p.service_name for p in panels] + [sub_service_name(s) for s in subs]:
            if name and name not in names:
                names.append(name)

        rows = []
        for name in names:
            service_panels = [p for p in panels if p.service_name == name]
            service_subs = [s for s in subs if sub_service_name(s) == name]
            cost = sum((to_decimal(p.monthly_cost) for p in service_panels), ZERO)
            revenue = sum((to_decimal(s.price_usd) for s in service_subs), ZERO)
            profit = revenue - cost
            rows.append({
                'service': name,
                'panel_count': len(service_panels),
                'total_cost': float(round2(cost)),
                'client_count': len(service_subs),
                'total_revenue': float(round2(revenue)),
                'profit': float(round2(profit)),
                'margin_pct': round_pct(profit, revenue) if revenue > 0 else 0,
            })
        rows.sort(key=lambda r: r['profit'], reverse=True)
        return rows

    @staticmethod
    def country_summary(payments, clients_by_id, month_day):
        start, end = month_bounds(month_day)
        summary = OrderedDict()
        for payment in payments:
            if not in_range(payment.payment_date, start, end):
                continue
            client = clients_by_id.get(payment.client_id)
            country = client.country if client and client.country else 'Sin país'
            row = summary.get(country)
            if row is None:
                row = summary[country] = {
                    'country': country,
                    'payment_count': 0,
                    'total_usd': ZERO,
                    'total_local': ZERO,
                    'currency': 'USD',
                }
            row['payment_count'] += 1
            row['total_usd'] += to_decimal(payment.amount_usd)
            if payment.is_local_currency and payment.original_amount:
                row['total_local'] += to_decimal(payment.original_amount)
                row['currency'] = payment.currency

        grand_total = sum((row['total_usd'] for row in summary.values()), ZERO)
        rows = []
        for row in summary.values():
            rows.append({
                'country': row['country'],
                'payment_count': row['payment_count'],
                'total_usd': float(round2(row['total_usd'])),
                'total_local': float(row['total_local']),
                'currency': row['currency'],
                'share_pct': round_pct(row['total_usd'], grand_total),
            })
        rows.sort(key=lambda r: r['total_usd'], reverse=True)
        return {'countries': rows, 'total_usd': float(round2(grand_total))}

    # ------------------ GOALS ------------------
    @staticmethod
    def goal_progress(income, goal):
        income = to_decimal(income)
        goal = to_decimal(goal)
        percent = round_pct(income, goal)
        return {
            'goal': float(round2(goal)),
            'income': float(round2(income)),
            'percent': percent,
            'percent_capped': min(percent, 100),
            'remaining': float(round2(max(ZERO, goal - income))) if goal > 0 else 0.0,
            'reached': goal > 0 and income >= goal,
        }

    @staticmethod
    def income_by_service(subscriptions, payments, month_day):
        """Spread each client's payments of the month over its active subscriptions by price share."""
        paid = LedgerCalculator.paid_by_client(payments, month_day)
        billable = LedgerCalculator.billable_by_client(subscriptions)
        income = {}
        for sub in active_subscriptions(subscriptions):
            total_paid = paid.get(sub.client_id)
            total_billable = billable.get(sub.client_id, ZERO)
            if not total_paid or total_billable <= 0:
                continue
            share = round2(total_paid * to_decimal(sub.price_usd) / total_billable)
            income[sub.service_id] = income.get(sub.service_id, ZERO) + share
        return {service_id: round2(amount) for service_id, amount in income.items()}

    @staticmethod
    def goal_history(goals_by_month, payments, cuts, today, months=6):
        """Goal outcome for each of the ``months`` months before ``today``, oldest first."""
        history = []
        for offset in range(months, 0, -1):
            month_day = today.replace(day=1) - relativedelta(months=offset)
            key = month_key(month_day)
            goal = to_decimal(goals_by_month.get(key))
            income = LedgerCalculator.collected_income(payments, cuts, month_day)
            entry = LedgerCalculator.goal_progress(income, goal)
            entry['month'] = key
            history.append(entry)
        return history

    # ------------------ TREND ------------------
    @staticmethod
    def weekly_trend(panels, subscriptions, payments, today, weeks=6):
        """Billable and cost spread over ~4.33 weeks a month next to real collections."""
        weekly_cost = sum((to_decimal(p.monthly_cost) for p in active_panels(panels)), ZERO) / Decimal('4.33')
        weekly_billable = sum((to_decimal(s.price_usd) for s in active_subscriptions(subscriptions)), ZERO) / Decimal('4.33')

        trend = []
        for offset in range(weeks - 1, -1, -1):
            start, end = week_bounds(today - timedelta(weeks=offset))
            collected = sum(
                (to_decimal(p.amount_usd) for p in payments if in_range(p.payment_date, start, end)),
                ZERO,
            )
            trend.append({
                'week_start': start.isoformat(),
                'billable': int(round_half_up(weekly_billable, UNIT)),
                'expenses': int(round_half_up(weekly_cost, UNIT)),
                'profit': int(round_half_up(weekly_billable - weekly_cost, UNIT)),
                'collected': float(round2(collected)),
            })
        return trend


def is_renewal(subscription, subscriptions):
    """True when the same client had an earlier subscription to the same service."""
    return any(
        s.client_id == subscription.client_id
        and s.service_id == subscription.service_id
        and s.id != subscription.id
        and s.start_date < subscription.start_date
        for s in subscriptions
    )
