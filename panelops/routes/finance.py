import logging
from datetime import timedelta

from flask import Blueprint, request, jsonify

from panelops import db
from panelops.models import (
    Client, Cut, MonthlyGoal, Panel, Payment, Project, Service, ServiceGoal, Subscription, WeeklyCut,
)
from panelops.schemas import GoalSchema, WeeklyCutRequestSchema, weekly_cut_schema, weekly_cuts_schema
from panelops.utils.auth import operator_required
from panelops.utils.clock import get_today, parse_date
from panelops.utils.ledger import LedgerCalculator, month_key, parse_month_key, to_decimal
from panelops.utils.whatsapp import payment_reminder_url, weekly_cut_text, weekly_report_text

finance_bp = Blueprint('finance', __name__)
logger = logging.getLogger(__name__)


# ------------------ HELPER FUNCTIONS ------------------
def requested_month():
    """First day of the ``month`` query argument, defaulting to the current month."""
    month = request.args.get('month')
    if not month:
        return get_today().replace(day=1)
    return parse_month_key(month)


def by_id(model):
    return {row.id: row for row in model.query.all()}


def build_weekly_cut(start_date, end_date):
    return LedgerCalculator.weekly_cut(
        Payment.query.filter(Payment.payment_date.between(start_date, end_date)).all(),
        by_id(Project),
        Panel.query.all(),
        start_date,
        end_date,
    )


def bad_month():
    return jsonify({'message': 'month must be YYYY-MM'}), 400


# ------------------ WEEKLY CUT ------------------
@finance_bp.route('/weekly-cut', methods=['GET'])
@operator_required
def preview_weekly_cut():
    """Revenue-share rollup for a date range, the last 7 days by default."""
    today = get_today()
    try:
        end_date = parse_date(request.args.get('end'), today)
        start_date = parse_date(request.args.get('start'), end_date - timedelta(days=6))
    except ValueError:
        return jsonify({'message': 'start and end must be YYYY-MM-DD'}), 400
    if end_date < start_date:
        return jsonify({'message': 'end must not be before start'}), 400

    rollup = build_weekly_cut(start_date, end_date)
    rollup['text'] = weekly_cut_text(rollup)
    return jsonify(rollup), 200


@finance_bp.route('/weekly-cuts', methods=['POST'])
@operator_required
def save_weekly_cut():
    data = WeeklyCutRequestSchema().load(request.get_json() or {})
    end_date = data.get('end_date') or get_today()
    start_date = data.get('start_date') or end_date - timedelta(days=6)
    if end_date < start_date:
        return jsonify({'message': 'end_date must not be before start_date'}), 400

    rollup = build_weekly_cut(start_date, end_date)
    rollup['notes'] = data.get('notes')

    try:
        snapshot = WeeklyCut(
            start_date=start_date,
            end_date=end_date,
            total_income=to_decimal(rollup['total_income']),
            total_operator_commission=to_decimal(rollup['total_operator_commission']),
            total_owed_to_owners=to_decimal(rollup['total_owed_to_owners']),
            total_expenses=to_decimal(rollup['total_expenses']),
            net_profit=to_decimal(rollup['net_profit']),
            project_details=rollup['project_details'],
            notes=data.get('notes'),
        )
        db.session.add(snapshot)
        db.session.commit()
        logger.info("Saved weekly cut %s for %s..%s, net %s", snapshot.id, start_date, end_date, rollup['net_profit'])
        result = weekly_cut_schema.dump(snapshot)
        result['text'] = weekly_cut_text(rollup)
        return jsonify(result), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Error saving weekly cut")
        return jsonify({'message': f'Error: {str(e)}'}), 500


@finance_bp.route('/weekly-cuts', methods=['GET'])
@operator_required
def get_weekly_cuts():
    snapshots = WeeklyCut.query.order_by(WeeklyCut.end_date.desc(), WeeklyCut.created_at.desc()).all()
    return jsonify(weekly_cuts_schema.dump(snapshots)), 200


@finance_bp.route('/weekly-cuts/<weekly_cut_id>', methods=['DELETE'])
@operator_required
def delete_weekly_cut(weekly_cut_id):
    snapshot = db.session.get(WeeklyCut, weekly_cut_id)
    if not snapshot:
        return jsonify({'message': 'Weekly cut not found'}), 404
    try:
        db.session.delete(snapshot)
        db.session.commit()
        return jsonify({'message': 'Weekly cut deleted successfully'}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error deleting weekly cut %s", weekly_cut_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


# ------------------ WEEKLY REPORT ------------------
@finance_bp.route('/weekly-report', methods=['GET'])
@operator_required
def get_weekly_report():
    report = LedgerCalculator.weekly_report(
        Client.query.all(),
        Subscription.query.all(),
        Payment.query.all(),
        Panel.query.all(),
        by_id(Service),
        get_today(),
    )
    report['text'] = weekly_report_text(report)
    return jsonify(report), 200


# ------------------ MONTHLY ------------------
@finance_bp.route('/monthly', methods=['GET'])
@operator_required
def get_monthly_summary():
    try:
        month_day = requested_month()
    except ValueError:
        return bad_month()
    summary = LedgerCalculator.monthly_summary(
        Panel.query.all(), Subscription.query.all(), Payment.query.all(), Cut.query.all(), month_day
    )
    return jsonify(summary), 200


@finance_bp.route('/income', methods=['GET'])
@operator_required
def get_income_table():
    """Billable vs paid per client, with a collection link for anyone still owing."""
    try:
        month_day = requested_month()
    except ValueError:
        return bad_month()

    clients = Client.query.order_by(Client.name).all()
    rows = LedgerCalculator.income_table(
        clients, Subscription.query.all(), Payment.query.all(), by_id(Service), month_day
    )
    clients_by_id = {c.id: c for c in clients}
    for row in rows:
        row['whatsapp_url'] = None if row['paid'] else payment_reminder_url(
            clients_by_id[row['client_id']], row['balance'], row['services']
        )
    return jsonify({
        'month': month_key(month_day),
        'rows': rows,
        'total_billable': round(sum(r['billable'] for r in rows), 2),
        'total_paid': round(sum(r['paid_this_month'] for r in rows), 2),
        'total_balance': round(sum(r['balance'] for r in rows), 2),
    }), 200


@finance_bp.route('/expenses', methods=['GET'])
@operator_required
def get_expense_table():
    return jsonify(LedgerCalculator.expense_table(Panel.query.all())), 200


@finance_bp.route('/profitability', methods=['GET'])
@operator_required
def get_profitability():
    rows = LedgerCalculator.profitability(Panel.query.all(), Subscription.query.all(), by_id(Service))
    return jsonify(rows), 200


@finance_bp.route('/countries', methods=['GET'])
@operator_required
def get_country_summary():
    try:
        month_day = requested_month()
    except ValueError:
        return bad_month()
    summary = LedgerCalculator.country_summary(Payment.query.all(), by_id(Client), month_day)
    summary['month'] = month_key(month_day)
    return jsonify(summary), 200


@finance_bp.route('/trend', methods=['GET'])
@operator_required
def get_weekly_trend():
    weeks = request.args.get('weeks', 6, type=int)
    if not 1 <= weeks <= 52:
        return jsonify({'message': 'weeks must be between 1 and 52'}), 400
    trend = LedgerCalculator.weekly_trend(
        Panel.query.all(), Subscription.query.all(), Payment.query.all(), get_today(), weeks
    )
    return jsonify(trend), 200


# ------------------ GOALS ------------------
@finance_bp.route('/goals', methods=['GET'])
@operator_required
def get_goals():
    """Overall and per-service goal progress for a month."""
    try:
        month_day = requested_month()
    except ValueError:
        return bad_month()
    key = month_key(month_day)
    payments = Payment.query.all()

    goal = MonthlyGoal.query.filter_by(month_key=key).first()
    income = LedgerCalculator.collected_income(payments, Cut.query.all(), month_day)
    overall = LedgerCalculator.goal_progress(income, goal.amount if goal else 0)

    income_by_service = LedgerCalculator.income_by_service(Subscription.query.all(), payments, month_day)
    service_goals = {g.service_id: g.amount for g in ServiceGoal.query.filter_by(month_key=key).all()}
    services = []
    for service in Service.query.order_by(Service.name).all():
        entry = LedgerCalculator.goal_progress(income_by_service.get(service.id, 0), service_goals.get(service.id, 0))
        entry['service_id'] = service.id
        entry['service'] = service.name
        services.append(entry)

    return jsonify({'month': key, 'overall': overall, 'services': services}), 200


@finance_bp.route('/goals/<month>', methods=['PUT'])
@operator_required
def set_monthly_goal(month):
    try:
        parse_month_key(month)
    except ValueError:
        return bad_month()
    data = GoalSchema().load(request.get_json() or {})

    try:
        goal = MonthlyGoal.query.filter_by(month_key=month).first()
        if goal:
            goal.amount = data['amount']
        else:
            goal = MonthlyGoal(month_key=month, amount=data['amount'])
            db.session.add(goal)
        db.session.commit()
        return jsonify({'month': month, 'amount': float(goal.amount)}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error saving goal for %s", month)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@finance_bp.route('/goals/<month>/services/<service_id>', methods=['PUT'])
@operator_required
def set_service_goal(month, service_id):
    try:
        parse_month_key(month)
    except ValueError:
        return bad_month()
    if not db.session.get(Service, service_id):
        return jsonify({'message': 'Service not found'}), 404
    data = GoalSchema().load(request.get_json() or {})

    try:
        goal = ServiceGoal.query.filter_by(month_key=month, service_id=service_id).first()
        if goal:
            goal.amount = data['amount']
        else:
            goal = ServiceGoal(month_key=month, service_id=service_id, amount=data['amount'])
            db.session.add(goal)
        db.session.commit()
        return jsonify({'month': month, 'service_id': service_id, 'amount': float(goal.amount)}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error saving service goal for %s", month)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@finance_bp.route('/goals/history', methods=['GET'])
@operator_required
def get_goal_history():
    months = request.args.get('months', 6, type=int)
    goals = {g.month_key: g.amount for g in MonthlyGoal.query.all()}
    history = LedgerCalculator.goal_history(goals, Payment.query.all(), Cut.query.all(), get_today(), months)
    return jsonify(history), 200
