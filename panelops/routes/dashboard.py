from collections import OrderedDict

from flask import Blueprint, current_app, request, jsonify

from panelops.models import Client, Cut, Panel, Payment, Subscription
from panelops.utils.auth import operator_required
from panelops.utils.capacity import used_slots_by_panel
from panelops.utils.clock import get_today
from panelops.utils.ledger import LedgerCalculator, month_bounds, month_key, parse_month_key
from panelops.utils.lifecycle import effective_status
from panelops.utils.notices import pending_notices

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/', methods=['GET'])
@operator_required
def get_dashboard():
    """Everything the operator checks first thing in the morning."""
    today = get_today()
    notices = pending_notices(today, current_app.config['DASHBOARD_LOOKAHEAD_DAYS'])

    panels = Panel.query.all()
    used = used_slots_by_panel()
    active_panels = [p for p in panels if p.state == 'active']
    capacity = sum(p.total_capacity for p in active_panels)
    used_total = sum(used.get(p.id, 0) for p in active_panels)

    subscriptions = Subscription.query.all()
    summary = LedgerCalculator.monthly_summary(
        panels, subscriptions, Payment.query.all(), Cut.query.all(), today
    )

    return jsonify({
        'date': today.isoformat(),
        'due_today': notices['due_today'],
        'upcoming': notices['upcoming'],
        'overdue': notices['overdue'],
        'panels': {
            'total': len(panels),
            'active': len(active_panels),
            'down': len(panels) - len(active_panels),
            'total_capacity': capacity,
            'used_slots': used_total,
            'free_slots': capacity - used_total,
            'full': [p.name for p in active_panels if used.get(p.id, 0) >= p.total_capacity],
        },
        'clients': Client.query.count(),
        'active_subscriptions': sum(1 for s in subscriptions if effective_status(s, today) == 'active'),
        'month': summary
    }), 200


@dashboard_bp.route('/calendar', methods=['GET'])
@operator_required
def get_calendar():
    """Active subscriptions grouped by due date for one month."""
    today = get_today()
    month = request.args.get('month', month_key(today))
    try:
        start, end = month_bounds(parse_month_key(month))
    except ValueError:
        return jsonify({'message': 'month must be YYYY-MM'}), 400

    subscriptions = (
        Subscription.query
        .filter(Subscription.status == 'active', Subscription.due_date.between(start, end))
        .order_by(Subscription.due_date)
        .all()
    )

    days = OrderedDict()
    for sub in subscriptions:
        days.setdefault(sub.due_date.isoformat(), []).append({
            'subscription_id': sub.id,
            'client': sub.client.name,
            'service': sub.service.name if sub.service else None,
            'panel': sub.panel.name if sub.panel else None,
            'status': effective_status(sub, today),
        })

    return jsonify({
        'month': month,
        'days': days,
        'total': len(subscriptions)
    }), 200
