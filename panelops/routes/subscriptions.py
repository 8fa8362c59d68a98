import logging

from flask import Blueprint, current_app, request, jsonify

from panelops import db
from panelops.models import Client, Service, Subscription
from panelops.models.subscription import LOCAL_CURRENCIES
from panelops.schemas import SubscriptionUpdateSchema, subscription_schema
from panelops.utils.auth import operator_required
from panelops.utils.capacity import CapacityError, check_assignment
from panelops.utils.clock import get_today
from panelops.utils import lifecycle

subscriptions_bp = Blueprint('subscriptions', __name__)
logger = logging.getLogger(__name__)


# ------------------ HELPER FUNCTIONS ------------------
def serialize_subscription(subscription, today):
    data = subscription_schema.dump(subscription)
    data['effective_status'] = lifecycle.effective_status(subscription, today)
    data['days_remaining'] = lifecycle.days_remaining(subscription, today)
    data['progress'] = round(lifecycle.cycle_progress(subscription, today), 1)
    data['alert_level'] = lifecycle.alert_level(
        subscription, today, current_app.config['DUE_SOON_DAYS']
    )
    data['client'] = subscription.client.name if subscription.client else None
    data['service'] = subscription.service.name if subscription.service else None
    data['panel'] = subscription.panel.name if subscription.panel else None
    return data


def resolve_local_currency(data, client):
    if data.get('local_price') is None or data.get('local_currency'):
        return
    if client.local_currency not in LOCAL_CURRENCIES:
        raise ValueError('local_currency is required for clients paying in USD')
    data['local_currency'] = client.local_currency


def build_subscription(data, client=None):
    """Validate references and capacity, then add a new active subscription to the session.

    Raises LookupError, ValueError or CapacityError; the caller rolls back.
    """
    if client is None:
        client = db.session.get(Client, data['client_id'])
        if not client:
            raise LookupError('Client not found')
    if not db.session.get(Service, data['service_id']):
        raise LookupError('Service not found')

    check_assignment(data.get('panel_id'))
    resolve_local_currency(data, client)

    subscription = Subscription(**data)
    lifecycle.start(subscription, data['start_date'])
    db.session.add(subscription)
    db.session.flush()
    return subscription


def error_response(e):
    if isinstance(e, CapacityError):
        return jsonify({'message': str(e), 'available_slots': e.available}), 409
    if isinstance(e, LookupError):
        return jsonify({'message': str(e)}), 404
    return jsonify({'message': str(e)}), 400


# -------------------- SUBSCRIPTION ROUTES -------------------- #

@subscriptions_bp.route('/', methods=['GET'])
@operator_required
def get_all_subscriptions():
    query = Subscription.query
    for field in ('client_id', 'service_id', 'panel_id'):
        value = request.args.get(field)
        if value:
            query = query.filter(getattr(Subscription, field) == value)

    today = get_today()
    result = [serialize_subscription(s, today) for s in query.order_by(Subscription.due_date).all()]

    status = request.args.get('status')
    if status:
        result = [s for s in result if s['effective_status'] == status]
    return jsonify(result), 200


@subscriptions_bp.route('/<subscription_id>', methods=['GET'])
@operator_required
def get_subscription(subscription_id):
    subscription = db.session.get(Subscription, subscription_id)
    if not subscription:
        return jsonify({'message': 'Subscription not found'}), 404
    return jsonify(serialize_subscription(subscription, get_today())), 200


@subscriptions_bp.route('/', methods=['POST'])
@operator_required
def create_subscription():
    data = subscription_schema.load(request.get_json() or {})
    try:
        subscription = build_subscription(data)
        db.session.commit()
        logger.info("Created subscription %s due %s", subscription.id, subscription.due_date)
        return jsonify(serialize_subscription(subscription, get_today())), 201
    except (CapacityError, LookupError, ValueError) as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.exception("Error creating subscription")
        return jsonify({'message': f'Error: {str(e)}'}), 500


@subscriptions_bp.route('/<subscription_id>', methods=['PUT', 'PATCH'])
@operator_required
def update_subscription(subscription_id):
    subscription = db.session.get(Subscription, subscription_id)
    if not subscription:
        return jsonify({'message': 'Subscription not found'}), 404

    data = SubscriptionUpdateSchema().load(request.get_json() or {}, partial=True)
    start_date = data.pop('start_date', None)
    due_date = data.pop('due_date', None)

    try:
        if 'client_id' in data and not db.session.get(Client, data['client_id']):
            raise LookupError('Client not found')
        if 'service_id' in data and not db.session.get(Service, data['service_id']):
            raise LookupError('Service not found')
        if data.get('panel_id') and data['panel_id'] != subscription.panel_id:
            # the subscription's own slot is not counted against the new panel
            check_assignment(data['panel_id'], subscription_id=subscription.id)

        for field, value in data.items():
            setattr(subscription, field, value)
        lifecycle.apply_date_edit(subscription, start_date=start_date, due_date=due_date)

        db.session.commit()
        return jsonify(serialize_subscription(subscription, get_today())), 200
    except (CapacityError, LookupError, ValueError) as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.exception("Error updating subscription %s", subscription_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@subscriptions_bp.route('/<subscription_id>/renew', methods=['POST'])
@operator_required
def renew_subscription(subscription_id):
    subscription = db.session.get(Subscription, subscription_id)
    if not subscription:
        return jsonify({'message': 'Subscription not found'}), 404

    today = get_today()
    try:
        lifecycle.renew(subscription, today)
        db.session.commit()
        return jsonify(serialize_subscription(subscription, today)), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error renewing subscription %s", subscription_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@subscriptions_bp.route('/<subscription_id>/cancel', methods=['POST'])
@operator_required
def cancel_subscription(subscription_id):
    subscription = db.session.get(Subscription, subscription_id)
    if not subscription:
        return jsonify({'message': 'Subscription not found'}), 404

    today = get_today()
    try:
        changed = lifecycle.cancel(subscription, today)
        if changed:
            db.session.commit()
        data = serialize_subscription(subscription, today)
        data['changed'] = changed
        return jsonify(data), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error cancelling subscription %s", subscription_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@subscriptions_bp.route('/<subscription_id>', methods=['DELETE'])
@operator_required
def delete_subscription(subscription_id):
    subscription = db.session.get(Subscription, subscription_id)
    if not subscription:
        return jsonify({'message': 'Subscription not found'}), 404

    try:
        db.session.delete(subscription)
        db.session.commit()
        return jsonify({'message': 'Subscription deleted successfully'}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error deleting subscription %s", subscription_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500
