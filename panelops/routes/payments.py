import logging

from flask import Blueprint, request, jsonify
from marshmallow import ValidationError

from panelops import db
from panelops.models import Client, Payment, Project
from panelops.schemas import payment_schema, payments_schema
from panelops.utils.auth import operator_required
from panelops.utils.clock import get_today
from panelops.utils.ledger import (
    LedgerCalculator, ZERO, month_bounds, parse_month_key, round2, to_decimal, to_usd,
)
from panelops.utils.whatsapp import payment_reminder_url

payments_bp = Blueprint('payments', __name__)
logger = logging.getLogger(__name__)


def serialize_payment(payment):
    data = payment_schema.dump(payment)
    data['client'] = payment.client.name if payment.client else None
    data['project'] = payment.project.name if payment.project else None
    return data


def check_edited_amounts(payment, data):
    """Validate a partial edit against the stored row it will be merged into.

    A local-currency payment must keep an original amount and a positive
    rate. Moving a payment to another currency converts it again unless
    ``amount_usd`` is sent with the edit.
    """
    currency = data.get('currency', payment.currency)
    if currency != payment.currency and payment.cut_id:
        raise ValidationError({'currency': ['Cannot change the currency of a payment linked to a cut']})
    if currency == 'USD':
        return

    original = data.get('original_amount', payment.original_amount)
    rate = data.get('exchange_rate', payment.exchange_rate)
    errors = {}
    if original is None:
        errors['original_amount'] = ['Required for local-currency payments']
    if rate is None or to_decimal(rate) <= 0:
        errors['exchange_rate'] = ['Required for local-currency payments']
    if errors:
        raise ValidationError(errors)

    if currency != payment.currency and 'amount_usd' not in data:
        data['amount_usd'] = to_usd(original, rate)


# -------------------- PAYMENT ROUTES -------------------- #

@payments_bp.route('/', methods=['GET'])
@operator_required
def get_all_payments():
    query = Payment.query
    for field in ('client_id', 'project_id', 'currency', 'method'):
        value = request.args.get(field)
        if value:
            query = query.filter(getattr(Payment, field) == value)

    month = request.args.get('month')
    if month:
        try:
            start, end = month_bounds(parse_month_key(month))
        except ValueError:
            return jsonify({'message': 'month must be YYYY-MM'}), 400
        query = query.filter(Payment.payment_date.between(start, end))

    if request.args.get('pending_cut') == 'true':
        query = query.filter(Payment.currency != 'USD', Payment.cut_id.is_(None))

    payments = query.order_by(Payment.payment_date.desc(), Payment.created_at.desc()).all()
    return jsonify([serialize_payment(p) for p in payments]), 200


@payments_bp.route('/<payment_id>', methods=['GET'])
@operator_required
def get_payment(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        return jsonify({'message': 'Payment not found'}), 404
    return jsonify(serialize_payment(payment)), 200


@payments_bp.route('/', methods=['POST'])
@operator_required
def create_payment():
    """Record a payment. Local-currency amounts are converted to USD once, here."""
    data = payment_schema.load(request.get_json() or {})

    if not db.session.get(Client, data['client_id']):
        return jsonify({'message': 'Client not found'}), 404
    if data.get('project_id') and not db.session.get(Project, data['project_id']):
        return jsonify({'message': 'Project not found'}), 404

    if data['currency'] != 'USD':
        data['amount_usd'] = to_usd(data['original_amount'], data['exchange_rate'])
    data.setdefault('payment_date', get_today())

    try:
        payment = Payment(**data)
        db.session.add(payment)
        db.session.commit()
        logger.info("Recorded payment %s: %s USD (%s)", payment.id, payment.amount_usd, payment.currency)
        return jsonify(serialize_payment(payment)), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Error recording payment")
        return jsonify({'message': f'Error: {str(e)}'}), 500


@payments_bp.route('/<payment_id>', methods=['PUT', 'PATCH'])
@operator_required
def update_payment(payment_id):
    """Edit a payment. ``amount_usd`` only changes when sent or when the currency changes."""
    payment = db.session.get(Payment, payment_id)
    if not payment:
        return jsonify({'message': 'Payment not found'}), 404

    data = payment_schema.load(request.get_json() or {}, partial=True)
    if 'client_id' in data and not db.session.get(Client, data['client_id']):
        return jsonify({'message': 'Client not found'}), 404
    if data.get('project_id') and not db.session.get(Project, data['project_id']):
        return jsonify({'message': 'Project not found'}), 404
    check_edited_amounts(payment, data)

    for field, value in data.items():
        setattr(payment, field, value)

    try:
        db.session.commit()
        return jsonify(serialize_payment(payment)), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error updating payment %s", payment_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@payments_bp.route('/<payment_id>', methods=['DELETE'])
@operator_required
def delete_payment(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        return jsonify({'message': 'Payment not found'}), 404

    try:
        db.session.delete(payment)
        db.session.commit()
        return jsonify({'message': 'Payment deleted successfully'}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error deleting payment %s", payment_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


# ------------------ REMINDERS ------------------
@payments_bp.route('/reminder/<client_id>', methods=['GET'])
@operator_required
def payment_reminder(client_id):
    """WhatsApp link asking a client for the unpaid part of this month's billing."""
    client = db.session.get(Client, client_id)
    if not client:
        return jsonify({'message': 'Client not found'}), 404

    today = get_today()
    active = [s for s in client.subscriptions if s.status == 'active']
    billable = LedgerCalculator.billable_by_client(active).get(client.id, ZERO)
    paid = LedgerCalculator.paid_by_client(client.payments, today).get(client.id, ZERO)
    balance = round2(max(ZERO, billable - paid))
    services = [s.service.name for s in active if s.service]
    return jsonify({
        'client': client.name,
        'balance': float(balance),
        'whatsapp_url': payment_reminder_url(client, balance, services)
    }), 200
