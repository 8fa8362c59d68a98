import logging

from flask import Blueprint, request, jsonify

from panelops import db
from panelops.models import Client, Cut, Payment
from panelops.models.client import COUNTRY_CURRENCY
from panelops.models.cut import CUT_COUNTRIES
from panelops.schemas import cut_schema, cuts_schema, payments_schema
from panelops.utils.auth import operator_required
from panelops.utils.clock import get_today, parse_date
from panelops.utils.ledger import (
    LedgerCalculator, ZERO, month_bounds, parse_month_key, to_decimal, week_bounds,
)
from panelops.utils.settings import get_setting

cuts_bp = Blueprint('cuts', __name__)
logger = logging.getLogger(__name__)


# ------------------ HELPER FUNCTIONS ------------------
def find_eligible_payments(country, cut_date):
    currency = COUNTRY_CURRENCY[country]
    candidates = Payment.query.filter(Payment.cut_id.is_(None), Payment.currency == currency).all()
    clients_by_id = {c.id: c for c in Client.query.filter_by(country=country).all()}
    return LedgerCalculator.eligible_cut_payments(candidates, clients_by_id, country, cut_date)


# -------------------- CUT ROUTES -------------------- #

@cuts_bp.route('/eligible', methods=['GET'])
@operator_required
def get_eligible_payments():
    """Preview the payments a cut for ``country`` on ``date`` would take."""
    country = request.args.get('country')
    if country not in CUT_COUNTRIES:
        return jsonify({'message': f'country must be one of {", ".join(CUT_COUNTRIES)}'}), 400
    try:
        cut_date = parse_date(request.args.get('date'), get_today())
    except ValueError:
        return jsonify({'message': 'date must be YYYY-MM-DD'}), 400

    payments = find_eligible_payments(country, cut_date)
    total = sum((to_decimal(p.original_amount) for p in payments), ZERO)
    week_start, week_end = week_bounds(cut_date)
    result = {
        'country': country,
        'currency': COUNTRY_CURRENCY[country],
        'week_start': week_start.isoformat(),
        'week_end': week_end.isoformat(),
        'payments': payments_schema.dump(payments),
        'total_collected': float(total),
        'commission_pct': get_setting('cut_commission_pct'),
    }

    rate = request.args.get('p2p_rate', type=float)
    if rate:
        preview = LedgerCalculator.compute_cut(total, result['commission_pct'], rate)
        result['total_after_commission'] = float(preview['total_after_commission'])
        result['usdt_calculated'] = float(preview['usdt_calculated'])
    return jsonify(result), 200


@cuts_bp.route('/', methods=['GET'])
@operator_required
def get_all_cuts():
    query = Cut.query
    month = request.args.get('month')
    if month:
        try:
            start, end = month_bounds(parse_month_key(month))
        except ValueError:
            return jsonify({'message': 'month must be YYYY-MM'}), 400
        query = query.filter(Cut.cut_date.between(start, end))
    country = request.args.get('country')
    if country:
        query = query.filter_by(country=country)

    cuts = query.order_by(Cut.cut_date.desc(), Cut.created_at.desc()).all()
    return jsonify({
        'cuts': cuts_schema.dump(cuts),
        'total_usdt_received': float(sum((to_decimal(c.usdt_received) for c in cuts), ZERO)),
        'total_variance': float(sum((LedgerCalculator.cut_variance(c) for c in cuts), ZERO)),
    }), 200


@cuts_bp.route('/<cut_id>', methods=['GET'])
@operator_required
def get_cut(cut_id):
    cut = db.session.get(Cut, cut_id)
    if not cut:
        return jsonify({'message': 'Cut not found'}), 404
    data = cut_schema.dump(cut)
    data['payments'] = payments_schema.dump(cut.payments)
    return jsonify(data), 200


@cuts_bp.route('/', methods=['POST'])
@operator_required
def create_cut():
    """Record a P2P conversion and link the week's eligible payments to it."""
    data = cut_schema.load(request.get_json() or {})
    cut_date = data.get('cut_date') or get_today()
    country = data['country']

    payments = find_eligible_payments(country, cut_date)
    total = data.get('total_collected')
    if total is None:
        total = sum((to_decimal(p.original_amount) for p in payments), ZERO)
    commission_pct = data.get('commission_pct')
    if commission_pct is None:
        commission_pct = get_setting('cut_commission_pct')

    computed = LedgerCalculator.compute_cut(total, commission_pct, data['p2p_rate'], data['usdt_received'])

    try:
        cut = Cut(
            cut_date=cut_date,
            country=country,
            currency=COUNTRY_CURRENCY[country],
            total_collected=computed['total_collected'],
            commission_pct=computed['commission_pct'],
            total_after_commission=computed['total_after_commission'],
            p2p_rate=computed['p2p_rate'],
            usdt_calculated=computed['usdt_calculated'],
            usdt_received=computed['usdt_received'],
            notes=data.get('notes'),
        )
        db.session.add(cut)
        db.session.flush()
        for payment in payments:
            payment.cut_id = cut.id
        db.session.commit()
        logger.info("Created %s cut %s: %s %s -> %s USDT (variance %s), %d payments linked",
                    country, cut.id, cut.total_collected, cut.currency, cut.usdt_received,
                    computed['variance'], len(payments))
        return jsonify(cut_schema.dump(cut)), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Error creating cut")
        return jsonify({'message': f'Error: {str(e)}'}), 500


@cuts_bp.route('/<cut_id>', methods=['DELETE'])
@operator_required
def delete_cut(cut_id):
    """Delete a cut and release its payments so a later cut can take them."""
    cut = db.session.get(Cut, cut_id)
    if not cut:
        return jsonify({'message': 'Cut not found'}), 404

    try:
        released = Payment.query.filter_by(cut_id=cut.id).update({'cut_id': None})
        db.session.delete(cut)
        db.session.commit()
        logger.info("Deleted cut %s, released %d payments", cut_id, released)
        return jsonify({'message': 'Cut deleted successfully', 'released_payments': released}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error deleting cut %s", cut_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500
