import logging

from flask import Blueprint, request, jsonify

from panelops import db
from panelops.models import Client, Panel, Payment, Service, Subscription
from panelops.routes.subscriptions import build_subscription, serialize_subscription
from panelops.schemas import ClientCreateSchema, client_schema, clients_schema, payments_schema
from panelops.utils.auth import operator_required
from panelops.utils.capacity import CapacityError
from panelops.utils.clock import get_today
from panelops.utils.timeline import client_history

clients_bp = Blueprint('clients', __name__)
logger = logging.getLogger(__name__)


def serialize_client(client, today):
    data = client_schema.dump(client)
    data['subscriptions'] = [serialize_subscription(s, today) for s in client.subscriptions]
    return data


# -------------------- CLIENT ROUTES -------------------- #

@clients_bp.route('/', methods=['GET'])
@operator_required
def get_all_clients():
    query = Client.query
    country = request.args.get('country')
    if country:
        query = query.filter_by(country=country)
    search = request.args.get('q')
    if search:
        pattern = f'%{search}%'
        query = query.filter(db.or_(Client.name.ilike(pattern), Client.whatsapp.ilike(pattern)))

    today = get_today()
    return jsonify([serialize_client(c, today) for c in query.order_by(Client.name).all()]), 200


@clients_bp.route('/<client_id>', methods=['GET'])
@operator_required
def get_client(client_id):
    client = db.session.get(Client, client_id)
    if not client:
        return jsonify({'message': 'Client not found'}), 404

    data = serialize_client(client, get_today())
    data['payments'] = payments_schema.dump(
        sorted(client.payments, key=lambda p: p.payment_date, reverse=True)
    )
    return jsonify(data), 200


@clients_bp.route('/', methods=['POST'])
@operator_required
def create_client():
    """Create a client, optionally with its first subscriptions, in one transaction."""
    data = ClientCreateSchema().load(request.get_json() or {})
    initial_subscriptions = data.pop('subscriptions')
    today = get_today()

    try:
        client = Client(**data)
        db.session.add(client)
        db.session.flush()

        for sub_data in initial_subscriptions:
            sub_data['client_id'] = client.id
            build_subscription(sub_data, client)

        db.session.commit()
        logger.info("Created client %s with %d subscriptions", client.id, len(initial_subscriptions))
        return jsonify(serialize_client(client, today)), 201
    except CapacityError as e:
        db.session.rollback()
        return jsonify({'message': str(e), 'available_slots': e.available}), 409
    except LookupError as e:
        db.session.rollback()
        return jsonify({'message': str(e)}), 404
    except ValueError as e:
        db.session.rollback()
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.exception("Error creating client")
        return jsonify({'message': f'Error: {str(e)}'}), 500


@clients_bp.route('/<client_id>', methods=['PUT', 'PATCH'])
@operator_required
def update_client(client_id):
    client = db.session.get(Client, client_id)
    if not client:
        return jsonify({'message': 'Client not found'}), 404

    data = client_schema.load(request.get_json() or {}, partial=True)
    for field, value in data.items():
        setattr(client, field, value)

    try:
        db.session.commit()
        return jsonify(serialize_client(client, get_today())), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error updating client %s", client_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@clients_bp.route('/<client_id>', methods=['DELETE'])
@operator_required
def delete_client(client_id):
    """Delete a client along with its subscriptions and payments."""
    client = db.session.get(Client, client_id)
    if not client:
        return jsonify({'message': 'Client not found'}), 404

    try:
        db.session.delete(client)
        db.session.commit()
        logger.info("Deleted client %s", client_id)
        return jsonify({'message': 'Client deleted successfully'}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error deleting client %s", client_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


# ------------------ CLIENT DETAILS ------------------
@clients_bp.route('/<client_id>/subscriptions', methods=['GET'])
@operator_required
def get_client_subscriptions(client_id):
    client = db.session.get(Client, client_id)
    if not client:
        return jsonify({'message': 'Client not found'}), 404

    today = get_today()
    subs = sorted(client.subscriptions, key=lambda s: s.due_date)
    return jsonify([serialize_subscription(s, today) for s in subs]), 200


@clients_bp.route('/<client_id>/history', methods=['GET'])
@operator_required
def get_client_history(client_id):
    client = db.session.get(Client, client_id)
    if not client:
        return jsonify({'message': 'Client not found'}), 404

    subs = Subscription.query.filter_by(client_id=client.id).all()
    payments = Payment.query.filter_by(client_id=client.id).all()
    services_by_id = {s.id: s for s in Service.query.all()}
    panels_by_id = {p.id: p for p in Panel.query.all()}
    return jsonify(client_history(subs, payments, services_by_id, panels_by_id, get_today())), 200
