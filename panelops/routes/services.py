import logging

from flask import Blueprint, request, jsonify

from panelops import db
from panelops.models import Service, Subscription
from panelops.schemas import service_schema, services_schema
from panelops.utils.auth import operator_required

services_bp = Blueprint('services', __name__)
logger = logging.getLogger(__name__)


def serialize_service(service, counts):
    data = service_schema.dump(service)
    data['active_subscriptions'] = counts.get(service.id, 0)
    return data


def active_counts():
    rows = (
        db.session.query(Subscription.service_id, db.func.count(Subscription.id))
        .filter(Subscription.status == 'active')
        .group_by(Subscription.service_id)
        .all()
    )
    return dict(rows)


# -------------------- SERVICE ROUTES -------------------- #

@services_bp.route('/', methods=['GET'])
@operator_required
def get_all_services():
    counts = active_counts()
    services = Service.query.order_by(Service.name).all()
    return jsonify([serialize_service(s, counts) for s in services]), 200


@services_bp.route('/<service_id>', methods=['GET'])
@operator_required
def get_service(service_id):
    service = db.session.get(Service, service_id)
    if not service:
        return jsonify({'message': 'Service not found'}), 404
    return jsonify(serialize_service(service, active_counts())), 200


@services_bp.route('/', methods=['POST'])
@operator_required
def create_service():
    data = service_schema.load(request.get_json() or {})
    try:
        service = Service(**data)
        db.session.add(service)
        db.session.commit()
        return jsonify(serialize_service(service, {})), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Error creating service")
        return jsonify({'message': f'Error: {str(e)}'}), 500


@services_bp.route('/<service_id>', methods=['PUT', 'PATCH'])
@operator_required
def update_service(service_id):
    service = db.session.get(Service, service_id)
    if not service:
        return jsonify({'message': 'Service not found'}), 404

    data = service_schema.load(request.get_json() or {}, partial=True)
    for field, value in data.items():
        setattr(service, field, value)

    try:
        db.session.commit()
        return jsonify(serialize_service(service, active_counts())), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error updating service %s", service_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@services_bp.route('/<service_id>', methods=['DELETE'])
@operator_required
def delete_service(service_id):
    """Delete a service with its subscriptions and goals."""
    service = db.session.get(Service, service_id)
    if not service:
        return jsonify({'message': 'Service not found'}), 404

    try:
        removed = len(service.subscriptions)
        db.session.delete(service)
        db.session.commit()
        logger.info("Deleted service %s with %d subscriptions", service_id, removed)
        return jsonify({'message': 'Service deleted successfully', 'deleted_subscriptions': removed}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error deleting service %s", service_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500
