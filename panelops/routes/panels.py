import logging

from flask import Blueprint, request, jsonify

from panelops import db
from panelops.models import Panel, PanelCredential, PanelEvent, Subscription
from panelops.schemas import (
    PanelCredentialSchema, PanelDownSchema, PanelEventSchema, RotateCredentialsSchema,
    panel_schema, panels_schema,
)
from panelops.utils.auth import operator_required
from panelops.utils.capacity import used_slots, used_slots_by_panel
from panelops.utils.clock import get_today
from panelops.utils.lifecycle import effective_status, migrate_panel_subscriptions
from panelops.utils.whatsapp import panel_outage_url

panels_bp = Blueprint('panels', __name__)
logger = logging.getLogger(__name__)


# ------------------ HELPER FUNCTIONS ------------------
def serialize_panel(panel, used=None):
    data = panel_schema.dump(panel)
    used = used_slots(panel) if used is None else used
    data['used_slots'] = used
    data['available_slots'] = panel.total_capacity - used
    return data


def add_event(panel, event, day, related=None):
    db.session.add(PanelEvent(
        panel_id=panel.id,
        event=event,
        event_date=day,
        related_panel_id=related.id if related else None,
    ))


def new_panel_from(data, today):
    panel = Panel(**data)
    panel.credentials_since = today
    db.session.add(panel)
    db.session.flush()
    add_event(panel, 'activated', today)
    return panel


# -------------------- PANEL ROUTES -------------------- #

@panels_bp.route('/', methods=['GET'])
@operator_required
def get_all_panels():
    query = Panel.query
    state = request.args.get('state')
    if state:
        query = query.filter_by(state=state)
    used = used_slots_by_panel()
    panels = query.order_by(Panel.name).all()
    return jsonify([serialize_panel(p, used.get(p.id, 0)) for p in panels]), 200


@panels_bp.route('/<panel_id>', methods=['GET'])
@operator_required
def get_panel(panel_id):
    panel = db.session.get(Panel, panel_id)
    if not panel:
        return jsonify({'message': 'Panel not found'}), 404

    today = get_today()
    data = serialize_panel(panel)
    data['subscriptions'] = [{
        'id': s.id,
        'client_id': s.client_id,
        'client': s.client.name,
        'service': s.service.name if s.service else None,
        'status': effective_status(s, today),
        'due_date': s.due_date.isoformat(),
    } for s in panel.subscriptions]
    return jsonify(data), 200


@panels_bp.route('/', methods=['POST'])
@operator_required
def create_panel():
    data = panel_schema.load(request.get_json() or {})
    try:
        panel = new_panel_from(data, get_today())
        db.session.commit()
        logger.info("Created panel %s (%s)", panel.id, panel.name)
        return jsonify(serialize_panel(panel, 0)), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Error creating panel")
        return jsonify({'message': f'Error: {str(e)}'}), 500


@panels_bp.route('/<panel_id>', methods=['PUT', 'PATCH'])
@operator_required
def update_panel(panel_id):
    panel = db.session.get(Panel, panel_id)
    if not panel:
        return jsonify({'message': 'Panel not found'}), 404

    data = panel_schema.load(request.get_json() or {}, partial=True)
    for field, value in data.items():
        setattr(panel, field, value)

    try:
        db.session.commit()
        return jsonify(serialize_panel(panel)), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error updating panel %s", panel_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@panels_bp.route('/<panel_id>', methods=['DELETE'])
@operator_required
def delete_panel(panel_id):
    panel = db.session.get(Panel, panel_id)
    if not panel:
        return jsonify({'message': 'Panel not found'}), 404

    try:
        removed = Subscription.query.filter_by(panel_id=panel.id).delete()
        PanelEvent.query.filter_by(related_panel_id=panel.id).update({'related_panel_id': None})
        db.session.delete(panel)
        db.session.commit()
        logger.info("Deleted panel %s with %d subscriptions", panel_id, removed)
        return jsonify({'message': 'Panel deleted successfully', 'deleted_subscriptions': removed}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error deleting panel %s", panel_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


# ------------------ OUTAGES ------------------
@panels_bp.route('/<panel_id>/down', methods=['POST'])
@operator_required
def mark_panel_down(panel_id):
    """Mark a panel as down, optionally moving its subscriptions to a replacement."""
    panel = db.session.get(Panel, panel_id)
    if not panel:
        return jsonify({'message': 'Panel not found'}), 404
    if panel.state == 'down':
        return jsonify({'message': 'Panel is already down'}), 400

    data = PanelDownSchema().load(request.get_json() or {})
    today = get_today()

    replacement = None
    if data['replacement'] == 'existing':
        replacement = db.session.get(Panel, data['replacement_panel_id'])
        if not replacement:
            return jsonify({'message': 'Replacement panel not found'}), 404
        if replacement.id == panel.id or replacement.state != 'active':
            return jsonify({'message': 'Replacement must be another active panel'}), 400

    affected = [s for s in panel.subscriptions if s.status == 'active']
    notices = [{
        'client': s.client.name,
        'whatsapp_url': panel_outage_url(s.client, panel.name, panel.service_name or (s.service.name if s.service else '')),
    } for s in affected]

    try:
        if data['replacement'] == 'new':
            replacement = new_panel_from(data['new_panel'], today)

        panel.state = 'down'
        add_event(panel, 'down', today)

        moved = []
        if replacement:
            moved = migrate_panel_subscriptions(panel, replacement)
            add_event(panel, 'replaced_by', today, related=replacement)
            add_event(replacement, 'replacement_of', today, related=panel)

        db.session.commit()
        logger.info("Panel %s marked down, %d subscriptions moved", panel.id, len(moved))
        return jsonify({
            'message': 'Panel marked as down',
            'panel': serialize_panel(panel),
            'replacement': serialize_panel(replacement) if replacement else None,
            'migrated_subscriptions': [s.id for s in moved],
            'notices': notices
        }), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error marking panel %s down", panel_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@panels_bp.route('/<panel_id>/reactivate', methods=['POST'])
@operator_required
def reactivate_panel(panel_id):
    panel = db.session.get(Panel, panel_id)
    if not panel:
        return jsonify({'message': 'Panel not found'}), 404
    if panel.state == 'active':
        return jsonify({'message': 'Panel is already active'}), 400

    try:
        panel.state = 'active'
        add_event(panel, 'activated', get_today())
        db.session.commit()
        logger.info("Panel %s reactivated", panel.id)
        return jsonify(serialize_panel(panel)), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error reactivating panel %s", panel_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


# ------------------ CREDENTIALS ------------------
@panels_bp.route('/<panel_id>/rotate-credentials', methods=['POST'])
@operator_required
def rotate_credentials(panel_id):
    panel = db.session.get(Panel, panel_id)
    if not panel:
        return jsonify({'message': 'Panel not found'}), 404

    data = RotateCredentialsSchema().load(request.get_json() or {})
    today = get_today()

    try:
        db.session.add(PanelCredential(
            panel_id=panel.id,
            email=panel.email,
            password=panel.password,
            started_on=panel.credentials_since or panel.purchase_date,
            ended_on=today,
        ))
        panel.email = data['email']
        panel.password = data['password']
        panel.credentials_since = today
        db.session.commit()
        logger.info("Rotated credentials of panel %s", panel.id)
        return jsonify(serialize_panel(panel)), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error rotating credentials of panel %s", panel_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@panels_bp.route('/<panel_id>/history', methods=['GET'])
@operator_required
def get_panel_history(panel_id):
    panel = db.session.get(Panel, panel_id)
    if not panel:
        return jsonify({'message': 'Panel not found'}), 404

    events = PanelEventSchema(many=True).dump(panel.events)
    for event, row in zip(events, panel.events):
        event['related_panel'] = row.related_panel.name if row.related_panel else None
    return jsonify({
        'events': events,
        'credentials': PanelCredentialSchema(many=True).dump(panel.credential_history)
    }), 200
