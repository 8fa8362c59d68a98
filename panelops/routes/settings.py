import logging

from flask import Blueprint, request, jsonify

from panelops import db
from panelops.schemas import SettingsSchema
from panelops.utils.auth import operator_required
from panelops.utils.settings import get_settings, update_settings

settings_bp = Blueprint('settings', __name__)
logger = logging.getLogger(__name__)


@settings_bp.route('/', methods=['GET'])
@operator_required
def read_settings():
    return jsonify(get_settings()), 200


@settings_bp.route('/', methods=['PUT', 'PATCH'])
@operator_required
def write_settings():
    # every field is optional, so a plain load already behaves as a patch
    data = SettingsSchema().load(request.get_json() or {})
    try:
        settings = update_settings(data)
        db.session.commit()
        logger.info("Updated settings: %s", ', '.join(sorted(data)))
        return jsonify(settings), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error updating settings")
        return jsonify({'message': f'Error: {str(e)}'}), 500
