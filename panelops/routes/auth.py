import logging

from flask import Blueprint, g, request, jsonify
from flask_jwt_extended import (
    create_access_token, jwt_required, get_jwt_identity,
    create_refresh_token, get_jwt
)
from panelops import bcrypt
from panelops.models import Operator
from panelops.schemas import LoginSchema
from panelops.utils.auth import operator_required

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


def _claims(operator):
    return {'email': operator.email, 'name': operator.name}


# ------------------ LOGIN ------------------
@auth_bp.route('/login', methods=['POST'])
def login():
    data = LoginSchema().load(request.get_json() or {})

    operator = Operator.query.filter_by(email=data['email']).first()
    if not operator or not bcrypt.check_password_hash(operator.password_hash, data['password']):
        logger.warning("Failed login for %s", data['email'])
        return jsonify({'message': 'Invalid credentials'}), 401

    # identity must be a string
    access_token = create_access_token(identity=operator.id, additional_claims=_claims(operator))
    refresh_token = create_refresh_token(identity=operator.id, additional_claims=_claims(operator))
    return jsonify({
        'message': 'Login successful',
        'access_token': access_token,
        'refresh_token': refresh_token,
        'operator': {'id': operator.id, **_claims(operator)}
    }), 200


# ------------------ PROFILE ------------------
@auth_bp.route('/profile', methods=['GET'])
@operator_required
def get_profile():
    operator = g.operator
    return jsonify({'id': operator.id, **_claims(operator)}), 200


# ------------------ REFRESH TOKEN ------------------
@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh_token():
    claims = get_jwt()
    new_access = create_access_token(
        identity=get_jwt_identity(),
        additional_claims={'email': claims.get('email'), 'name': claims.get('name')}
    )
    return jsonify({'access_token': new_access}), 200


# ------------------ LOGOUT ------------------
@auth_bp.route('/logout', methods=['POST'])
@operator_required
def logout():
    return jsonify({'message': 'Logout successful'}), 200
