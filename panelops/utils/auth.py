from functools import wraps
from flask import g, jsonify
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity

from panelops import db
from panelops.models import Operator


def operator_required(f):
    """Require a valid access token that belongs to an existing operator."""
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            verify_jwt_in_request()
        except Exception as e:
            return jsonify({'message': str(e) or 'Token is invalid'}), 401

        operator = db.session.get(Operator, get_jwt_identity())
        if not operator:
            return jsonify({'message': 'Operator not found'}), 401
        g.operator = operator
        return f(*args, **kwargs)
    return decorated
