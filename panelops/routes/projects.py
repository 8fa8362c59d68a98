import logging

from flask import Blueprint, request, jsonify

from panelops import db
from panelops.models import Project
from panelops.schemas import project_schema, projects_schema, payments_schema
from panelops.utils.auth import operator_required
from panelops.utils.ledger import ZERO, round2, to_decimal

projects_bp = Blueprint('projects', __name__)
logger = logging.getLogger(__name__)


def serialize_project(project):
    data = project_schema.dump(project)
    total = sum((to_decimal(p.amount_usd) for p in project.payments), ZERO)
    data['payment_count'] = len(project.payments)
    data['total_payments'] = float(round2(total))
    return data


# -------------------- PROJECT ROUTES -------------------- #

@projects_bp.route('/', methods=['GET'])
@operator_required
def get_all_projects():
    projects = Project.query.order_by(Project.name).all()
    return jsonify([serialize_project(p) for p in projects]), 200


@projects_bp.route('/<project_id>', methods=['GET'])
@operator_required
def get_project(project_id):
    project = db.session.get(Project, project_id)
    if not project:
        return jsonify({'message': 'Project not found'}), 404

    data = serialize_project(project)
    data['payments'] = payments_schema.dump(
        sorted(project.payments, key=lambda p: p.payment_date, reverse=True)
    )
    return jsonify(data), 200


@projects_bp.route('/', methods=['POST'])
@operator_required
def create_project():
    data = project_schema.load(request.get_json() or {})
    try:
        project = Project(**data)
        db.session.add(project)
        db.session.commit()
        return jsonify({'message': 'Project created successfully', 'id': project.id}), 201
    except Exception as e:
        db.session.rollback()
        logger.exception("Error creating project")
        return jsonify({'message': f'Error: {str(e)}'}), 500


@projects_bp.route('/<project_id>', methods=['PUT', 'PATCH'])
@operator_required
def update_project(project_id):
    project = db.session.get(Project, project_id)
    if not project:
        return jsonify({'message': 'Project not found'}), 404

    data = project_schema.load(request.get_json() or {}, partial=True)
    for field, value in data.items():
        setattr(project, field, value)

    try:
        db.session.commit()
        return jsonify(serialize_project(project)), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error updating project %s", project_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500


@projects_bp.route('/<project_id>', methods=['DELETE'])
@operator_required
def delete_project(project_id):
    """Delete a project. Its payments are kept and lose the project link."""
    project = db.session.get(Project, project_id)
    if not project:
        return jsonify({'message': 'Project not found'}), 404

    try:
        db.session.delete(project)
        db.session.commit()
        return jsonify({'message': 'Project deleted successfully'}), 200
    except Exception as e:
        db.session.rollback()
        logger.exception("Error deleting project %s", project_id)
        return jsonify({'message': f'Error: {str(e)}'}), 500
