"""Catalog blueprint for the health test / service catalog."""
from flask import Blueprint, request, jsonify

from osgb.database import get_session
from osgb.services.catalog_service import list_tests, create_test

catalog_bp = Blueprint('catalog', __name__, url_prefix='/catalog')


@catalog_bp.route('/tests', methods=['GET'])
def list_catalog_tests():
    """List active catalog services, optionally by category."""
    db_session = get_session()
    category = request.args.get('category', '').strip() or None
    tests = list_tests(db_session, category=category)
    return jsonify({'status': 'ok', 'tests': [t.to_dict() for t in tests]})


@catalog_bp.route('/tests', methods=['POST'])
def create_catalog_test():
    """Add a service to the catalog."""
    db_session = get_session()
    data = request.get_json(silent=True) or {}
    test = create_test(db_session, data)
    return jsonify({'status': 'ok', 'test': test.to_dict()}), 201
