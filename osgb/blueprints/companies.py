"""Companies blueprint (client directory)."""
from flask import Blueprint, request, jsonify

from osgb.database import get_session
from osgb.services.company_service import get_company, list_companies, create_company

companies_bp = Blueprint('companies', __name__, url_prefix='/companies')


@companies_bp.route('/', methods=['GET'])
def list_all():
    """List companies, optionally filtered by name."""
    db_session = get_session()
    search = request.args.get('q', '').strip()
    companies = list_companies(db_session, search=search or None)
    return jsonify({'status': 'ok', 'companies': [c.to_dict() for c in companies]})


@companies_bp.route('/', methods=['POST'])
def create():
    db_session = get_session()
    data = request.get_json(silent=True) or {}
    company = create_company(db_session, data)
    return jsonify({'status': 'ok', 'company': company.to_dict()}), 201


@companies_bp.route('/<int:company_id>', methods=['GET'])
def view(company_id):
    db_session = get_session()
    company = get_company(db_session, company_id)
    return jsonify({'status': 'ok', 'company': company.to_dict()})
