"""Proposals blueprint - JSON API over the pricing engine."""
from flask import Blueprint, request, jsonify, send_file, current_app

from osgb.database import get_session
from osgb.exceptions import BusinessLogicError, ValidationError
from osgb.models import ProposalStatus, Currency
from osgb.services.pricing_service import snapshot
from osgb.services.proposal_pdf_service import generate_proposal_pdf
from osgb.services.versioning_service import get_version
from osgb.services.proposal_service import (
    create_proposal,
    get_proposal,
    list_proposals,
    proposal_stats,
    update_proposal_header,
    add_item,
    update_item,
    delete_item,
    switch_item,
    save_proposal_version,
    restore_proposal_version,
    duplicate_proposal,
    delete_proposals,
    SORT_KEYS,
)
from osgb.utils.number_format import parse_tr_number

proposals_bp = Blueprint('proposals', __name__, url_prefix='/proposals')

NUMERIC_FIELDS = (
    'unit_price', 'unit_cost', 'quantity', 'discount_percent',
    'tax_rate', 'tax_rate_percent', 'overall_discount', 'overall_discount_percent',
    'exchange_rate',
)


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BusinessLogicError('İstek gövdesi bir JSON nesnesi olmalıdır.')
    return data


def _numbers(data):
    """Parse numeric fields of a request payload (Turkish or dotted strings allowed)."""
    parsed = dict(data)
    for field in NUMERIC_FIELDS:
        if field in parsed and parsed[field] is not None:
            try:
                parsed[field] = parse_tr_number(parsed[field])
            except ValueError as e:
                raise ValidationError(field, parsed[field], str(e))
    return parsed


def _proposal_response(proposal, status_code=200):
    return jsonify({'status': 'ok', 'proposal': snapshot(proposal)}), status_code


@proposals_bp.route('/', methods=['GET'])
def list_all():
    """List proposals with status filter, search and sorting."""
    db_session = get_session()

    statuses = [s for s in request.args.getlist('status') if s]
    search = request.args.get('q', '').strip()
    sort = request.args.get('sort', 'dateDesc')

    proposals = list_proposals(db_session, statuses=statuses, search=search, sort=sort)
    return jsonify({
        'status': 'ok',
        'proposals': [
            {
                'id': p.id,
                'proposal_number': p.proposal_number,
                'company_id': p.company_id,
                'company_name': p.company.name if p.company else None,
                'issued_on': p.issued_on.isoformat() if p.issued_on else None,
                'valid_until': p.valid_until.isoformat() if p.valid_until else None,
                'is_expired': p.is_expired,
                'status': p.status,
                'currency': p.currency,
                'total_amount': str(p.grand_total),
                'current_version_number': p.current_version_number,
            }
            for p in proposals
        ],
    })


@proposals_bp.route('/stats', methods=['GET'])
def stats():
    db_session = get_session()
    return jsonify({'status': 'ok', 'stats': proposal_stats(db_session)})


@proposals_bp.route('/options', methods=['GET'])
def options():
    """Preset values for the proposal forms."""
    return jsonify({
        'status': 'ok',
        'tax_rates': current_app.config['PROPOSAL_ALLOWED_TAX_RATES'],
        'default_tax_rate': str(current_app.config['PROPOSAL_DEFAULT_TAX_RATE']),
        'currencies': [c.value for c in Currency],
        'statuses': [s.value for s in ProposalStatus],
        'sort_keys': list(SORT_KEYS),
    })


@proposals_bp.route('/', methods=['POST'])
def create():
    """Creation wizard: company + selected services + pricing parameters."""
    db_session = get_session()
    data = _numbers(_json_body())

    company_id = data.get('company_id')
    if not isinstance(company_id, int) or isinstance(company_id, bool):
        raise BusinessLogicError('company_id zorunludur.')

    lines = data.get('items') or []
    if not isinstance(lines, list) or not all(isinstance(line, dict) for line in lines):
        raise BusinessLogicError('items bir nesne listesi olmalıdır.')

    config = current_app.config
    tax_rate = data.get('tax_rate', data.get('tax_rate_percent'))
    proposal = create_proposal(
        db_session,
        company_id,
        [_numbers(line) for line in lines],
        tax_rate=tax_rate if tax_rate is not None else config['PROPOSAL_DEFAULT_TAX_RATE'],
        overall_discount=data.get('overall_discount', data.get('overall_discount_percent')) or 0,
        currency=data.get('currency') or config['PROPOSAL_DEFAULT_CURRENCY'],
        exchange_rate=data.get('exchange_rate') or 1,
        valid_until=data.get('valid_until'),
        valid_days=config['PROPOSAL_VALID_DAYS'],
        notes=data.get('notes'),
        terms=data.get('terms'),
        author=data.get('author') or config['PROPOSAL_VERSION_AUTHOR'],
        institution_name=config.get('BUSINESS_NAME', ''),
    )
    return _proposal_response(proposal, 201)


@proposals_bp.route('/<int:proposal_id>', methods=['GET'])
def view(proposal_id):
    db_session = get_session()
    return _proposal_response(get_proposal(db_session, proposal_id))


@proposals_bp.route('/<int:proposal_id>', methods=['PATCH'])
def update_header(proposal_id):
    """Edit status, notes, terms, currency, exchange rate, validity or tax/discount rates."""
    db_session = get_session()
    changes = _numbers(_json_body())
    if 'tax_rate' in changes:
        changes['tax_rate_percent'] = changes.pop('tax_rate')
    if 'overall_discount' in changes:
        changes['overall_discount_percent'] = changes.pop('overall_discount')
    proposal = update_proposal_header(db_session, proposal_id, changes)
    return _proposal_response(proposal)


@proposals_bp.route('/<int:proposal_id>', methods=['DELETE'])
def delete(proposal_id):
    db_session = get_session()
    deleted = delete_proposals(db_session, [proposal_id])
    return jsonify({'status': 'ok', 'deleted': deleted})


@proposals_bp.route('/bulk-delete', methods=['POST'])
def bulk_delete():
    """Delete several proposals at once; all or nothing."""
    db_session = get_session()
    deleted = delete_proposals(db_session, _json_body().get('ids'))
    return jsonify({'status': 'ok', 'deleted': deleted})


@proposals_bp.route('/<int:proposal_id>/items', methods=['POST'])
def add_line(proposal_id):
    """Append a catalog line (`service_ref`) or an empty custom line (`custom: true`)."""
    db_session = get_session()
    data = _numbers(_json_body())
    if not data.get('custom') and not data.get('service_ref'):
        raise BusinessLogicError('service_ref veya custom belirtilmelidir.')
    add_item(db_session, proposal_id, data)
    return _proposal_response(get_proposal(db_session, proposal_id), 201)


@proposals_bp.route('/<int:proposal_id>/items/<int:index>', methods=['PATCH'])
def update_line(proposal_id, index):
    db_session = get_session()
    update_item(db_session, proposal_id, index, _numbers(_json_body()))
    return _proposal_response(get_proposal(db_session, proposal_id))


@proposals_bp.route('/<int:proposal_id>/items/<int:index>', methods=['DELETE'])
def delete_line(proposal_id, index):
    db_session = get_session()
    delete_item(db_session, proposal_id, index)
    return _proposal_response(get_proposal(db_session, proposal_id))


@proposals_bp.route('/<int:proposal_id>/items/<int:index>/custom', methods=['POST'])
def line_to_custom(proposal_id, index):
    db_session = get_session()
    switch_item(db_session, proposal_id, index)
    return _proposal_response(get_proposal(db_session, proposal_id))


@proposals_bp.route('/<int:proposal_id>/items/<int:index>/catalog', methods=['POST'])
def line_to_catalog(proposal_id, index):
    db_session = get_session()
    service_ref = _json_body().get('service_ref')
    if not service_ref:
        raise BusinessLogicError('service_ref zorunludur.')
    switch_item(db_session, proposal_id, index, service_ref=service_ref)
    return _proposal_response(get_proposal(db_session, proposal_id))


@proposals_bp.route('/<int:proposal_id>/versions', methods=['POST'])
def save_version(proposal_id):
    """Save the current state as a new revision."""
    db_session = get_session()
    author = _json_body().get('author') or current_app.config['PROPOSAL_VERSION_AUTHOR']
    version = save_proposal_version(db_session, proposal_id, author=author)
    proposal = get_proposal(db_session, proposal_id)
    return jsonify({'status': 'ok', 'version': version.to_dict(), 'proposal': snapshot(proposal)}), 201


@proposals_bp.route('/<int:proposal_id>/versions/<int:version_number>', methods=['GET'])
def view_version(proposal_id, version_number):
    db_session = get_session()
    proposal = get_proposal(db_session, proposal_id)
    return jsonify({'status': 'ok', 'version': get_version(proposal, version_number).to_dict()})


@proposals_bp.route('/<int:proposal_id>/versions/<int:version_number>/restore', methods=['POST'])
def restore_version(proposal_id, version_number):
    db_session = get_session()
    proposal = restore_proposal_version(db_session, proposal_id, version_number)
    return _proposal_response(proposal)


@proposals_bp.route('/<int:proposal_id>/duplicate', methods=['POST'])
def duplicate(proposal_id):
    db_session = get_session()
    author = current_app.config['PROPOSAL_VERSION_AUTHOR']
    copy = duplicate_proposal(db_session, proposal_id, author=author)
    return _proposal_response(copy, 201)


@proposals_bp.route('/<int:proposal_id>/pdf', methods=['GET'])
def download_pdf(proposal_id):
    """Generate and download the proposal PDF."""
    db_session = get_session()
    proposal = get_proposal(db_session, proposal_id)

    business_info = {
        'name': current_app.config.get('BUSINESS_NAME', ''),
        'address': current_app.config.get('BUSINESS_ADDRESS', ''),
        'phone': current_app.config.get('BUSINESS_PHONE', ''),
        'email': current_app.config.get('BUSINESS_EMAIL', ''),
    }
    pdf_buffer = generate_proposal_pdf(proposal_id, db_session, business_info)

    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"teklif_{proposal.proposal_number}.pdf"
    )
