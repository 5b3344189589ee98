"""Company (client directory) service."""
import logging

from osgb.exceptions import BusinessLogicError, NotFoundError
from osgb.models import Company

logger = logging.getLogger(__name__)

COMPANY_STATUSES = ('Active', 'Inactive', 'Pending')
RISK_LEVELS = ('Low', 'Medium', 'High', 'Critical')


def get_company(session, company_id: int) -> Company:
    company = session.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise NotFoundError(f'Firma {company_id} bulunamadı.')
    return company


def list_companies(session, search: str = None):
    query = session.query(Company)
    if search:
        query = query.filter(Company.name.ilike(f'%{search}%'))
    return query.order_by(Company.name).all()


def create_company(session, data: dict) -> Company:
    """
    Create a company record.

    Only the name is required; the quick-add flow of the proposal wizard
    creates companies with nothing else filled in.
    """
    name = (data.get('name') or '').strip()
    if not name:
        raise BusinessLogicError('Firma adı zorunludur.')

    status = data.get('status') or 'Active'
    if status not in COMPANY_STATUSES:
        raise BusinessLogicError(f'Geçersiz firma durumu: {status}')

    risk_level = data.get('risk_level') or 'Medium'
    if risk_level not in RISK_LEVELS:
        raise BusinessLogicError(f'Geçersiz risk seviyesi: {risk_level}')

    try:
        company = Company(
            name=name,
            tax_info=data.get('tax_info'),
            authorized_person=data.get('authorized_person'),
            email=data.get('email'),
            phone=data.get('phone'),
            address=data.get('address'),
            sector=data.get('sector'),
            status=status,
            risk_level=risk_level,
        )
        session.add(company)
        session.commit()
        logger.info(f"Company created: {company.id} {company.name}")
        return company
    except Exception:
        session.rollback()
        raise
