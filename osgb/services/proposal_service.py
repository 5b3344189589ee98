"""Proposal service: creation wizard, detail editing, versions and listing."""

import logging
from datetime import datetime, date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, List, Optional, Callable

from sqlalchemy import or_, func, cast, String
from sqlalchemy.orm import Session

from osgb.exceptions import BusinessLogicError, NotFoundError
from osgb.models import Proposal, ProposalStatus, Currency, Company, CUSTOM_SERVICE_REF
from osgb.services.catalog_service import SqlServiceCatalog
from osgb.services.company_service import get_company
from osgb.services import pricing_service as pricing
from osgb.services.versioning_service import save_version, restore_version

logger = logging.getLogger(__name__)

DEFAULT_TERMS = [
    'Fiyatlara KDV dahil değildir.',
    'Ödeme, hizmet bitiminde 15 gün içinde yapılmalıdır.',
    'Randevu iptalleri en geç 24 saat önceden bildirilmelidir.',
    'Bu belge elektronik ortamda oluşturulmuştur.',
]

DEFAULT_INTRO = 'Talebiniz üzerine hazırlanan hizmet teklifimiz ve detayları aşağıda bilgilerinize sunulmuştur.'

SORT_KEYS = ('dateDesc', 'dateAsc', 'amountDesc', 'amountAsc')
HEADER_FIELDS = (
    'status', 'notes', 'terms', 'currency', 'exchange_rate',
    'valid_until', 'tax_rate_percent', 'overall_discount_percent',
)


def generate_proposal_number(session: Session, today: Optional[date] = None) -> str:
    """Generate a unique proposal number, e.g. PR-2026-0007."""
    year = (today or date.today()).year
    prefix = f"PR-{year}-"
    numbers = session.query(Proposal.proposal_number).filter(Proposal.proposal_number.like(f"{prefix}%")).all()
    # max + 1: numbers of deleted proposals are never reused
    last = max((int(number[len(prefix):]) for (number,) in numbers if number[len(prefix):].isdigit()), default=0)
    return f"{prefix}{str(last + 1).zfill(4)}"


def build_cover_note(company: Company, service_names: List[str], valid_until: Optional[date], institution_name: str = '') -> str:
    """Default cover letter placed in the proposal notes."""
    addressee = company.authorized_person or 'Yetkili'
    scope = ', '.join(name for name in service_names if name)
    valid_text = valid_until.strftime('%d.%m.%Y') if valid_until else '-'
    return (
        f"Sayın {addressee},\n\n"
        f"{company.name} firması çalışanları için talep etmiş olduğunuz aşağıdaki sağlık tarama "
        f"hizmetlerine ilişkin teklifimiz ekte sunulmuştur.\n\n"
        f"Kapsam: {scope}\n\n"
        f"Teklifimiz {valid_text} tarihine kadar geçerlidir.\n\n"
        f"Saygılarımızla,\n{institution_name}"
    ).rstrip()


def _parse_date(value, field: str = 'valid_until') -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        raise BusinessLogicError(f'Geçersiz tarih ({field}): {value}. Beklenen biçim YYYY-AA-GG.')


def _validate_status(value) -> str:
    allowed = [s.value for s in ProposalStatus]
    if value not in allowed:
        raise BusinessLogicError(f'Geçersiz teklif durumu: {value}. İzin verilenler: {", ".join(allowed)}')
    return value


def _validate_currency(value) -> str:
    code = (value or '').strip().upper()
    allowed = [c.value for c in Currency]
    if code not in allowed:
        raise BusinessLogicError(f'Geçersiz para birimi: {value}. İzin verilenler: {", ".join(allowed)}')
    return code


def _validate_exchange_rate(value) -> Decimal:
    rate = pricing.validate_amount(value, 'exchange_rate')
    if rate == 0:
        raise BusinessLogicError('Döviz kuru sıfır olamaz.')
    return rate


def _validate_terms(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise BusinessLogicError('Koşullar bir metin listesi olmalıdır.')
    return [str(term) for term in value]


def get_proposal(session: Session, proposal_id: int) -> Proposal:
    proposal = session.query(Proposal).filter(Proposal.id == proposal_id).first()
    if not proposal:
        raise NotFoundError(f'Teklif {proposal_id} bulunamadı.')
    return proposal


def _apply_line(proposal: Proposal, catalog, line: Dict[str, Any]):
    """Add one wizard line: a catalog service or a custom entry, with optional overrides."""
    overrides = {
        field: line[field]
        for field in ('unit_price', 'unit_cost', 'discount_percent')
        if line.get(field) is not None
    }
    service_ref = line.get('service_ref')

    if line.get('custom') or service_ref == CUSTOM_SERVICE_REF:
        item = pricing.add_custom_item(proposal)
        overrides['custom_name'] = line.get('custom_name') or ''
        if line.get('quantity') is not None:
            overrides['quantity'] = line['quantity']
    else:
        item = pricing.add_catalog_item(proposal, catalog, service_ref, line.get('quantity', 1))

    if overrides:
        pricing.update_item_fields(proposal, len(proposal.items) - 1, overrides)
    return item


def create_proposal(
    session: Session,
    company_id: int,
    lines: List[Dict[str, Any]],
    *,
    tax_rate,
    valid_days: int,
    author: str,
    overall_discount=0,
    currency: str = Currency.TRY.value,
    exchange_rate=1,
    valid_until=None,
    notes: Optional[str] = None,
    terms: Optional[List[str]] = None,
    institution_name: str = '',
    catalog=None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Proposal:
    """Create a Draft proposal with its initial version (v1)."""
    if not lines:
        raise BusinessLogicError('Teklif için en az bir hizmet seçilmelidir.')

    try:
        company = get_company(session, company_id)
        catalog = catalog or SqlServiceCatalog(session)
        now = (clock or datetime.now)()
        today = now.date()

        proposal = Proposal(
            proposal_number=generate_proposal_number(session, today),
            company=company,
            status=ProposalStatus.DRAFT.value,
            issued_on=today,
            valid_until=_parse_date(valid_until) or today + timedelta(days=valid_days),
            tax_rate_percent=pricing.validate_tax_rate(tax_rate),
            overall_discount_percent=pricing.validate_percent(overall_discount or 0, 'overall_discount_percent'),
            currency=_validate_currency(currency),
            exchange_rate=_validate_exchange_rate(exchange_rate),
            terms=list(DEFAULT_TERMS) if terms is None else _validate_terms(terms),
            current_version_number=0,
        )

        for line in lines:
            _apply_line(proposal, catalog, line)

        if notes is None:
            names = [item.display_name for item in proposal.items]
            notes = build_cover_note(company, names, proposal.valid_until, institution_name)
        proposal.notes = notes

        save_version(proposal, author, clock=lambda: now)

        session.add(proposal)
        session.commit()
        logger.info(f"Proposal created: {proposal.proposal_number} total={proposal.grand_total}")
        return proposal
    except Exception:
        session.rollback()
        raise


def _mutate(session: Session, proposal_id: int, operation: Callable[[Proposal], Any]):
    """Run an engine operation on a stored proposal inside one transaction."""
    try:
        proposal = get_proposal(session, proposal_id)
        result = operation(proposal)
        session.commit()
        return result
    except Exception:
        session.rollback()
        raise


def add_item(session: Session, proposal_id: int, data: Dict[str, Any], catalog=None):
    """Detail editor: append a catalog or custom line."""
    catalog = catalog or SqlServiceCatalog(session)
    return _mutate(session, proposal_id, lambda proposal: _apply_line(proposal, catalog, data))


def update_item(session: Session, proposal_id: int, index: int, changes: Dict[str, Any]):
    if not changes:
        raise BusinessLogicError('Güncellenecek alan belirtilmedi.')
    return _mutate(session, proposal_id, lambda proposal: pricing.update_item_fields(proposal, index, changes))


def delete_item(session: Session, proposal_id: int, index: int):
    return _mutate(session, proposal_id, lambda proposal: pricing.remove_item(proposal, index))


def switch_item(session: Session, proposal_id: int, index: int, service_ref=None, catalog=None):
    """To custom when `service_ref` is None, otherwise to that catalog service."""
    if service_ref is None:
        return _mutate(session, proposal_id, lambda proposal: pricing.switch_item_to_custom(proposal, index))

    catalog = catalog or SqlServiceCatalog(session)
    return _mutate(
        session, proposal_id,
        lambda proposal: pricing.switch_item_to_catalog(proposal, index, catalog, service_ref)
    )


def update_proposal_header(session: Session, proposal_id: int, changes: Dict[str, Any]) -> Proposal:
    """Edit document-level fields. Everything is validated before anything is applied."""
    unknown = set(changes) - set(HEADER_FIELDS)
    if unknown:
        raise BusinessLogicError(f'Düzenlenemeyen alan: {", ".join(sorted(unknown))}')

    validators = {
        'status': _validate_status,
        'notes': lambda v: v,
        'terms': _validate_terms,
        'currency': _validate_currency,
        'exchange_rate': _validate_exchange_rate,
        'valid_until': _parse_date,
        'tax_rate_percent': pricing.validate_tax_rate,
        'overall_discount_percent': lambda v: pricing.validate_percent(v, 'overall_discount_percent'),
    }
    normalized = {field: validators[field](value) for field, value in changes.items()}

    def apply(proposal: Proposal) -> Proposal:
        previous_status = proposal.status
        for field, value in normalized.items():
            setattr(proposal, field, value)
        pricing.recompute(proposal)
        if 'status' in normalized and normalized['status'] != previous_status:
            logger.info(f"Proposal {proposal.proposal_number} status {previous_status} -> {proposal.status}")
        return proposal

    return _mutate(session, proposal_id, apply)


def save_proposal_version(session: Session, proposal_id: int, author: str, clock=None):
    def apply(proposal: Proposal):
        version = save_version(proposal, author, clock=clock)
        logger.info(f"Proposal {proposal.proposal_number} saved as v{version.version} by {author}")
        return version

    return _mutate(session, proposal_id, apply)


def restore_proposal_version(session: Session, proposal_id: int, version_number: int) -> Proposal:
    def apply(proposal: Proposal) -> Proposal:
        restore_version(proposal, version_number)
        logger.info(f"Proposal {proposal.proposal_number} restored to v{version_number}")
        return proposal

    return _mutate(session, proposal_id, apply)


def duplicate_proposal(session: Session, proposal_id: int, author: str, clock=None) -> Proposal:
    """Copy a proposal into a new Draft with a fresh v1 history."""
    try:
        source = get_proposal(session, proposal_id)
        now = (clock or datetime.now)()

        copy = Proposal(
            proposal_number=generate_proposal_number(session, now.date()),
            company_id=source.company_id,
            status=ProposalStatus.DRAFT.value,
            issued_on=now.date(),
            valid_until=source.valid_until,
            tax_rate_percent=source.tax_rate_percent,
            overall_discount_percent=source.overall_discount_percent,
            currency=source.currency,
            exchange_rate=source.exchange_rate,
            notes=source.notes,
            terms=list(source.terms or []),
            current_version_number=0,
        )
        copy.items = [
            pricing.item_from_dict(pricing.item_to_dict(item), position)
            for position, item in enumerate(source.items)
        ]
        save_version(copy, author, clock=lambda: now)

        session.add(copy)
        session.commit()
        logger.info(f"Proposal {source.proposal_number} duplicated as {copy.proposal_number}")
        return copy
    except Exception:
        session.rollback()
        raise


def delete_proposals(session: Session, proposal_ids: List[int]) -> int:
    """
    Delete proposals with their items and versions.

    All or nothing: if any id is unknown, nothing is deleted.
    Returns the number of deleted proposals.
    """
    if not isinstance(proposal_ids, (list, tuple)) or not proposal_ids:
        raise BusinessLogicError('Silinecek teklif seçilmedi.')
    if any(isinstance(pid, bool) or not isinstance(pid, int) for pid in proposal_ids):
        raise BusinessLogicError('Teklif kimlikleri tam sayı olmalıdır.')

    wanted = set(proposal_ids)
    try:
        proposals = session.query(Proposal).filter(Proposal.id.in_(wanted)).all()
        missing = sorted(wanted - {p.id for p in proposals})
        if missing:
            raise NotFoundError(f"Teklif bulunamadı: {', '.join(str(pid) for pid in missing)}", {'ids': missing})

        numbers = [p.proposal_number for p in proposals]
        for proposal in proposals:
            session.delete(proposal)
        session.commit()
        logger.info(f"Proposals deleted: {', '.join(numbers)}")
        return len(proposals)
    except Exception:
        session.rollback()
        raise


def list_proposals(session: Session, statuses: Optional[List[str]] = None, search: str = '', sort: str = 'dateDesc') -> List[Proposal]:
    """List proposals with status filter, free-text search and sorting."""
    query = session.query(Proposal).join(Company, Proposal.company_id == Company.id)

    if statuses:
        query = query.filter(Proposal.status.in_([_validate_status(s) for s in statuses]))

    search = (search or '').strip()
    if search:
        query = query.filter(
            or_(
                Proposal.proposal_number.ilike(f'%{search}%'),
                Company.name.ilike(f'%{search}%'),
                cast(Proposal.issued_on, String).like(f'%{search}%'),
            )
        )

    if sort not in SORT_KEYS:
        raise BusinessLogicError(f'Geçersiz sıralama: {sort}')
    ordering = {
        'dateDesc': (Proposal.issued_on.desc(), Proposal.id.desc()),
        'dateAsc': (Proposal.issued_on.asc(), Proposal.id.asc()),
        'amountDesc': (Proposal.grand_total.desc(), Proposal.id.desc()),
        'amountAsc': (Proposal.grand_total.asc(), Proposal.id.asc()),
    }[sort]
    return query.order_by(*ordering).all()


def proposal_stats(session: Session) -> Dict[str, Any]:
    """Counts per status, pipeline amounts and conversion rate."""
    rows = session.query(
        Proposal.status,
        func.count(Proposal.id),
        func.coalesce(func.sum(Proposal.grand_total), 0),
    ).group_by(Proposal.status).all()

    counts = {status.value: 0 for status in ProposalStatus}
    amounts = {status.value: Decimal('0') for status in ProposalStatus}
    for status, count, amount in rows:
        counts[status] = count
        amounts[status] = Decimal(str(amount))

    total_count = sum(counts.values())
    approved = counts[ProposalStatus.APPROVED.value]
    conversion_rate = 0
    if total_count:
        conversion_rate = int((Decimal(approved) / total_count * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    return {
        'counts': counts,
        'total_count': total_count,
        'total_amount': str(sum(amounts.values(), Decimal('0'))),
        'approved_amount': str(amounts[ProposalStatus.APPROVED.value]),
        'pending_amount': str(amounts[ProposalStatus.SENT.value] + amounts[ProposalStatus.DRAFT.value]),
        'conversion_rate': conversion_rate,
    }
