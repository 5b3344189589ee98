"""
Proposal pricing engine.

Single source of truth for line totals and document totals. The creation
wizard, the detail editor and the PDF export all go through `recompute`,
so the three views can never drift apart.

Every mutation validates first, mutates second and recomputes before
returning: a caller never sees items and totals out of step, and a
rejected call leaves the proposal exactly as it was.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List

from osgb.exceptions import BusinessLogicError, IndexOutOfRangeError, ValidationError
from osgb.models import Proposal, ProposalItem, CUSTOM_SERVICE_REF

ZERO = Decimal('0')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')

# Storage scale of prices, costs and rates (Numeric(.., 6) columns).
SCALE = Decimal('0.000001')
MAX_AMOUNT = Decimal('10') ** 12
MAX_TAX_RATE = Decimal('10') ** 6
MAX_QUANTITY = 10 ** 9

EDITABLE_ITEM_FIELDS = ('unit_price', 'unit_cost', 'quantity', 'discount_percent', 'custom_name')


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(field, value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(field, value)
    if not result.is_finite():
        raise ValidationError(field, value)
    return result


def _to_scale(number: Decimal, value: Any, field: str) -> Decimal:
    """Round to the storage scale so what is saved is what was priced."""
    if number.as_tuple().exponent >= -6:
        return number
    try:
        return number.quantize(SCALE, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(field, value)


def validate_amount(value: Any, field: str = 'unit_price') -> Decimal:
    """Non-negative money amount (price or cost), at most six decimals."""
    amount = _to_decimal(value, field)
    if amount < 0:
        raise ValidationError(field, value, f'{field} negatif olamaz.')
    if amount >= MAX_AMOUNT:
        raise ValidationError(field, value, f'{field} çok büyük.')
    return _to_scale(amount, value, field)


def validate_quantity(value: Any) -> int:
    """Non-negative integer quantity. Zero marks a line kept but not billed."""
    qty = _to_decimal(value, 'quantity')
    if qty < 0:
        raise ValidationError('quantity', value, 'Adet negatif olamaz.')
    if qty != qty.to_integral_value():
        raise ValidationError('quantity', value, 'Adet tam sayı olmalıdır.')
    if qty >= MAX_QUANTITY:
        raise ValidationError('quantity', value, 'Adet çok büyük.')
    return int(qty)


def validate_percent(value: Any, field: str = 'discount_percent') -> Decimal:
    """Percentage in the closed range [0, 100]."""
    pct = _to_decimal(value, field)
    if pct < 0 or pct > HUNDRED:
        raise ValidationError(field, value, f'{field} 0 ile 100 arasında olmalıdır.')
    return _to_scale(pct, value, field)


def validate_tax_rate(value: Any) -> Decimal:
    rate = _to_decimal(value, 'tax_rate_percent')
    if rate < 0:
        raise ValidationError('tax_rate_percent', value, 'KDV oranı negatif olamaz.')
    if rate >= MAX_TAX_RATE:
        raise ValidationError('tax_rate_percent', value, 'KDV oranı çok büyük.')
    return _to_scale(rate, value, 'tax_rate_percent')


def validate_item_field(field: str, value: Any):
    """Return the normalized value for an item field or raise."""
    if field in ('unit_price', 'unit_cost'):
        return validate_amount(value, field)
    if field == 'quantity':
        return validate_quantity(value)
    if field == 'discount_percent':
        return validate_percent(value, field)
    if field == 'custom_name':
        if value is None:
            raise ValidationError(field, value, 'Hizmet adı boş olamaz.')
        return str(value)
    raise BusinessLogicError(f'Düzenlenemeyen alan: {field}')


# ---------------------------------------------------------------------------
# Line item calculator
# ---------------------------------------------------------------------------

def compute_line_total(unit_price, quantity, discount_percent) -> Decimal:
    """unit_price * quantity * (1 - discount_percent / 100), full precision."""
    price = validate_amount(unit_price)
    qty = validate_quantity(quantity)
    pct = validate_percent(discount_percent)
    return price * qty * (1 - pct / HUNDRED)


def to_currency(value) -> Decimal:
    """Round to 2 places. Display and export only, never stored."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


# ---------------------------------------------------------------------------
# Document aggregator
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Totals:
    """Document level figures, base currency, full precision."""
    sub_total: Decimal = ZERO
    item_discount_total: Decimal = ZERO
    overall_discount_amount: Decimal = ZERO
    tax_base: Decimal = ZERO
    tax_amount: Decimal = ZERO
    grand_total: Decimal = ZERO
    total_cost: Decimal = ZERO
    estimated_profit: Decimal = ZERO
    profit_margin_percent: int = 0

    def as_dict(self) -> Dict[str, Any]:
        """JSON-safe: decimals become strings so nothing is lost in transit."""
        return {
            'sub_total': str(self.sub_total),
            'item_discount_total': str(self.item_discount_total),
            'overall_discount_amount': str(self.overall_discount_amount),
            'tax_base': str(self.tax_base),
            'tax_amount': str(self.tax_amount),
            'grand_total': str(self.grand_total),
            'total_cost': str(self.total_cost),
            'estimated_profit': str(self.estimated_profit),
            'profit_margin_percent': self.profit_margin_percent,
        }


def profit_margin(estimated_profit: Decimal, tax_base: Decimal) -> int:
    """Rounded margin percentage; 0 when there is nothing to divide by."""
    if tax_base <= 0:
        return 0
    margin = estimated_profit / tax_base * HUNDRED
    return int(margin.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def recompute(proposal: Proposal) -> Totals:
    """
    Refresh every line total and the document totals.

    Line discounts come first, then the overall discount is taken from what
    remains, so a proposal carrying both never counts a discount twice.
    """
    sub_total = ZERO
    item_discount_total = ZERO
    total_cost = ZERO

    for item in proposal.items:
        price = as_decimal(item.unit_price)
        qty = item.quantity or 0
        pct = as_decimal(item.discount_percent)
        gross = price * qty

        item._line_total = compute_line_total(price, qty, pct)
        sub_total += gross
        item_discount_total += gross * pct / HUNDRED
        total_cost += as_decimal(item.unit_cost) * qty

    after_line_discounts = sub_total - item_discount_total
    overall_discount_amount = after_line_discounts * as_decimal(proposal.overall_discount_percent) / HUNDRED
    tax_base = after_line_discounts - overall_discount_amount
    tax_amount = tax_base * as_decimal(proposal.tax_rate_percent) / HUNDRED
    estimated_profit = tax_base - total_cost

    totals = Totals(
        sub_total=sub_total,
        item_discount_total=item_discount_total,
        overall_discount_amount=overall_discount_amount,
        tax_base=tax_base,
        tax_amount=tax_amount,
        grand_total=tax_base + tax_amount,
        total_cost=total_cost,
        estimated_profit=estimated_profit,
        profit_margin_percent=profit_margin(estimated_profit, tax_base),
    )

    proposal.sub_total = totals.sub_total
    proposal.item_discount_total = totals.item_discount_total
    proposal.overall_discount_amount = totals.overall_discount_amount
    proposal.tax_base = totals.tax_base
    proposal.tax_amount = totals.tax_amount
    proposal.grand_total = totals.grand_total
    proposal.total_cost = totals.total_cost
    proposal.estimated_profit = totals.estimated_profit
    proposal.profit_margin_percent = totals.profit_margin_percent
    return totals


# ---------------------------------------------------------------------------
# Document parameters
# ---------------------------------------------------------------------------

def set_tax_rate(proposal: Proposal, rate) -> Totals:
    proposal.tax_rate_percent = validate_tax_rate(rate)
    return recompute(proposal)


def set_overall_discount(proposal: Proposal, percent) -> Totals:
    proposal.overall_discount_percent = validate_percent(percent, 'overall_discount_percent')
    return recompute(proposal)


# ---------------------------------------------------------------------------
# Item mutations
# ---------------------------------------------------------------------------

def _get_item(proposal: Proposal, index) -> ProposalItem:
    size = len(proposal.items)
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < size:
        raise IndexOutOfRangeError(index, size)
    return proposal.items[index]


def _renumber(proposal: Proposal) -> None:
    for position, item in enumerate(proposal.items):
        item.position = position


def add_catalog_item(proposal: Proposal, catalog, service_ref, default_quantity=1) -> ProposalItem:
    """Append a catalog-backed line priced from the catalog entry."""
    qty = validate_quantity(default_quantity)
    entry = catalog.lookup(service_ref)

    item = ProposalItem(
        position=len(proposal.items),
        service_ref=entry.service_ref,
        name_snapshot=entry.name,
        custom_name=None,
        unit_price=validate_amount(entry.unit_price, 'unit_price'),
        unit_cost=validate_amount(entry.unit_cost or 0, 'unit_cost'),
        quantity=qty,
        discount_percent=ZERO,
    )
    proposal.items.append(item)
    recompute(proposal)
    return item


def add_custom_item(proposal: Proposal) -> ProposalItem:
    """Append an empty free-text line; the caller fills it field by field."""
    item = ProposalItem(
        position=len(proposal.items),
        service_ref=CUSTOM_SERVICE_REF,
        name_snapshot=None,
        custom_name='',
        unit_price=ZERO,
        unit_cost=ZERO,
        quantity=1,
        discount_percent=ZERO,
    )
    proposal.items.append(item)
    recompute(proposal)
    return item


def update_item_field(proposal: Proposal, item_index, field: str, value) -> ProposalItem:
    item = _get_item(proposal, item_index)
    normalized = validate_item_field(field, value)
    if field == 'custom_name' and not item.is_custom:
        raise BusinessLogicError('Kayıtlı hizmetin adı değiştirilemez; önce özel hizmete çevirin.')

    setattr(item, field, normalized)
    recompute(proposal)
    return item


def update_item_fields(proposal: Proposal, item_index, changes: Dict[str, Any]) -> ProposalItem:
    """Apply several field edits at once; all are validated before any is applied."""
    item = _get_item(proposal, item_index)
    normalized = {field: validate_item_field(field, value) for field, value in changes.items()}
    if 'custom_name' in normalized and not item.is_custom:
        raise BusinessLogicError('Kayıtlı hizmetin adı değiştirilemez; önce özel hizmete çevirin.')

    for field, value in normalized.items():
        setattr(item, field, value)
    recompute(proposal)
    return item


def remove_item(proposal: Proposal, item_index) -> ProposalItem:
    _get_item(proposal, item_index)
    item = proposal.items.pop(item_index)
    _renumber(proposal)
    recompute(proposal)
    return item


def switch_item_to_custom(proposal: Proposal, item_index) -> ProposalItem:
    """Catalog-backed -> Custom. The catalog cost basis no longer applies."""
    item = _get_item(proposal, item_index)
    if not item.is_custom:
        item.service_ref = CUSTOM_SERVICE_REF
        item.name_snapshot = None
        item.custom_name = ''
        item.unit_cost = ZERO
    recompute(proposal)
    return item


def switch_item_to_catalog(proposal: Proposal, item_index, catalog, service_ref) -> ProposalItem:
    """Custom (or another catalog entry) -> Catalog-backed, repriced from the catalog."""
    item = _get_item(proposal, item_index)
    entry = catalog.lookup(service_ref)
    unit_price = validate_amount(entry.unit_price, 'unit_price')
    unit_cost = validate_amount(entry.unit_cost or 0, 'unit_cost')

    item.service_ref = entry.service_ref
    item.name_snapshot = entry.name
    item.custom_name = None
    item.unit_price = unit_price
    item.unit_cost = unit_cost
    recompute(proposal)
    return item


# ---------------------------------------------------------------------------
# Read model / export snapshot
# ---------------------------------------------------------------------------

def item_to_dict(item: ProposalItem) -> Dict[str, Any]:
    return {
        'service_ref': item.service_ref,
        'name': item.display_name,
        'name_snapshot': item.name_snapshot,
        'custom_name': item.custom_name,
        'unit_price': str(as_decimal(item.unit_price)),
        'unit_cost': str(as_decimal(item.unit_cost)),
        'quantity': item.quantity or 0,
        'discount_percent': str(as_decimal(item.discount_percent)),
        'line_total': str(as_decimal(item.line_total)),
    }


def item_from_dict(data: Dict[str, Any], position: int = 0) -> ProposalItem:
    """Rebuild a line from `item_to_dict` output (line total is recomputed later)."""
    custom = data['service_ref'] == CUSTOM_SERVICE_REF
    return ProposalItem(
        position=position,
        service_ref=data['service_ref'],
        name_snapshot=None if custom else data.get('name_snapshot'),
        custom_name=(data.get('custom_name') or '') if custom else None,
        unit_price=Decimal(data['unit_price']),
        unit_cost=Decimal(data.get('unit_cost') or '0'),
        quantity=int(data['quantity']),
        discount_percent=Decimal(data.get('discount_percent') or '0'),
    )


def snapshot(proposal: Proposal) -> Dict[str, Any]:
    """
    Consistent, JSON-safe read model of a proposal.

    Totals are recomputed here, so whatever consumes the snapshot (API,
    PDF) always sees figures that match the items it is handed.
    """
    totals = recompute(proposal)
    items: List[Dict[str, Any]] = [item_to_dict(item) for item in proposal.items]
    return {
        'id': proposal.id,
        'proposal_number': proposal.proposal_number,
        'company_id': proposal.company_id,
        'company_name': proposal.company.name if proposal.company else None,
        'status': proposal.status,
        'issued_on': proposal.issued_on.isoformat() if proposal.issued_on else None,
        'valid_until': proposal.valid_until.isoformat() if proposal.valid_until else None,
        'is_expired': proposal.is_expired,
        'currency': proposal.currency,
        'exchange_rate': str(as_decimal(proposal.exchange_rate)),
        'tax_rate_percent': str(as_decimal(proposal.tax_rate_percent)),
        'overall_discount_percent': str(as_decimal(proposal.overall_discount_percent)),
        'notes': proposal.notes,
        'terms': list(proposal.terms or []),
        'items': items,
        'totals': totals.as_dict(),
        'total_amount': str(totals.grand_total),
        'current_version_number': proposal.current_version_number or 0,
        'versions': [
            {'version': v.version, 'date': v.created_at.isoformat() if v.created_at else None,
             'created_by': v.created_by, 'total_amount': v.total_amount}
            for v in proposal.versions
        ],
    }
