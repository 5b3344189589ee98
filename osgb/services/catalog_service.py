"""Service catalog (health tests) lookup and maintenance."""

import logging
from decimal import Decimal
from typing import NamedTuple, List, Dict, Any

from sqlalchemy.orm import Session

from osgb.exceptions import BusinessLogicError, NotFoundError
from osgb.models import HealthTest
from osgb.services.pricing_service import validate_amount

logger = logging.getLogger(__name__)


class CatalogEntry(NamedTuple):
    """What the pricing engine needs to know about a catalog service."""
    service_ref: str
    name: str
    unit_price: Decimal
    unit_cost: Decimal
    category: str


class SqlServiceCatalog:
    """Catalog backed by the `health_test` table."""

    def __init__(self, session: Session):
        self.session = session

    def lookup(self, service_ref) -> CatalogEntry:
        ref = str(service_ref).strip() if service_ref is not None else ''
        if not ref.isdigit():
            raise NotFoundError(f'Hizmet bulunamadı: {service_ref}')

        test = self.session.query(HealthTest).filter(
            HealthTest.id == int(ref),
            HealthTest.active == True  # noqa: E712
        ).first()
        if not test:
            raise NotFoundError(f'Hizmet bulunamadı: {service_ref}')

        return CatalogEntry(
            service_ref=test.service_ref,
            name=test.name,
            unit_price=Decimal(str(test.price)),
            unit_cost=Decimal(str(test.cost or 0)),
            category=test.category,
        )


def list_tests(session: Session, category: str = None) -> List[HealthTest]:
    query = session.query(HealthTest).filter(HealthTest.active == True)  # noqa: E712
    if category:
        query = query.filter(HealthTest.category == category)
    return query.order_by(HealthTest.category, HealthTest.name).all()


def create_test(session: Session, data: Dict[str, Any]) -> HealthTest:
    """Add a service to the catalog."""
    name = (data.get('name') or '').strip()
    if not name:
        raise BusinessLogicError('Hizmet adı zorunludur.')

    try:
        test = HealthTest(
            name=name,
            category=(data.get('category') or 'Genel').strip(),
            price=validate_amount(data.get('price', 0), 'price'),
            cost=validate_amount(data.get('cost', 0) or 0, 'cost'),
            description=data.get('description'),
            active=True,
        )
        session.add(test)
        session.commit()
        logger.info(f"Catalog service created: {test.id} {test.name}")
        return test
    except Exception:
        session.rollback()
        raise


def seed_tests(session: Session, rows: List[Dict[str, Any]]) -> int:
    """Insert catalog rows that are not present yet (matched by name). Returns inserted count."""
    existing = {name for (name,) in session.query(HealthTest.name).all()}
    inserted = 0
    try:
        for row in rows:
            name = (row.get('name') or '').strip()
            if not name or name in existing:
                continue
            session.add(HealthTest(
                name=name,
                category=(row.get('category') or 'Genel').strip(),
                price=validate_amount(row.get('price', 0), 'price'),
                cost=validate_amount(row.get('cost', 0) or 0, 'cost'),
                description=row.get('description'),
                active=True,
            ))
            existing.add(name)
            inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Catalog seed inserted {inserted} services")
    return inserted
