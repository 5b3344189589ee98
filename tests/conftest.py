import os
import tempfile
from decimal import Decimal

import pytest

# Point the test configuration at a throwaway SQLite file before config is imported
_DB_DIR = tempfile.mkdtemp(prefix='osgb-tests-')
os.environ.setdefault('TEST_DATABASE_URL', f"sqlite:///{os.path.join(_DB_DIR, 'osgb_test.db')}")

from osgb import create_app
from osgb.database import Base, create_all, drop_all, get_session
from osgb.exceptions import NotFoundError
from osgb.models import Company, HealthTest, Proposal, Currency
from osgb.services.catalog_service import CatalogEntry


class FakeCatalog:
    """In-memory catalog with the same `lookup` contract as SqlServiceCatalog."""

    def __init__(self, entries):
        self.entries = {entry.service_ref: entry for entry in entries}

    def lookup(self, service_ref):
        try:
            return self.entries[str(service_ref)]
        except KeyError:
            raise NotFoundError(f'Hizmet bulunamadı: {service_ref}')


@pytest.fixture
def catalog():
    """Two catalog services matching the worked pricing example."""
    return FakeCatalog([
        CatalogEntry('1', 'Akciğer Grafisi', Decimal('1000'), Decimal('600'), 'Radyoloji'),
        CatalogEntry('2', 'Odyometri', Decimal('500'), Decimal('200'), 'Fizik Muayene'),
        CatalogEntry('3', 'Hemogram', Decimal('150'), Decimal('90'), 'Laboratuvar'),
    ])


@pytest.fixture
def proposal():
    """Transient proposal, never attached to a session."""
    return Proposal(
        proposal_number='PR-TEST-0001',
        status='Draft',
        tax_rate_percent=Decimal('20'),
        overall_discount_percent=Decimal('0'),
        currency=Currency.TRY.value,
        exchange_rate=Decimal('1'),
        notes='İlk not',
        terms=[],
        current_version_number=0,
    )


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    create_all()
    yield app
    get_session().remove()
    drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session; every table is emptied after the test."""
    session = get_session()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.remove()


@pytest.fixture(scope='function')
def company(session):
    company = Company(
        name='Anadolu Tekstil A.Ş.',
        authorized_person='Ayşe Yılmaz',
        email='ik@anadolutekstil.example',
        sector='Tekstil',
        risk_level='High',
    )
    session.add(company)
    session.commit()
    return company


@pytest.fixture(scope='function')
def health_tests(session):
    """Catalog rows: chest x-ray and audiometry."""
    xray = HealthTest(name='Akciğer Grafisi', category='Radyoloji', price=Decimal('1000'), cost=Decimal('600'))
    audio = HealthTest(name='Odyometri', category='Fizik Muayene', price=Decimal('500'), cost=Decimal('200'))
    session.add_all([xray, audio])
    session.commit()
    return xray, audio
