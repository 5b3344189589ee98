"""Proposal model for service proposals (teklifler)."""
import enum
from datetime import date
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, Date, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from osgb.database import Base, BigIntPK


class ProposalStatus(enum.Enum):
    """Proposal status enum. Transitions are manual, any to any."""
    DRAFT = "Draft"
    SENT = "Sent"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Currency(enum.Enum):
    """Display currency. Totals are always stored in the base currency."""
    TRY = "TRY"
    USD = "USD"
    EUR = "EUR"


class Proposal(Base):
    """
    Proposal (Teklif).

    Stored totals are written only by the pricing engine's recompute step,
    so they always reflect the current items and document parameters.
    `versions` is an append-only history of snapshots.
    """

    __tablename__ = 'proposal'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    proposal_number = Column(String(32), nullable=False, unique=True)
    company_id = Column(BigInteger, ForeignKey('company.id'), nullable=False)
    status = Column(String(20), nullable=False, default=ProposalStatus.DRAFT.value)
    issued_on = Column(Date, nullable=False, default=date.today)
    valid_until = Column(Date, nullable=True)

    # Pricing parameters
    tax_rate_percent = Column(Numeric(12, 6), nullable=False, default=0)
    overall_discount_percent = Column(Numeric(9, 6), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default=Currency.TRY.value)
    exchange_rate = Column(Numeric(18, 6), nullable=False, default=1)  # informational only

    notes = Column(Text, nullable=True)
    terms = Column(JSON, nullable=True)

    # Derived totals (base currency, full precision)
    sub_total = Column(Numeric(32, 6), nullable=False, default=0)
    item_discount_total = Column(Numeric(32, 6), nullable=False, default=0)
    overall_discount_amount = Column(Numeric(32, 6), nullable=False, default=0)
    tax_base = Column(Numeric(32, 6), nullable=False, default=0)
    tax_amount = Column(Numeric(32, 6), nullable=False, default=0)
    grand_total = Column(Numeric(32, 6), nullable=False, default=0)
    total_cost = Column(Numeric(32, 6), nullable=False, default=0)
    estimated_profit = Column(Numeric(32, 6), nullable=False, default=0)
    profit_margin_percent = Column(Integer, nullable=False, default=0)

    current_version_number = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    company = relationship('Company', back_populates='proposals')
    items = relationship(
        'ProposalItem', back_populates='proposal',
        order_by='ProposalItem.position', cascade='all, delete-orphan'
    )
    versions = relationship(
        'ProposalVersion', back_populates='proposal',
        order_by='ProposalVersion.version', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f"<Proposal(id={self.id}, number='{self.proposal_number}', status='{self.status}', total={self.grand_total})>"

    @property
    def total_amount(self):
        """Grand total in base currency."""
        return self.grand_total

    @property
    def is_expired(self):
        """Advisory only: no status change happens when a proposal expires."""
        if self.valid_until is None:
            return False
        return date.today() > self.valid_until
