"""ProposalItem model for proposal line items."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from osgb.database import Base, BigIntPK

# service_ref sentinel for free-text lines
CUSTOM_SERVICE_REF = 'custom'


class ProposalItem(Base):
    """
    Proposal Item (Teklif Kalemi).

    Either catalog-backed (`service_ref` is a HealthTest id, `custom_name`
    is None) or custom (`service_ref == 'custom'`, `custom_name` is a str).
    `line_total` is read-only here; only the pricing engine refreshes it.
    """

    __tablename__ = 'proposal_item'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    proposal_id = Column(BigInteger, ForeignKey('proposal.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    service_ref = Column(String(64), nullable=False)
    name_snapshot = Column(String(200), nullable=True)
    custom_name = Column(String(200), nullable=True)

    unit_price = Column(Numeric(18, 6), nullable=False, default=0)
    unit_cost = Column(Numeric(18, 6), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)
    discount_percent = Column(Numeric(9, 6), nullable=False, default=0)
    _line_total = Column('line_total', Numeric(32, 6), nullable=False, default=0)

    # Relationships
    proposal = relationship('Proposal', back_populates='items')

    def __repr__(self):
        return f"<ProposalItem(id={self.id}, ref='{self.service_ref}', qty={self.quantity}, total={self._line_total})>"

    @property
    def line_total(self):
        return self._line_total

    @property
    def is_custom(self):
        return self.service_ref == CUSTOM_SERVICE_REF

    @property
    def display_name(self):
        if self.is_custom:
            return self.custom_name or 'Özel Hizmet'
        return self.name_snapshot or 'Özel Hizmet'
