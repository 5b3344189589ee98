"""ProposalVersion model - immutable proposal snapshots."""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Text, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from osgb.database import Base, BigIntPK


class ProposalVersion(Base):
    """
    Proposal Version (Revizyon).

    `items` holds a JSON copy of the line items with decimals stored as
    strings, so restoring a version reproduces the exact values.
    Rows are never updated or deleted once written.
    """

    __tablename__ = 'proposal_version'
    __table_args__ = (
        UniqueConstraint('proposal_id', 'version', name='uq_proposal_version'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    proposal_id = Column(BigInteger, ForeignKey('proposal.id', ondelete='CASCADE'), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(200), nullable=False)

    items = Column(JSON, nullable=False)
    total_amount = Column(String(40), nullable=False)
    notes = Column(Text, nullable=True)
    tax_rate_percent = Column(String(20), nullable=False)
    overall_discount_percent = Column(String(20), nullable=False)

    # Relationships
    proposal = relationship('Proposal', back_populates='versions')

    def __repr__(self):
        return f"<ProposalVersion(proposal_id={self.proposal_id}, version={self.version}, total={self.total_amount})>"

    def to_dict(self):
        return {
            'version': self.version,
            'date': self.created_at.isoformat() if self.created_at else None,
            'created_by': self.created_by,
            'items': self.items,
            'total_amount': self.total_amount,
            'notes': self.notes,
            'tax_rate_percent': self.tax_rate_percent,
            'overall_discount_percent': self.overall_discount_percent,
        }
