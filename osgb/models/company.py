"""Company model (client directory)."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from osgb.database import Base, BigIntPK


class Company(Base):
    """Company (firma) receiving health screening services."""

    __tablename__ = 'company'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    tax_info = Column(String(100), nullable=True)
    authorized_person = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    sector = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default='Active')  # Active, Inactive, Pending
    risk_level = Column(String(20), nullable=False, default='Medium')  # Low, Medium, High, Critical
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    proposals = relationship('Proposal', back_populates='company')

    def __repr__(self):
        return f"<Company(id={self.id}, name='{self.name}', status='{self.status}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'tax_info': self.tax_info,
            'authorized_person': self.authorized_person,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'sector': self.sector,
            'status': self.status,
            'risk_level': self.risk_level,
        }
