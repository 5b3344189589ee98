"""Models package - exports all SQLAlchemy models."""
# Directory Models
from osgb.models.company import Company
from osgb.models.health_test import HealthTest

# Proposal Models
from osgb.models.proposal import Proposal, ProposalStatus, Currency
from osgb.models.proposal_item import ProposalItem, CUSTOM_SERVICE_REF
from osgb.models.proposal_version import ProposalVersion

__all__ = [
    # Directory
    'Company', 'HealthTest',
    # Proposals
    'Proposal', 'ProposalStatus', 'Currency',
    'ProposalItem', 'CUSTOM_SERVICE_REF',
    'ProposalVersion',
]
