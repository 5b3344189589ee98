"""Append-only proposal version history."""

from datetime import datetime
from typing import Callable, Optional

from osgb.exceptions import NotFoundError
from osgb.models import Proposal, ProposalVersion
from osgb.services.pricing_service import recompute, item_to_dict, item_from_dict, as_decimal


def next_version_number(proposal: Proposal) -> int:
    """max(existing) + 1; numbers are never reused, restores included."""
    return max((v.version for v in proposal.versions), default=0) + 1


def save_version(proposal: Proposal, author: str, clock: Optional[Callable[[], datetime]] = None) -> ProposalVersion:
    """Snapshot items, total and notes as a new immutable version."""
    totals = recompute(proposal)
    number = next_version_number(proposal)
    now = (clock or datetime.now)()

    version = ProposalVersion(
        version=number,
        created_at=now,
        created_by=author,
        items=[item_to_dict(item) for item in proposal.items],
        total_amount=str(totals.grand_total),
        notes=proposal.notes,
        tax_rate_percent=str(as_decimal(proposal.tax_rate_percent)),
        overall_discount_percent=str(as_decimal(proposal.overall_discount_percent)),
    )
    proposal.versions.append(version)
    proposal.current_version_number = number
    return version


def get_version(proposal: Proposal, version_number: int) -> ProposalVersion:
    for version in proposal.versions:
        if version.version == version_number:
            return version
    raise NotFoundError(f'Revizyon v{version_number} bulunamadı.')


def restore_version(proposal: Proposal, version_number: int):
    """
    Copy a version back onto the live proposal and recompute.

    Unsaved edits are overwritten. No version is created here and later
    versions stay in the history; the next explicit save appends after them.
    """
    version = get_version(proposal, version_number)

    proposal.items = [item_from_dict(data, position) for position, data in enumerate(version.items)]
    proposal.notes = version.notes
    proposal.tax_rate_percent = as_decimal(version.tax_rate_percent)
    proposal.overall_discount_percent = as_decimal(version.overall_discount_percent)
    proposal.current_version_number = version.version
    return recompute(proposal)
