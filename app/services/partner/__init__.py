"""
Partner services.

Hierarchy integrity and partner profile lifecycle.
"""

from app.services.partner.hierarchy_service import (
    DownlinePage,
    HierarchyService,
    TeamOverview,
)
from app.services.partner.partner_service import (
    InviteFixResult,
    InviteTaskAnalysis,
    MissingInvite,
    PartnerService,
)

__all__ = [
    "DownlinePage",
    "HierarchyService",
    "InviteFixResult",
    "InviteTaskAnalysis",
    "MissingInvite",
    "PartnerService",
    "TeamOverview",
]
