# Tenant scope resolution for report requests.
# Decides which business unit a report is filtered to, given the caller's role
# and home business unit, and how job cards are linked to a business unit in
# this deployment (own column, creator's user row, or not at all).
# Non-privileged callers are pinned to their home BU; without one they see nothing.

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import structlog

from workforce_analytics.config import settings
from workforce_analytics.services.schema import SchemaCapabilities

logger = structlog.get_logger(__name__)

# how a job card is tied to a business unit
LINK_JOB_CARD = "job_card"
LINK_CREATOR = "creator"
LINK_NONE = "none"


@dataclass(frozen=True)
class Caller:
    id: str
    role: Optional[str]
    business_unit_id: Optional[int]


@dataclass(frozen=True)
class Scope:
    unrestricted: bool
    business_unit_id: Optional[int] = None
    linkage: str = LINK_NONE
    no_visibility: bool = False

    @property
    def kind(self) -> str:
        if self.no_visibility:
            return "none"
        if self.business_unit_id is None:
            return "unrestricted"
        return f"business_unit:{self.linkage}"

    @property
    def filters_business_unit(self) -> bool:
        return self.business_unit_id is not None and not self.no_visibility


def is_unrestricted(caller: Caller, super_admin_role: Optional[str] = None) -> bool:
    role = (caller.role or "").strip().lower()
    return role == (super_admin_role or settings.SUPER_ADMIN_ROLE).strip().lower()


def job_card_linkage(capabilities: SchemaCapabilities) -> str:
    if capabilities.job_cards_business_unit:
        return LINK_JOB_CARD
    if capabilities.creator_linkage:
        return LINK_CREATOR
    return LINK_NONE


def resolve_scope(
    caller: Caller,
    requested_business_unit_id: Optional[int],
    capabilities: SchemaCapabilities,
    super_admin_role: Optional[str] = None,
) -> Scope:
    linkage = job_card_linkage(capabilities)

    if is_unrestricted(caller, super_admin_role):
        # a super admin may narrow to one BU but is never restricted
        return Scope(unrestricted=True, business_unit_id=requested_business_unit_id, linkage=linkage)

    if caller.business_unit_id is None:
        logger.info("scope_fail_closed", caller_id=caller.id, role=caller.role)
        return Scope(unrestricted=False, no_visibility=True)

    if requested_business_unit_id is not None and requested_business_unit_id != caller.business_unit_id:
        logger.info(
            "scope_business_unit_overridden",
            caller_id=caller.id,
            requested=requested_business_unit_id,
            enforced=caller.business_unit_id,
        )
    return Scope(unrestricted=False, business_unit_id=caller.business_unit_id, linkage=linkage)
