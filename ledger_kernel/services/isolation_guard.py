"""
Module: ledger_kernel.services.isolation_guard
Responsibility: The single place where a caller becomes a tenant.  Resolves
    a profile to a TenantContext, stamps inserts with the tenant, checks the
    effective tenant of any ledger row and gates operations by access level.
Architecture position: Kernel > Services.  Every other service receives the
    TenantContext built here and never re-derives trust from a profile.

Invariants enforced:
    - Provider profiles resolve their tenant through their ServiceProvider
      row, never through a company field on the profile.
    - An insert can never carry a company id other than the caller's:
      ``ensure_tenant_stamped`` overwrites whatever the caller supplied.
    - Rows without a company column (expenses, revenues) are owned by the
      company of their mission.
    - Access levels are ordered none < provider < employee < owner.

Failure modes:
    - TenantResolutionError when a profile is unknown, inactive, or has no
      company / provider link.
    - InsufficientAccessError when the caller's level is too low.
    - CrossTenantError when a caller names a company that is not theirs.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import AccessLevel, TenantContext
from ledger_kernel.exceptions import (
    CrossTenantError,
    InsufficientAccessError,
    TenantResolutionError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.company import Profile, UserRole, UserType
from ledger_kernel.models.provider import ServiceProvider

logger = get_logger("services.isolation_guard")


def access_level_for(profile: Profile | None) -> AccessLevel:
    if profile is None:
        return AccessLevel.NONE
    if profile.company_id is not None and (
        profile.role == UserRole.OWNER or profile.user_type == UserType.ADMIN
    ):
        return AccessLevel.OWNER
    if profile.user_type == UserType.PROVIDER and profile.provider_id is not None:
        return AccessLevel.PROVIDER
    if profile.company_id is not None:
        return AccessLevel.EMPLOYEE
    return AccessLevel.NONE


def resolve_tenant(session: Session, profile_id: UUID) -> TenantContext:
    """
    Resolve the company a profile acts in.

    Raises:
        TenantResolutionError: The profile cannot be mapped to exactly one
            company.  Unknown profiles fail the same way, so the error does
            not reveal whether a profile id exists.
    """
    profile = session.get(Profile, profile_id)
    if profile is None:
        raise TenantResolutionError(str(profile_id), "profile not resolvable")
    if not profile.active:
        raise TenantResolutionError(str(profile_id), "profile is inactive")

    level = access_level_for(profile)

    if profile.user_type == UserType.PROVIDER:
        if profile.provider_id is None:
            raise TenantResolutionError(str(profile_id), "provider profile has no provider link")
        provider = session.get(ServiceProvider, profile.provider_id)
        if provider is None:
            raise TenantResolutionError(str(profile_id), "provider link is dangling")
        if profile.company_id is not None and profile.company_id != provider.company_id:
            raise TenantResolutionError(str(profile_id), "conflicting company links")
        tenant = TenantContext(
            company_id=provider.company_id,
            access_level=level,
            profile_id=profile.id,
            provider_id=provider.id,
        )
    else:
        if profile.company_id is None or level == AccessLevel.NONE:
            raise TenantResolutionError(str(profile_id), "profile has no company")
        tenant = TenantContext(
            company_id=profile.company_id,
            access_level=level,
            profile_id=profile.id,
        )

    logger.debug(
        "tenant_resolved",
        extra={
            "profile_id": str(profile.id),
            "company_id": str(tenant.company_id),
            "access_level": tenant.access_level.name.lower(),
        },
    )
    return tenant


def require_level(tenant: TenantContext, level: AccessLevel) -> None:
    if not tenant.at_least(level):
        logger.warning(
            "access_denied",
            extra={
                "company_id": str(tenant.company_id),
                "required": level.name.lower(),
                "actual": tenant.access_level.name.lower(),
            },
        )
        raise InsufficientAccessError(level.name.lower(), tenant.access_level.name.lower())


def require_provider_or_level(
    tenant: TenantContext,
    provider_id: UUID,
    level: AccessLevel = AccessLevel.EMPLOYEE,
) -> None:
    """Providers may act on themselves; anything else needs ``level``."""
    if tenant.access_level == AccessLevel.PROVIDER and tenant.provider_id == provider_id:
        return
    require_level(tenant, level)


def resolve_company(tenant: TenantContext, company_id: UUID | None) -> UUID:
    """The company an operation targets; only the caller's own is allowed."""
    if company_id is None:
        return tenant.company_id
    if company_id != tenant.company_id:
        logger.warning(
            "cross_tenant_request_rejected",
            extra={"company_id": str(tenant.company_id)},
        )
        raise CrossTenantError(str(company_id))
    return company_id


def ensure_tenant_stamped(record: Mapping[str, Any], tenant: TenantContext) -> dict[str, Any]:
    """A copy of ``record`` whose ``company_id`` is the caller's tenant."""
    stamped = dict(record)
    supplied = stamped.get("company_id")
    if supplied is not None and supplied != tenant.company_id:
        logger.warning(
            "tenant_stamp_overrode_company",
            extra={"company_id": str(tenant.company_id)},
        )
    stamped["company_id"] = tenant.company_id
    return stamped


def effective_company_id(record: Any) -> UUID | None:
    """Direct company id, or the company of the record's mission."""
    if getattr(type(record), "__tenant_via__", None) == "mission":
        mission = getattr(record, "mission", None)
        return mission.company_id if mission is not None else None
    return getattr(record, "company_id", None)


def assert_ownership(record: Any, tenant: TenantContext) -> bool:
    """True only when ``record`` belongs to the caller's tenant."""
    owner = effective_company_id(record)
    return owner is not None and owner == tenant.company_id
