"""
Service layer for missions.

Missions are created by a provider or staff, approved by an owner and moved
through planning -> in_progress -> completed.  Approval is what makes a
mission's provider value count toward provider balances.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.dtos import AccessLevel
from ledger_kernel.exceptions import InsufficientAccessError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.mission import Mission, MissionStatus
from ledger_kernel.models.provider import ServiceProvider
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.isolation_guard import require_level

logger = get_logger("services.mission")


@dataclass(frozen=True)
class MissionInfo:
    id: UUID
    company_id: UUID
    title: str
    status: MissionStatus
    is_approved: bool
    approved_at: datetime | None
    provider_id: UUID | None
    assigned_provider_ids: tuple[UUID, ...]
    service_value: Decimal | None
    provider_value: Decimal | None
    company_value: Decimal | None
    budget: Decimal | None
    total_expenses: Decimal


class MissionService(BaseService):

    def _to_dto(self, mission: Mission) -> MissionInfo:
        return MissionInfo(
            id=mission.id,
            company_id=mission.company_id,
            title=mission.title,
            status=mission.status,
            is_approved=mission.is_approved,
            approved_at=mission.approved_at,
            provider_id=mission.provider_id,
            assigned_provider_ids=mission.assigned_provider_ids,
            service_value=mission.service_value,
            provider_value=mission.provider_value,
            company_value=mission.company_value,
            budget=mission.budget,
            total_expenses=mission.total_expenses,
        )

    def _tenant_providers(self, provider_ids: Sequence[UUID]) -> list[ServiceProvider]:
        # Each lookup is tenant filtered; a foreign provider is "not found".
        return [self.store.get_provider(pid) for pid in dict.fromkeys(provider_ids)]

    def create_mission(
        self,
        title: str,
        location: str = "",
        provider_id: UUID | None = None,
        assigned_provider_ids: Sequence[UUID] = (),
        service_value=None,
        provider_value=None,
        company_value=None,
        budget=None,
        client_name: str | None = None,
        description: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> MissionInfo:
        require_level(self.tenant, AccessLevel.PROVIDER)
        if self.tenant.access_level == AccessLevel.PROVIDER and provider_id != self.tenant.provider_id:
            raise InsufficientAccessError("employee", "provider")

        if provider_id is not None:
            self.store.get_provider(provider_id)
        assigned = self._tenant_providers(assigned_provider_ids)

        mission = self.store.insert(
            Mission,
            {
                "title": self._required_text("title", title),
                "location": location or "",
                "description": description,
                "client_name": client_name,
                "provider_id": provider_id,
                "service_value": service_value,
                "provider_value": provider_value,
                "company_value": company_value,
                "budget": budget,
                "start_date": start_date,
                "end_date": end_date,
                "created_by": self.tenant.profile_id,
            },
        )
        if assigned:
            mission.assigned_providers = assigned
            self.session.flush()

        logger.info(
            "mission_created",
            extra={"mission_id": str(mission.id), "provider_id": str(provider_id) if provider_id else None},
        )
        return self._to_dto(mission)

    def assign_providers(
        self,
        mission_id: UUID,
        provider_ids: Sequence[UUID],
        primary_provider_id: UUID | None = None,
    ) -> MissionInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        mission = self.store.get_mission(mission_id)
        if primary_provider_id is not None:
            self.store.get_provider(primary_provider_id)
            mission.provider_id = primary_provider_id
        mission.assigned_providers = self._tenant_providers(provider_ids)
        self.session.flush()
        logger.info(
            "mission_providers_assigned",
            extra={"mission_id": str(mission_id), "provider_count": len(mission.assigned_providers)},
        )
        return self._to_dto(mission)

    def approve_mission(self, mission_id: UUID, provider_value=None) -> MissionInfo:
        """Owner approval; from here on the provider value counts as earned."""
        require_level(self.tenant, AccessLevel.OWNER)
        mission = self.store.get_mission(mission_id)
        if provider_value is not None:
            mission.provider_value = self._positive_amount("provider_value", provider_value)
        mission.is_approved = True
        mission.approved_at = self.clock.now()
        mission.approved_by = self.tenant.profile_id
        self.session.flush()
        logger.info(
            "mission_approved",
            extra={"mission_id": str(mission_id), "provider_value": mission.provider_value},
        )
        return self._to_dto(mission)

    def set_status(self, mission_id: UUID, status: MissionStatus) -> MissionInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        mission = self.store.get_mission(mission_id)
        mission.status = MissionStatus(status)
        self.session.flush()
        return self._to_dto(mission)

    def get_mission(self, mission_id: UUID) -> MissionInfo:
        return self._to_dto(self.store.get_mission(mission_id))
