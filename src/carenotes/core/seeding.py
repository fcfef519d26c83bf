"""Explicit, idempotent seeding of reference and demo data.

Seeding never runs implicitly at service start. Call it from test setup
or an initial deployment step:

    async with database.session() as session:
        report = await seed_defaults(session, tenants=[TenantSeed("Oak Lodge", "oak-lodge")])

Running it again changes nothing that already exists.
"""

from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from uuid_utils.compat import uuid7

from carenotes.config.settings import Settings, get_settings
from carenotes.core.audit import AuditLogger
from carenotes.core.context import SYSTEM_ACTOR_ID, system_context
from carenotes.core.logging import LogContext, get_logger
from carenotes.core.permissions import DEFAULT_ROLES
from carenotes.core.tenant import TenantService
from carenotes.db.models.role import Role
from carenotes.db.repositories.base import TenantScopedRepository
from carenotes.resources.beds import BEDS
from carenotes.resources.registry import build_service
from carenotes.resources.residents import RESIDENTS

logger = get_logger(__name__)


@dataclass(frozen=True)
class TenantSeed:
    name: str
    slug: str


@dataclass
class SeedReport:
    """What a seeding run created. Empty lists mean nothing was needed."""

    request_id: UUID
    tenants_created: list[str] = field(default_factory=list)
    roles_created: list[str] = field(default_factory=list)
    beds_created: int = 0
    residents_created: int = 0
    tenant_ids: dict[str, UUID] = field(default_factory=dict)


DEMO_BEDS = [
    {"ward": "Rose", "bed_number": "1", "bed_type": "nursing"},
    {"ward": "Rose", "bed_number": "2", "bed_type": "standard"},
    {"ward": "Willow", "bed_number": "1", "bed_type": "low"},
]

DEMO_RESIDENTS = [
    {
        "first_name": "Margaret",
        "last_name": "Hughes",
        "date_of_birth": date(1938, 4, 12),
        "gender": "female",
        "nhs_number": "943 476 5919",
        "care_level": "nursing",
        "admission_date": date(2023, 9, 1),
    },
    {
        "first_name": "Arthur",
        "last_name": "Bennett",
        "date_of_birth": date(1941, 11, 3),
        "gender": "male",
        "nhs_number": "401 023 2137",
        "care_level": "dementia",
        "admission_date": date(2024, 2, 19),
    },
]


async def seed_roles(session: AsyncSession, audit: AuditLogger, request_id: UUID) -> list[str]:
    """Insert any missing global default role. Existing rows are left alone."""
    result = await session.execute(select(Role.name).where(Role.tenant_id.is_(None)))
    existing = set(result.scalars().all())

    created: list[str] = []
    for name, (description, capabilities) in DEFAULT_ROLES.items():
        if name in existing:
            continue
        session.add(Role(name=name, description=description, capabilities=list(capabilities)))
        await session.flush()
        await audit.log_event(
            "roles.create",
            request_id=request_id,
            actor_id=SYSTEM_ACTOR_ID,
            resource_type="roles",
            resource_id=name,
            event_data={"capabilities": list(capabilities), "seeded": True},
        )
        created.append(name)
    return created


async def seed_demo_data(
    session: AsyncSession, tenant_id: UUID, settings: Settings, report: SeedReport
) -> None:
    """Create demo beds and residents for a tenant that has none.

    Records go through the resource services so every rule applies.
    Each creation is audited with the system actor.
    """
    ctx = system_context(tenant_id, request_id=report.request_id)
    audit = AuditLogger(session)

    beds = build_service(BEDS, session, settings)
    if not await TenantScopedRepository(session, BEDS.model, tenant_id).exists():
        for values in DEMO_BEDS:
            bed = await beds.create({**values, "status": "active"}, ctx)
            await audit.log_event(
                "beds.create",
                request_id=report.request_id,
                tenant_id=tenant_id,
                actor_id=SYSTEM_ACTOR_ID,
                resource_type="beds",
                resource_id=str(bed.id),
                event_data={"seeded": True},
            )
            report.beds_created += 1

    residents = build_service(RESIDENTS, session, settings)
    if not await TenantScopedRepository(session, RESIDENTS.model, tenant_id).exists():
        for values in DEMO_RESIDENTS:
            resident = await residents.create({**values, "status": "active"}, ctx)
            await audit.log_event(
                "residents.create",
                request_id=report.request_id,
                tenant_id=tenant_id,
                actor_id=SYSTEM_ACTOR_ID,
                resource_type="residents",
                resource_id=str(resident.id),
                event_data={"seeded": True},
            )
            report.residents_created += 1

    await session.commit()


async def seed_defaults(
    session: AsyncSession,
    tenants: list[TenantSeed] | tuple[TenantSeed, ...] = (),
    with_demo_data: bool = False,
    settings: Settings | None = None,
) -> SeedReport:
    """Install default roles and the given tenants.

    Args:
        session: Session to seed through; committed before returning
        tenants: Tenants to ensure exist (matched by slug)
        with_demo_data: Also create demo beds and residents for tenants
            that have none
        settings: Settings for resource services (default: global settings)

    Returns:
        SeedReport listing what was created
    """
    settings = settings or get_settings()
    report = SeedReport(request_id=uuid7())
    audit = AuditLogger(session)
    tenant_service = TenantService(session)

    with LogContext(operation="seed", request_id=str(report.request_id)):
        report.roles_created = await seed_roles(session, audit, report.request_id)

        for seed in tenants:
            tenant = await tenant_service.get_tenant_by_slug(seed.slug)
            if tenant is None:
                tenant = await tenant_service.create_tenant(
                    seed.name, seed.slug, request_id=report.request_id
                )
                report.tenants_created.append(tenant.slug)
            report.tenant_ids[tenant.slug] = tenant.tenant_id

        await session.commit()

        if with_demo_data:
            for tenant_id in report.tenant_ids.values():
                await seed_demo_data(session, tenant_id, settings, report)

        logger.info(
            "seed_completed",
            tenants_created=report.tenants_created,
            roles_created=report.roles_created,
            beds_created=report.beds_created,
            residents_created=report.residents_created,
        )
    return report
