"""Bearer credential issuing and verification.

Credentials are signed JWTs carrying the actor, the tenant and role names.

Claims:
    sub: actor UUID
    tid: tenant UUID
    roles: list of role names
    typ: "human" or "service"
    iss, iat, exp: standard registered claims
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt

from carenotes.config.settings import Settings
from carenotes.core.context import ActorType
from carenotes.core.exceptions import AuthenticationError

REQUIRED_CLAIMS = ["sub", "tid", "iss", "iat", "exp"]
ACCEPTED_ACTOR_TYPES = (ActorType.HUMAN, ActorType.SERVICE)


@dataclass(frozen=True)
class VerifiedCredential:
    """Identity extracted from a verified credential."""

    actor_id: UUID
    tenant_id: UUID
    actor_type: ActorType
    roles: frozenset[str] = field(default_factory=frozenset)
    expires_at: datetime | None = None


def _signing_secret(settings: Settings) -> str:
    if settings.CREDENTIAL_SIGNING_SECRET is None:
        raise AuthenticationError("Credential verification is not configured")
    return settings.CREDENTIAL_SIGNING_SECRET.get_secret_value()


def issue_credential(
    settings: Settings,
    *,
    actor_id: UUID,
    tenant_id: UUID,
    roles: list[str] | set[str] | tuple[str, ...] = (),
    actor_type: ActorType = ActorType.HUMAN,
    ttl_seconds: int | None = None,
    now: datetime | None = None,
) -> str:
    """Mint a signed bearer credential.

    Args:
        settings: Settings providing secret, algorithm and issuer
        actor_id: The actor the credential identifies
        tenant_id: The tenant the actor acts within
        roles: Role names granted to the actor
        actor_type: HUMAN or SERVICE
        ttl_seconds: Lifetime (default: CREDENTIAL_TTL_SECONDS)
        now: Issue time (default: current time)

    Returns:
        Encoded credential string
    """
    issued_at = now or datetime.now(UTC)
    lifetime = ttl_seconds if ttl_seconds is not None else settings.CREDENTIAL_TTL_SECONDS
    payload = {
        "sub": str(actor_id),
        "tid": str(tenant_id),
        "roles": sorted(set(roles)),
        "typ": ActorType(actor_type).value,
        "iss": settings.CREDENTIAL_ISSUER,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=lifetime),
    }
    return jwt.encode(payload, _signing_secret(settings), algorithm=settings.CREDENTIAL_ALGORITHM)


def verify_credential(token: str, settings: Settings) -> VerifiedCredential:
    """Verify a bearer credential and extract the identity.

    Raises:
        AuthenticationError: If the credential is malformed, expired,
            badly signed, from another issuer or missing claims
    """
    try:
        data = jwt.decode(
            token,
            _signing_secret(settings),
            algorithms=[settings.CREDENTIAL_ALGORITHM],
            issuer=settings.CREDENTIAL_ISSUER,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Credential has expired") from e
    except jwt.PyJWTError as e:
        raise AuthenticationError("Invalid credential") from e

    try:
        actor_id = UUID(data["sub"])
        tenant_id = UUID(data["tid"])
        actor_type = ActorType(data.get("typ", ActorType.HUMAN.value))
    except (TypeError, ValueError) as e:
        raise AuthenticationError("Invalid credential claims") from e

    if actor_type not in ACCEPTED_ACTOR_TYPES:
        raise AuthenticationError("Invalid credential claims")

    roles = data.get("roles") or []
    if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
        raise AuthenticationError("Invalid credential claims")

    return VerifiedCredential(
        actor_id=actor_id,
        tenant_id=tenant_id,
        actor_type=actor_type,
        roles=frozenset(roles),
        expires_at=datetime.fromtimestamp(data["exp"], UTC),
    )
