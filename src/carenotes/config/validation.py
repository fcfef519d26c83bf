"""Startup checks on Settings.

Each check yields ValidationResults; errors stop ``create_app`` and
warnings are logged. The readiness probe runs the same checks.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from carenotes.config.settings import Settings, get_settings
from carenotes.core.logging import get_logger
from carenotes.utils.exceptions import ConfigurationError

logger = get_logger("carenotes.config")

MIN_SECRET_LENGTH = 32
SUPPORTED_DIALECTS = ("postgresql", "sqlite")


class ValidationSeverity(str, Enum):
    ERROR = "error"  # refuses to start
    WARNING = "warning"


@dataclass
class ValidationResult:
    field: str
    severity: ValidationSeverity
    message: str
    suggestion: str | None = None

    def __str__(self) -> str:
        text = f"[{self.severity.value.upper()}] {self.field}: {self.message}"
        return f"{text}\n  Suggestion: {self.suggestion}" if self.suggestion else text


def _error(field: str, message: str, suggestion: str | None = None) -> ValidationResult:
    return ValidationResult(field, ValidationSeverity.ERROR, message, suggestion)


def _warning(field: str, message: str, suggestion: str | None = None) -> ValidationResult:
    return ValidationResult(field, ValidationSeverity.WARNING, message, suggestion)


def _error_in_production(settings: Settings):
    return _error if settings.is_production else _warning


def _check_database(settings: Settings) -> Iterator[ValidationResult]:
    url = settings.DATABASE_URL
    if not url:
        yield _error("DATABASE_URL", "Database URL is not configured", "Set DATABASE_URL")
    elif not url.startswith(SUPPORTED_DIALECTS):
        yield _error(
            "DATABASE_URL",
            f"Unsupported database type in URL: {url.split(':', 1)[0]}",
            "Use postgresql+asyncpg:// or sqlite+aiosqlite://",
        )
    elif url.startswith("sqlite") and settings.is_production:
        yield _warning("DATABASE_URL", "SQLite is not suitable for production workloads")

    if settings.DATABASE_TIMEOUT_SECONDS <= 0:
        yield _error(
            "DATABASE_TIMEOUT_SECONDS", "Persistence timeout must be a positive number of seconds"
        )


def _check_credentials(settings: Settings) -> Iterator[ValidationResult]:
    secret = settings.CREDENTIAL_SIGNING_SECRET
    if secret is None:
        if settings.ENVIRONMENT in ("staging", "production"):
            yield _error(
                "CREDENTIAL_SIGNING_SECRET",
                f"Credential signing secret is required in {settings.ENVIRONMENT}",
                "Generate with: python -c 'import secrets; print(secrets.token_urlsafe(48))'",
            )
        else:
            yield _warning(
                "CREDENTIAL_SIGNING_SECRET",
                "Credential signing secret not configured; every request will be rejected",
            )
    elif len(secret.get_secret_value()) < MIN_SECRET_LENGTH:
        yield _error_in_production(settings)(
            "CREDENTIAL_SIGNING_SECRET",
            f"Signing secret is shorter than {MIN_SECRET_LENGTH} characters",
        )

    if settings.CREDENTIAL_TTL_SECONDS <= 0:
        yield _error("CREDENTIAL_TTL_SECONDS", "Credential lifetime must be positive")


def _check_tenancy(settings: Settings) -> Iterator[ValidationResult]:
    if not settings.TENANT_ISOLATION_ENFORCED:
        yield _error_in_production(settings)(
            "TENANT_ISOLATION_ENFORCED",
            "Tenant registry checks are disabled",
            "Only disable for local development",
        )


def _check_pagination(settings: Settings) -> Iterator[ValidationResult]:
    if settings.MAX_PAGE_SIZE < 1:
        yield _error("MAX_PAGE_SIZE", "Maximum page size must be at least 1")
    if settings.DEFAULT_PAGE_SIZE > settings.MAX_PAGE_SIZE:
        yield _error(
            "DEFAULT_PAGE_SIZE",
            f"Default page size {settings.DEFAULT_PAGE_SIZE} exceeds "
            f"maximum {settings.MAX_PAGE_SIZE}",
        )


def _check_suggestions(settings: Settings) -> Iterator[ValidationResult]:
    if not settings.suggestions_enabled:
        return
    if not (settings.SUGGESTIONS_URL or "").startswith(("http://", "https://")):
        yield _error("SUGGESTIONS_URL", "Suggestion service URL must be http(s)")
    if settings.SUGGESTIONS_TIMEOUT_SECONDS <= 0:
        yield _error("SUGGESTIONS_TIMEOUT_SECONDS", "Suggestion timeout must be positive")
    if settings.SUGGESTIONS_MAX_ATTEMPTS < 1:
        yield _error("SUGGESTIONS_MAX_ATTEMPTS", "At least one suggestion attempt is required")


CHECKS = (
    _check_database,
    _check_credentials,
    _check_tenancy,
    _check_pagination,
    _check_suggestions,
)


def validate_configuration(settings: Settings | None = None) -> list[ValidationResult]:
    """Run every check; an empty list means the configuration is sound."""
    settings = settings or get_settings()
    return [result for check in CHECKS for result in check(settings)]


def validate_or_raise(settings: Settings | None = None) -> None:
    """Raise ConfigurationError listing every error; log each warning.

    Raises:
        ConfigurationError: If any check reports an error
    """
    results = validate_configuration(settings)
    errors = [r for r in results if r.severity is ValidationSeverity.ERROR]
    if errors:
        listing = "\n".join(str(e) for e in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{listing}")

    for warning in results:
        logger.warning(
            "configuration_warning", field=warning.field, message=warning.message
        )
