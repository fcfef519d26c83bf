"""Optional suggestion collaborator.

Resource services may ask an external service for a recommendation about
a record (for example a care-plan hint for a resident). The collaborator
is strictly optional: every failure mode yields ``None`` and core
operations never depend on it.
"""

import asyncio
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

import httpx
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from carenotes.config.settings import Settings
from carenotes.core.logging import get_logger
from carenotes.observability.metrics import record_suggestion_call

logger = get_logger(__name__)


class SuggestionContext(BaseModel):
    """What the collaborator is told about a record.

    Only non-sensitive fields are ever placed in ``attributes``.
    """

    tenant_id: UUID
    resource_type: str
    resource_id: UUID
    status: str
    attributes: dict[str, Any] = Field(default_factory=dict)


class Suggestion(BaseModel):
    """A recommendation returned by the collaborator."""

    summary: str = Field(..., min_length=1)
    detail: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    source: str = "external"


@runtime_checkable
class SuggestionProvider(Protocol):
    """Narrow interface to a recommendation service."""

    async def suggest(self, context: SuggestionContext) -> Suggestion | None: ...


class NullSuggestionProvider:
    """Provider used when no collaborator is configured."""

    async def suggest(self, context: SuggestionContext) -> Suggestion | None:
        record_suggestion_call(context.resource_type, "disabled")
        return None


class HttpSuggestionProvider:
    """Calls a JSON-over-HTTP suggestion service.

    The whole call, retries included, is bounded by
    ``SUGGESTIONS_TIMEOUT_SECONDS``. Transport errors are retried up to
    ``SUGGESTIONS_MAX_ATTEMPTS``; HTTP error statuses are not.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 2.0,
        max_attempts: int = 2,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self._headers = {"Accept": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "HttpSuggestionProvider":
        api_key = settings.SUGGESTIONS_API_KEY
        return cls(
            url=settings.SUGGESTIONS_URL or "",
            timeout_seconds=settings.SUGGESTIONS_TIMEOUT_SECONDS,
            max_attempts=settings.SUGGESTIONS_MAX_ATTEMPTS,
            api_key=api_key.get_secret_value() if api_key else None,
            transport=transport,
        )

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.05, max=0.5),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                response = await client.post(self.url, json=payload)
        return response

    async def suggest(self, context: SuggestionContext) -> Suggestion | None:
        payload = context.model_dump(mode="json")
        log = logger.bind(
            resource_type=context.resource_type, resource_id=str(context.resource_id)
        )

        try:
            async with asyncio.timeout(self.timeout_seconds):
                async with httpx.AsyncClient(
                    timeout=self.timeout_seconds,
                    headers=self._headers,
                    transport=self._transport,
                ) as client:
                    response = await self._post(client, payload)
        except (TimeoutError, httpx.TimeoutException):
            log.warning("suggestion_timeout", timeout_seconds=self.timeout_seconds)
            record_suggestion_call(context.resource_type, "timeout")
            return None
        except httpx.HTTPError as e:
            log.warning("suggestion_transport_error", error=str(e))
            record_suggestion_call(context.resource_type, "error")
            return None

        if not response.is_success:
            log.warning("suggestion_bad_status", status_code=response.status_code)
            record_suggestion_call(context.resource_type, "error")
            return None

        try:
            body = response.json()
        except ValueError:
            log.warning("suggestion_invalid_json")
            record_suggestion_call(context.resource_type, "error")
            return None

        if not body:
            record_suggestion_call(context.resource_type, "empty")
            return None

        try:
            suggestion = Suggestion.model_validate(body)
        except ValueError as e:
            log.warning("suggestion_invalid_payload", error=str(e))
            record_suggestion_call(context.resource_type, "error")
            return None

        record_suggestion_call(context.resource_type, "ok")
        return suggestion


def build_suggestion_provider(settings: Settings) -> SuggestionProvider:
    """Choose the provider for the configured settings."""
    if settings.suggestions_enabled:
        return HttpSuggestionProvider.from_settings(settings)
    return NullSuggestionProvider()
