"""HTTP client for the external report generation function."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import httpx

from core.inspections.models import InspectionRecord
from core.utils.errors import GenerationError

logger = logging.getLogger("inspecta.generation")

NO_CONTENT_MESSAGE = "Report generation succeeded but no report content was returned."


class ReportGenerator(Protocol):
    """Protocol for services that turn an inspection record into report text."""

    async def generate(self, record: InspectionRecord, *, token: str | None = None) -> str:
        """Return report text or raise ``GenerationError``.

        ``token`` is the caller's bearer credential for this one request.
        """


class HttpReportGenerator:
    """Calls the generate-report function with the full record as JSON body."""

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.token = token
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def generate(self, record: InspectionRecord, *, token: str | None = None) -> str:
        headers = {"Content-Type": "application/json"}
        credential = token or self.token
        if credential:
            headers["Authorization"] = f"Bearer {credential}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    self.url, json=record.model_dump(mode="json"), headers=headers
                )
        except httpx.TimeoutException as exc:
            logger.warning("generator request timed out: url=%s", self.url)
            raise GenerationError(
                f"Report generation timed out after {self.timeout_seconds:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("generator request failed: url=%s error=%s", self.url, exc)
            raise GenerationError(f"Report generation request failed: {exc}") from exc

        return interpret_generator_response(response.status_code, _json_body(response))


def interpret_generator_response(status_code: int, body: dict[str, Any] | None) -> str:
    """Map a generator response to report text or a ``GenerationError``.

    Three outcomes are distinguished: a non-2xx status, a 2xx body carrying an
    ``error`` field, and a 2xx body without report content.
    """

    embedded_error = _string_field(body, "error")

    if not 200 <= status_code < 300:
        logger.warning("generator returned status %s: %s", status_code, embedded_error)
        message = embedded_error or f"Report generation failed with status: {status_code}"
        raise GenerationError(
            message, status_code=status_code, upstream_message=embedded_error
        )

    if embedded_error:
        logger.warning("generator reported error with status %s: %s", status_code, embedded_error)
        raise GenerationError(
            embedded_error,
            status_code=status_code,
            upstream_message=embedded_error,
        )

    report = _string_field(body, "report")
    if not report:
        raise GenerationError(NO_CONTENT_MESSAGE, status_code=status_code)
    return report


def _json_body(response: httpx.Response) -> dict[str, Any] | None:
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        if 200 <= response.status_code < 300:
            raise GenerationError(
                "Report generation returned a non-JSON response",
                status_code=response.status_code,
            ) from None
        return None
    return payload if isinstance(payload, dict) else None


def _string_field(body: dict[str, Any] | None, key: str) -> str | None:
    if body is None:
        return None
    value = body.get(key)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
