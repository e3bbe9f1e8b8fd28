"""
HTTP client for the image editing service.

Three calls are wrapped here: submitting an edit job, reading a job's
status URL, and exporting an edited document to another format. Each call
translates transport and HTTP failures into the matching domain error so
the orchestrator only has to deal with ``CardPressError`` subclasses.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from omegaconf import DictConfig

from .errors import ExportError, PollingError, SubmissionError
from .models import StatusReport, Submission

logger = logging.getLogger(__name__)


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


def parse_status(data: Dict[str, Any]) -> StatusReport:
    """
    Read a status document.

    Job status documents list one entry per output; the first output
    carries the state, any errors, and the rendition links. Some endpoints
    answer with a flat document instead, which is read the same way.
    """
    outputs = data.get("outputs") or [data]
    first = outputs[0]
    state = str(first.get("status") or data.get("status") or "pending").lower()

    renditions = (first.get("_links") or {}).get("renditions") or []
    output_ref = renditions[0].get("href") if renditions else None

    errors = first.get("errors") or data.get("errors")
    if errors is not None and not isinstance(errors, dict):
        errors = {"errors": errors}
    return StatusReport(state=state, output_ref=output_ref, error_detail=errors)


class EditingServiceClient:
    """
    Attributes:
        api_base: Base URL of the editing endpoints
        api_key: Client id sent as ``x-api-key``
        export_url: Endpoint converting a document to a download format
    """

    def __init__(
        self,
        api_base: str,
        api_key: str,
        export_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.export_url = export_url
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: DictConfig, **kwargs) -> "EditingServiceClient":
        return cls(
            api_base=config.editing.api_base,
            api_key=config.auth.client_id,
            export_url=config.editing.export_url,
            timeout=config.editing.request_timeout_seconds,
            **kwargs,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _headers(self, token: str) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def submit_edit(self, endpoint: str, payload: Dict[str, Any], token: str) -> Submission:
        """
        Submit an edit job.

        Returns:
            The job's status URL, plus the result itself when the service
            answered with it directly

        Raises:
            SubmissionError: If the service rejects the job or cannot be reached
        """
        url = f"{self.api_base}/{endpoint}"
        try:
            async with self._client() as client:
                resp = await client.post(url, json=payload, headers=self._headers(token))
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = _error_body(exc.response)
            logger.error(f"Edit submission rejected ({exc.response.status_code}): {body}")
            raise SubmissionError(
                "Editing service rejected the job",
                {"status": exc.response.status_code, "body": body},
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(f"Edit submission failed: {exc}")
            raise SubmissionError("Editing service unreachable", {"error": str(exc)}) from exc

        body = _error_body(resp)
        if not isinstance(body, dict):
            raise SubmissionError("Submission response was not a JSON object", {"body": body})

        status_url = ((body.get("_links") or {}).get("self") or {}).get("href")
        output = body.get("output")
        if isinstance(output, str) and output:
            return Submission(status_url=status_url, report=StatusReport(state="succeeded", output_ref=output))
        if not status_url:
            raise SubmissionError("Submission response carried no status URL", {"body": body})
        return Submission(status_url=status_url)

    async def get_status(self, status_url: str, token: str) -> StatusReport:
        """
        Raises:
            PollingError: On any transport or HTTP failure; not retried
        """
        try:
            async with self._client() as client:
                resp = await client.get(status_url, headers=self._headers(token))
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = _error_body(exc.response)
            logger.error(f"Status poll failed ({exc.response.status_code}): {body}")
            raise PollingError(
                "Status poll failed",
                {"status_url": status_url, "status": exc.response.status_code, "body": body},
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(f"Status poll failed: {exc}")
            raise PollingError("Status poll failed", {"status_url": status_url, "error": str(exc)}) from exc

        body = _error_body(resp)
        if not isinstance(body, dict):
            raise PollingError("Status response was not a JSON object", {"status_url": status_url, "body": body})
        return parse_status(body)

    async def export_format(self, asset_ref: str, target_format: str, token: str) -> bytes:
        """
        Convert an edited document and return the converted bytes.

        Raises:
            ExportError: On transport or HTTP failure, or an empty body
        """
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.export_url,
                    json={"format": target_format, "file": asset_ref},
                    headers=self._headers(token),
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = _error_body(exc.response)
            logger.error(f"Export to {target_format} rejected ({exc.response.status_code}): {body}")
            raise ExportError(
                f"Export to {target_format} failed",
                {"status": exc.response.status_code, "body": body},
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(f"Export to {target_format} failed: {exc}")
            raise ExportError(f"Export to {target_format} failed", {"error": str(exc)}) from exc

        if not resp.content:
            raise ExportError(f"Export to {target_format} returned an empty document")
        return resp.content
