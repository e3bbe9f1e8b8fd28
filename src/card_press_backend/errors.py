"""
Exceptions raised while generating a document.

Every failure that aborts a ``/generate-pdf`` request derives from
``CardPressError``. The ``details`` mapping carries vendor payloads and other
diagnostics; it is logged, never sent back to the browser.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CardPressError(Exception):
    """Base exception for all document generation failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class AuthError(CardPressError):
    """The token endpoint rejected the client credentials or was unreachable."""


class SubmissionError(CardPressError):
    """The editing service refused the edit job."""


class ProcessingError(CardPressError):
    """The edit job reached the ``failed`` terminal state."""


class PollingError(CardPressError):
    """Transport failure while querying a job's status URL."""


class JobTimeoutError(CardPressError):
    """The edit job did not reach a terminal state within the poll bound."""

    def __init__(self, status_url: str, waited_seconds: float) -> None:
        message = f"Edit job did not finish within {waited_seconds:g}s"
        super().__init__(message, {"status_url": status_url, "waited_seconds": waited_seconds})


class ExportError(CardPressError):
    """Converting the edited document to its download format failed."""


class AssetStoreError(CardPressError):
    """Uploading to, or linking from, the asset store failed."""


class StockAssetError(CardPressError):
    """No stock photo could be picked."""


class FormError(CardPressError):
    """The submitted form lacks a name or the signature image."""
