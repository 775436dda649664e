"""Upload target protocols and shared types."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from chatexport.core.models import ExportOptions
from chatexport.render.base import Document, RenderedBlob

log = logging.getLogger(__name__)

KEYRING_SERVICE = "chatexport"


@dataclass
class TargetInfo:
    """Metadata about an upload target."""

    display_name: str
    version: str
    accepts_blobs: bool
    requires_auth: bool = True


@dataclass
class UploadResult:
    """Where an export ended up."""

    provider: str
    url: str = ""


@runtime_checkable
class UploadTarget(Protocol):
    """Contract for object-store style targets that take a rendered file."""

    @property
    def name(self) -> str:
        """Target ID: 'gdrive', 'onedrive'."""
        ...

    @property
    def info(self) -> TargetInfo:
        ...

    def upload(self, blob: RenderedBlob, filename: str) -> UploadResult:
        """Upload one rendered export.

        Raises:
            RemoteTargetFailure: the provider rejected the request.
        """
        ...


@runtime_checkable
class PageTarget(Protocol):
    """Contract for targets that build a structured page from the document itself."""

    @property
    def name(self) -> str:
        ...

    @property
    def info(self) -> TargetInfo:
        ...

    def create_page(self, title: str, document: Document, options: ExportOptions) -> UploadResult:
        ...


def get_token(account: str, configured: str | None = None) -> str | None:
    """Token from config, or from the system keyring when config says 'keyring'."""
    if configured and configured != "keyring":
        return configured
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, account)
    except Exception:
        log.debug("Keyring lookup failed for %s", account, exc_info=True)
        return None


def error_message(resp, fallback: str) -> str:
    """Provider error text from a JSON error body, else the fallback."""
    try:
        body = resp.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return str(body.get("message") or fallback)
