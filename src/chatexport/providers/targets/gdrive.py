"""Google Drive target: single multipart upload."""

from __future__ import annotations

import json
import logging

from chatexport.core.errors import RemoteTargetFailure
from chatexport.providers.targets.base import TargetInfo, UploadResult, error_message, get_token
from chatexport.render.base import RenderedBlob

log = logging.getLogger(__name__)

UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files?uploadType=multipart"
VIEW_URL = "https://drive.google.com/file/d/{id}/view"


class GDriveTarget:
    """Upload an export into the root (or a configured folder) of My Drive."""

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self._token = get_token("gdrive_token", config.get("token"))
        self._folder_id = config.get("folder_id", "")
        self._timeout = float(config.get("timeout", 120.0))

    @property
    def name(self) -> str:
        return "gdrive"

    @property
    def info(self) -> TargetInfo:
        return TargetInfo(display_name="Google Drive", version="1.0.0", accepts_blobs=True)

    def upload(self, blob: RenderedBlob, filename: str) -> UploadResult:
        if not self._token:
            raise RemoteTargetFailure(
                "gdrive",
                "no Google Drive token configured. Store an OAuth access token with: "
                "python -c \"import keyring; keyring.set_password('chatexport', 'gdrive_token', 'ya29...')\"",
            )

        import httpx

        mime_type = blob.mime_type.split(";")[0] or "application/octet-stream"
        metadata: dict = {"name": filename, "mimeType": mime_type}
        if self._folder_id:
            metadata["parents"] = [self._folder_id]

        try:
            resp = httpx.post(
                UPLOAD_URL,
                headers={"Authorization": f"Bearer {self._token}"},
                files={
                    "metadata": ("metadata", json.dumps(metadata), "application/json"),
                    "file": (filename, blob.data, mime_type),
                },
                timeout=self._timeout,
            )
        except (httpx.ConnectError, httpx.TimeoutException, OSError) as e:
            raise RemoteTargetFailure("gdrive", f"API unreachable: {e}") from e

        if resp.status_code >= 400:
            raise RemoteTargetFailure(
                "gdrive",
                error_message(resp, f"upload failed: {resp.status_code}"),
                status=resp.status_code,
            )
        file_id = resp.json().get("id", "")
        log.info("Uploaded %s to Google Drive (%d bytes)", filename, blob.size)
        return UploadResult(provider="Google Drive", url=VIEW_URL.format(id=file_id) if file_id else "")
