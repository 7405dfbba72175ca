"""Receipt image storage: Google Drive upload with an inline fallback."""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from .ocr import guess_media_type

logger = logging.getLogger(__name__)


@dataclass
class StoredImage:
    url: str
    id: str


class ImageStore(ABC):
    """Abstract base class for receipt image storage backends."""

    @abstractmethod
    async def upload(
        self, data: bytes, *, filename: str, mime_type: str
    ) -> StoredImage:
        """Store image bytes and return where they can be fetched."""

    @abstractmethod
    async def delete(self, image_id: str) -> None:
        """Remove a stored image."""


class GoogleDriveImageStore(ImageStore):
    """Upload receipt images to Google Drive using OAuth 2.0.

    On first use, opens a browser for Google account authorization.
    The token is saved for subsequent use.
    """

    SCOPES = ["https://www.googleapis.com/auth/drive.file"]

    def __init__(
        self,
        credentials_path: str | Path = "~/.config/mykhata/gdrive_credentials.json",
        token_path: str | Path = "~/.config/mykhata/gdrive_token.json",
        folder_id: str = "",
    ) -> None:
        self._credentials_path = Path(credentials_path).expanduser()
        self._token_path = Path(token_path).expanduser()
        self._folder_id = folder_id
        self._service = None

    def _get_service(self):
        """Build and return the Drive API service, authenticating if needed."""
        if self._service is not None:
            return self._service

        try:
            from google.auth.transport.requests import Request
            from google.oauth2.credentials import Credentials
            from google_auth_oauthlib.flow import InstalledAppFlow
            from googleapiclient.discovery import build
        except ImportError:
            raise ImportError(
                "Google Drive storage requires extra packages:\n"
                "  pip install 'mykhata[gdrive]'"
            )

        creds = None

        if self._token_path.exists():
            creds = Credentials.from_authorized_user_file(
                str(self._token_path), self.SCOPES
            )

        if creds is None or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                if not self._credentials_path.exists():
                    raise FileNotFoundError(
                        f"OAuth credentials file not found: "
                        f"{self._credentials_path}\n"
                        f"Download it from the Google Cloud Console."
                    )
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(self._credentials_path), self.SCOPES
                )
                creds = flow.run_local_server(port=0)

            self._token_path.parent.mkdir(parents=True, exist_ok=True)
            self._token_path.write_text(creds.to_json())

        self._service = build("drive", "v3", credentials=creds)
        return self._service

    async def upload(
        self, data: bytes, *, filename: str, mime_type: str
    ) -> StoredImage:
        return await asyncio.to_thread(self._upload_sync, data, filename, mime_type)

    async def delete(self, image_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, image_id)

    def _upload_sync(self, data: bytes, filename: str, mime_type: str) -> StoredImage:
        from googleapiclient.http import MediaIoBaseUpload

        service = self._get_service()

        file_metadata: dict = {"name": filename}
        if self._folder_id:
            file_metadata["parents"] = [self._folder_id]

        media = MediaIoBaseUpload(
            io.BytesIO(data), mimetype=mime_type, resumable=True
        )
        result = (
            service.files()
            .create(
                body=file_metadata,
                media_body=media,
                fields="id, webViewLink",
            )
            .execute()
        )
        file_id = result["id"]
        url = result.get("webViewLink") or (
            f"https://drive.google.com/file/d/{file_id}/view"
        )
        logger.info("Uploaded receipt image to Google Drive: %s", file_id)
        return StoredImage(url=url, id=file_id)

    def _delete_sync(self, image_id: str) -> None:
        service = self._get_service()
        service.files().delete(fileId=image_id).execute()


def to_data_uri(data: bytes, mime_type: str | None = None) -> str:
    mime_type = mime_type or guess_media_type(data)
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


async def store_receipt_image(store: ImageStore | None, data: bytes) -> str:
    """Store a receipt image and return a reference to it.

    Uses ``store`` when given; on any failure (or without a store) the image
    is inlined as a ``data:`` URI so the receipt can still be saved.
    """
    mime_type = guess_media_type(data)
    if store is not None:
        ext = mime_type.split("/")[-1].replace("jpeg", "jpg")
        filename = f"receipt_{uuid.uuid4().hex}.{ext}"
        try:
            stored = await store.upload(data, filename=filename, mime_type=mime_type)
            return stored.url
        except Exception:
            logger.warning(
                "Receipt image upload failed, storing inline", exc_info=True
            )
    return to_data_uri(data, mime_type)
