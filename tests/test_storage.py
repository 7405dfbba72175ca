"""Tests for receipt image storage."""

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mykhata.storage import (
    GoogleDriveImageStore,
    ImageStore,
    StoredImage,
    store_receipt_image,
    to_data_uri,
)

PNG = b"\x89PNG\r\n\x1a\nrest-of-image"


def _mock_googleapiclient():
    """Context manager that mocks googleapiclient.http.MediaIoBaseUpload."""
    mock_http = MagicMock()
    mock_api = MagicMock()
    mock_api.http = mock_http
    return patch.dict("sys.modules", {
        "googleapiclient": mock_api,
        "googleapiclient.http": mock_http,
    })


def _mock_service(result):
    mock_service = MagicMock()
    mock_files = MagicMock()
    mock_create = MagicMock()
    mock_create.execute.return_value = result
    mock_files.create.return_value = mock_create
    mock_service.files.return_value = mock_files
    return mock_service, mock_files


class TestDataUri:
    def test_round_trips_bytes(self):
        uri = to_data_uri(PNG)
        prefix, encoded = uri.split(",", 1)
        assert prefix == "data:image/png;base64"
        assert base64.b64decode(encoded) == PNG

    def test_explicit_mime_type(self):
        assert to_data_uri(b"x", "image/gif").startswith("data:image/gif;base64,")


class TestStoreReceiptImage:
    @pytest.mark.asyncio
    async def test_no_store_inlines_image(self):
        ref = await store_receipt_image(None, PNG)
        assert ref.startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_uses_store_url(self):
        store = MagicMock(spec=ImageStore)
        store.upload = AsyncMock(return_value=StoredImage(url="https://cdn/r.png", id="r"))

        ref = await store_receipt_image(store, PNG)

        assert ref == "https://cdn/r.png"
        kwargs = store.upload.call_args.kwargs
        assert kwargs["mime_type"] == "image/png"
        assert kwargs["filename"].startswith("receipt_")
        assert kwargs["filename"].endswith(".png")

    @pytest.mark.asyncio
    async def test_upload_failure_falls_back(self, caplog):
        store = MagicMock(spec=ImageStore)
        store.upload = AsyncMock(side_effect=ConnectionError("offline"))

        ref = await store_receipt_image(store, b"\xff\xd8jpeg")

        assert ref.startswith("data:image/jpeg;base64,")
        assert "upload failed" in caplog.text


class TestGoogleDriveImageStore:
    def test_init_defaults(self):
        store = GoogleDriveImageStore()
        assert "gdrive_credentials.json" in str(store._credentials_path)
        assert "gdrive_token.json" in str(store._token_path)
        assert store._folder_id == ""

    @pytest.mark.asyncio
    async def test_upload(self):
        store = GoogleDriveImageStore(folder_id="folder123")
        mock_service, mock_files = _mock_service(
            {"id": "file_abc", "webViewLink": "https://drive.google.com/file/d/file_abc/view"}
        )
        store._service = mock_service

        with _mock_googleapiclient():
            stored = await store.upload(PNG, filename="r.png", mime_type="image/png")

        assert stored == StoredImage(
            url="https://drive.google.com/file/d/file_abc/view", id="file_abc"
        )
        body = mock_files.create.call_args.kwargs["body"]
        assert body["name"] == "r.png"
        assert body["parents"] == ["folder123"]

    @pytest.mark.asyncio
    async def test_upload_without_folder_or_link(self):
        store = GoogleDriveImageStore()
        mock_service, mock_files = _mock_service({"id": "file_xyz"})
        store._service = mock_service

        with _mock_googleapiclient():
            stored = await store.upload(PNG, filename="r.png", mime_type="image/png")

        assert stored.url == "https://drive.google.com/file/d/file_xyz/view"
        assert "parents" not in mock_files.create.call_args.kwargs["body"]

    @pytest.mark.asyncio
    async def test_delete(self):
        store = GoogleDriveImageStore()
        mock_service = MagicMock()
        store._service = mock_service

        await store.delete("file_abc")

        mock_service.files.return_value.delete.assert_called_once_with(fileId="file_abc")

    def test_get_service_no_credentials_file(self, tmp_path):
        store = GoogleDriveImageStore(
            credentials_path=tmp_path / "missing.json",
            token_path=tmp_path / "token.json",
        )
        modules = {
            name: MagicMock()
            for name in (
                "google",
                "google.auth",
                "google.auth.transport",
                "google.auth.transport.requests",
                "google.oauth2",
                "google.oauth2.credentials",
                "google_auth_oauthlib",
                "google_auth_oauthlib.flow",
                "googleapiclient",
                "googleapiclient.discovery",
            )
        }
        with patch.dict("sys.modules", modules):
            with pytest.raises(FileNotFoundError, match="OAuth credentials file not found"):
                store._get_service()
