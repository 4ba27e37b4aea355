"""Tests for the upload orchestrator."""
import dataclasses
import re

import pytest
from helpers import auth_error, network_error

from megadrop.context import UploadContext
from megadrop.models import UploadOptions
from megadrop.orchestrator import generate_upload_id
from megadrop.orchestrator.core import MAX_ATTEMPTS


@pytest.fixture
def fixed_names(monkeypatch):
    """Freeze the naming clock so repeated uploads collide."""
    monkeypatch.setattr(
        "megadrop.orchestrator.core.generate_file_name",
        lambda device_id, name, location=None: f"{device_id}_20240101_000000_{name}",
    )


def _stored(store, device_id, folder_name):
    return store.root.folder("Uploads").folder(f"DEVICE_{device_id}").folder(folder_name).items


class TestUploadFile:
    @pytest.mark.asyncio
    async def test_upload_success(self, context, store):
        await context.start()

        result = await context.upload_file(b"jpeg-bytes", "photo.jpg", "DEV1", "SNAPCHAT_MEDIA")

        assert result.success is True
        assert result.skipped is False
        assert re.match(r"^DEV1_\d{8}_\d{6}_photo\.jpg$", result.file_name)
        assert result.original_name == "photo.jpg"
        assert result.source_location == "DCIM_SNAPCHAT"
        assert result.folder_path == "Uploads/DEVICE_DEV1/DCIM_SNAPCHAT"
        assert result.size == 10
        assert result.attempts == 1

        stored = _stored(store, "DEV1", "DCIM_SNAPCHAT")
        assert [f.name for f in stored] == [result.file_name]
        assert stored[0].node_id == result.file_id
        assert context.devices.get("DEV1").upload_count == 1

    @pytest.mark.asyncio
    async def test_unknown_source_location_uses_camera(self, context, store):
        await context.start()

        result = await context.upload_file(b"x", "a.png", "DEV1", "DOWNLOADS")

        assert result.success is True
        assert result.source_location == "DCIM_CAMERA"
        assert len(_stored(store, "DEV1", "DCIM_CAMERA")) == 1

    @pytest.mark.asyncio
    async def test_duplicate_is_skipped(self, context, store, fixed_names):
        await context.start()
        first = await context.upload_file(b"abc", "photo.jpg", "DEV1")
        store.calls.clear()

        second = await context.upload_file(b"abc", "photo.jpg", "DEV1")

        assert second.success is True
        assert second.skipped is True
        assert second.skip_reason == "File already exists"
        assert second.file_id == first.file_id
        assert store.calls["upload"] == 0
        assert context.devices.get("DEV1").upload_count == 1

    @pytest.mark.asyncio
    async def test_overwrite_uploads_again(self, context, store, fixed_names):
        await context.start()
        await context.upload_file(b"abc", "photo.jpg", "DEV1")

        result = await context.upload_file(b"abcd", "photo.jpg", "DEV1", options=UploadOptions(overwrite=True))

        assert result.success is True
        assert result.skipped is False
        assert store.calls["upload"] == 2
        assert len(_stored(store, "DEV1", "DCIM_CAMERA")) == 2

    @pytest.mark.asyncio
    async def test_same_name_in_other_location_is_not_duplicate(self, context, store, fixed_names):
        await context.start()
        await context.upload_file(b"abc", "photo.jpg", "DEV1", "CAMERA")

        result = await context.upload_file(b"abc", "photo.jpg", "DEV1", "SNAPCHAT_ROOT")

        assert result.skipped is False
        assert store.calls["upload"] == 2


class TestValidation:
    @pytest.mark.asyncio
    async def test_empty_file_is_rejected_before_remote_calls(self, context, store):
        result = await context.upload_file(b"", "a.jpg", "DEV1")

        assert result.success is False
        assert result.error == "File is empty"
        assert result.error_kind == "validation"
        assert result.retryable is False
        assert store.calls["authenticate"] == 0
        assert store.remote_calls() == 0

    @pytest.mark.asyncio
    async def test_oversize_file_is_rejected(self, store, config):
        ctx = UploadContext(store, dataclasses.replace(config, max_file_size=4))

        result = await ctx.upload_file(b"12345", "a.jpg", "DEV1")

        assert result.success is False
        assert result.error_kind == "validation"
        assert "too large" in result.error
        assert store.remote_calls() == 0

    @pytest.mark.asyncio
    async def test_invalid_device_id_is_rejected(self, context, store):
        result = await context.upload_file(b"x", "a.jpg", "no spaces allowed")

        assert result.success is False
        assert result.error_kind == "validation"
        assert store.remote_calls() == 0


class TestRetry:
    @pytest.mark.asyncio
    async def test_auth_failure_reauthenticates_and_retries_once(self, context, store):
        await context.start()
        store.fail("upload", auth_error())

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is True
        assert result.attempts == 2
        assert store.calls["authenticate"] == 2
        assert store.calls["upload"] == 2

    @pytest.mark.asyncio
    async def test_reauthentication_restores_missing_base_folder(self, context, store):
        await context.start()
        context.session.base_folder = None

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is True
        assert result.attempts == 2
        assert context.session.base_folder is store.root.folder("Uploads")
        assert store.calls["authenticate"] == 2

    @pytest.mark.asyncio
    async def test_base_folder_setup_failure_after_reauth(self, context, store):
        await context.start()
        context.session.base_folder = None
        store.fail("get_root", network_error())

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is False
        assert result.error == "Base folder not initialized"
        assert result.attempts == 1
        assert context.session.connected is False

    @pytest.mark.asyncio
    async def test_untagged_login_message_counts_as_auth(self, context, store):
        await context.start()
        store.fail("upload", RuntimeError("Login session invalid"))

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is True
        assert store.calls["authenticate"] == 2

    @pytest.mark.asyncio
    async def test_second_auth_failure_is_final(self, context, store):
        await context.start()
        store.fail("upload", auth_error(), auth_error())

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is False
        assert result.error_kind == "auth"
        assert result.retryable is False
        assert result.attempts == MAX_ATTEMPTS
        assert store.calls["authenticate"] == 2
        assert store.calls["upload"] == 2

    @pytest.mark.asyncio
    async def test_failed_reauthentication_returns_original_error(self, context, store):
        await context.start()
        store.fail("upload", auth_error("Unauthorized: token revoked"))
        store.fail("authenticate", *[RuntimeError("EBLOCKED") for _ in range(3)])

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is False
        assert result.error == "Unauthorized: token revoked"
        assert result.attempts == 1
        assert store.calls["authenticate"] == 4
        assert store.calls["upload"] == 1

    @pytest.mark.asyncio
    async def test_network_error_is_retryable_and_not_retried(self, context, store):
        await context.start()
        store.fail("upload", network_error())

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is False
        assert result.error_kind == "network"
        assert result.retryable is True
        assert result.attempts == 1
        assert store.calls["authenticate"] == 1

    @pytest.mark.asyncio
    async def test_unknown_error_is_not_retryable(self, context, store):
        await context.start()
        store.fail("upload", RuntimeError("Disk exploded"))

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.error_kind == "unknown"
        assert result.retryable is False

    @pytest.mark.asyncio
    async def test_folder_failure_fails_upload(self, context, store):
        await context.start()
        store.fail("mkdir", network_error())

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is False
        assert result.error_kind == "network"
        assert store.calls["upload"] == 0
        assert "DEV1" not in context.folders
        assert context.devices.get("DEV1") is None


class TestConnectionHandling:
    @pytest.mark.asyncio
    async def test_disconnected_session_reconnects_first(self, context, store):
        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is True
        assert store.calls["authenticate"] == 1
        assert context.session.connected is True

    @pytest.mark.asyncio
    async def test_unavailable_service(self, context, store):
        store.fail("authenticate", *[RuntimeError("EBLOCKED") for _ in range(3)])

        result = await context.upload_file(b"abc", "a.jpg", "DEV1")

        assert result.success is False
        assert result.error == "MEGA service unavailable"
        assert result.retryable is True
        assert store.calls["upload"] == 0


def test_upload_id_format():
    upload_id = generate_upload_id("DEV1")
    assert re.match(r"^DEV1_\d+_[0-9a-f]{8}$", upload_id)
    assert generate_upload_id("DEV1") != upload_id
