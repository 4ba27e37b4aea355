"""Tests for the folder cache."""
import asyncio

import pytest
from helpers import FakeFolder, FakeStore, network_error

from megadrop.errors import RemoteErrorKind, RemoteStructuralError
from megadrop.models import SourceLocation
from megadrop.services.folders import FolderCache, FolderSet, find_or_create_folder
from megadrop.services.session import Session


class TestFindOrCreateFolder:
    @pytest.mark.asyncio
    async def test_returns_existing_folder(self):
        store = FakeStore()
        existing = await store.root.mkdir("Uploads")
        store.calls.clear()

        folder = await find_or_create_folder(store.root, "Uploads")

        assert folder is existing
        assert store.calls["mkdir"] == 0

    @pytest.mark.asyncio
    async def test_file_with_same_name_does_not_match(self):
        store = FakeStore()
        store.root.add_file("DCIM_CAMERA")

        folder = await find_or_create_folder(store.root, "DCIM_CAMERA")

        assert folder.is_folder
        assert store.calls["mkdir"] == 1

    @pytest.mark.asyncio
    async def test_match_is_case_sensitive(self):
        store = FakeStore()
        other = await store.root.mkdir("dcim_camera")

        folder = await find_or_create_folder(store.root, "DCIM_CAMERA")

        assert folder is not other
        assert store.calls["mkdir"] == 2

    @pytest.mark.asyncio
    async def test_failure_is_structural_and_tagged(self):
        store = FakeStore()
        store.fail("children", network_error())

        with pytest.raises(RemoteStructuralError) as excinfo:
            await find_or_create_folder(store.root, "Uploads")

        assert excinfo.value.kind is RemoteErrorKind.NETWORK
        assert "Uploads" in str(excinfo.value)


class TestFolderCache:
    @pytest.mark.asyncio
    async def test_cold_lookup_builds_device_structure(self, context, store):
        await context.start()
        store.calls.clear()

        folder_set = await context.folders.get_device_folder("DEV1")

        assert store.calls["mkdir"] == 4
        assert store.calls["children"] == 4
        device_root = store.root.folder("Uploads").folder("DEVICE_DEV1")
        assert folder_set.root is device_root
        assert [f.name for f in device_root.items] == ["DCIM_CAMERA", "DCIM_SNAPCHAT", "SNAPCHAT_ROOT"]
        assert folder_set.for_location(SourceLocation.SNAPCHAT_ROOT).name == "SNAPCHAT_ROOT"

    @pytest.mark.asyncio
    async def test_warm_lookup_makes_no_remote_calls(self, context, store):
        await context.start()
        first = await context.folders.get_device_folder("DEV1")
        store.calls.clear()

        second = await context.folders.get_device_folder("DEV1")

        assert second is first
        assert store.remote_calls() == 0

    @pytest.mark.asyncio
    async def test_existing_remote_folders_are_reused(self, context, store):
        await context.start()
        await context.folders.get_device_folder("DEV1")
        context.folders.clear()
        store.calls.clear()

        await context.folders.get_device_folder("DEV1")

        assert store.calls["mkdir"] == 0
        assert store.calls["children"] == 4

    @pytest.mark.asyncio
    async def test_concurrent_cold_lookups_build_once(self, context, store):
        await context.start()
        store.calls.clear()

        first, second = await asyncio.gather(
            context.folders.get_device_folder("DEV1"),
            context.folders.get_device_folder("DEV1"),
        )

        assert first is second
        assert store.calls["mkdir"] == 4

    @pytest.mark.asyncio
    async def test_lock_released_once_device_is_cached(self, context):
        await context.start()

        for device_id in ("DEV1", "DEV2", "DEV3"):
            await context.folders.get_device_folder(device_id)

        assert len(context.folders) == 3
        assert context.folders._locks == {}

    @pytest.mark.asyncio
    async def test_failure_leaves_nothing_cached(self, context, store):
        await context.start()
        store.fail("mkdir", network_error())

        with pytest.raises(RemoteStructuralError) as excinfo:
            await context.folders.get_device_folder("DEV1")

        assert excinfo.value.kind is RemoteErrorKind.NETWORK
        assert "DEV1" not in context.folders
        assert len(context.folders) == 0

    @pytest.mark.asyncio
    async def test_base_folder_required(self):
        cache = FolderCache(Session())

        with pytest.raises(RemoteStructuralError, match="Base folder not initialized"):
            await cache.get_device_folder("DEV1")

    @pytest.mark.asyncio
    async def test_build_in_flight_during_clear_is_discarded(self, context):
        await context.start()

        task = asyncio.ensure_future(context.folders.get_device_folder("DEV1"))
        await asyncio.sleep(0)
        context.folders.clear()

        with pytest.raises(RemoteStructuralError, match="reset during resolution"):
            await task
        assert "DEV1" not in context.folders

        folder_set = await context.folders.get_device_folder("DEV1")
        assert context.folders.peek("DEV1") is folder_set

    def test_clear_bumps_generation(self):
        cache = FolderCache(Session())
        before = cache.generation
        cache.clear()
        assert cache.generation == before + 1

    def test_peek_unknown_device(self):
        assert FolderCache(Session()).peek("DEV1") is None

    def test_folder_set_falls_back_to_camera(self):
        camera = FakeFolder(FakeStore(), "DCIM_CAMERA")
        folder_set = FolderSet("DEV1", root=None, folders={SourceLocation.CAMERA: camera})
        assert folder_set.for_location(SourceLocation.SNAPCHAT_MEDIA) is camera
