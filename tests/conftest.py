"""Pytest fixtures for megadrop tests."""
import pytest
from helpers import FakeStore

from megadrop.context import UploadContext
from megadrop.models import UploadConfig


@pytest.fixture
def config():
    return UploadConfig(
        email="device-uploads@example.com",
        password="secret",
        base_folder_name="Uploads",
        auth_retry_delay=0,
        batch_delay=0,
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def context(store, config):
    return UploadContext(store, config)
