"""Tests for error classification."""
import asyncio

import pytest

from megadrop.errors import (
    AuthenticationExhausted,
    FileTooLargeError,
    NotConnectedError,
    RemoteError,
    RemoteErrorKind,
    RemoteStructuralError,
    classify_error,
    classify_message,
)


def test_only_network_errors_are_retryable():
    assert RemoteErrorKind.NETWORK.retryable
    for kind in (RemoteErrorKind.AUTH, RemoteErrorKind.NOT_FOUND, RemoteErrorKind.QUOTA, RemoteErrorKind.UNKNOWN):
        assert not kind.retryable


def test_tag_wins_over_message():
    exc = RemoteError("network hiccup while logging in", RemoteErrorKind.QUOTA)
    assert classify_error(exc) is RemoteErrorKind.QUOTA
    assert not exc.retryable


def test_structural_error_keeps_kind():
    exc = RemoteStructuralError("listing failed", RemoteErrorKind.NETWORK)
    assert classify_error(exc) is RemoteErrorKind.NETWORK
    assert exc.retryable


def test_not_connected_is_auth():
    assert classify_error(NotConnectedError()) is RemoteErrorKind.AUTH


def test_exhausted_authentication_is_auth():
    exc = AuthenticationExhausted(3, RuntimeError("bad password"))
    assert classify_error(exc) is RemoteErrorKind.AUTH
    assert str(exc) == "MEGA authentication failed after 3 attempts: bad password"


@pytest.mark.parametrize("exc", [asyncio.TimeoutError(), TimeoutError(), ConnectionResetError()])
def test_transport_errors_are_network(exc):
    assert classify_error(exc) is RemoteErrorKind.NETWORK


@pytest.mark.parametrize(
    "message,kind",
    [
        ("Login required", RemoteErrorKind.AUTH),
        ("Invalid credentials supplied", RemoteErrorKind.AUTH),
        ("403 Access Denied", RemoteErrorKind.AUTH),
        ("Request timeout", RemoteErrorKind.NETWORK),
        ("Rate limit exceeded", RemoteErrorKind.NETWORK),
        ("Temporary failure in name resolution", RemoteErrorKind.NETWORK),
        ("Disk exploded", RemoteErrorKind.UNKNOWN),
    ],
)
def test_keyword_fallback(message, kind):
    assert classify_message(message) is kind
    assert classify_error(RuntimeError(message)) is kind


def test_file_too_large_message():
    exc = FileTooLargeError(200 * 1024 * 1024, 100 * 1024 * 1024)
    assert str(exc) == "File too large (max 100MB)"
    assert exc.size == 200 * 1024 * 1024
