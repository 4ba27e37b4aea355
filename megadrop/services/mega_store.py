"""
MEGA store adapter - implements the remote store protocols over megapy.

This is the only module that talks to megapy. Every megapy or transport
exception is translated here into a RemoteError tagged with its
RemoteErrorKind, so the engine never inspects error text from MEGA.
"""
import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any, List

import aiohttp
from megapy import MegaClient
from megapy.core.api.errors.api_errors import MegaAPIError
from megapy.core.exceptions import MegaAuthError

from ..errors import RemoteError, RemoteErrorKind, classify_error
from ..models import UploadConfig

logger = logging.getLogger(__name__)

# MEGA API error codes (negative on the wire) grouped by failure class.
AUTH_CODES = {-9, -11, -15, -16, -26}
NETWORK_CODES = {-3, -4, -6, -18, -19}
QUOTA_CODES = {-17, -24}
NOT_FOUND_CODES = {-9}


def translate_error(exc: BaseException, during_login: bool = False) -> RemoteError:
    """Map a megapy/transport exception to a tagged RemoteError."""
    if isinstance(exc, RemoteError):
        return exc
    if isinstance(exc, MegaAuthError):
        return RemoteError(str(exc), RemoteErrorKind.AUTH)
    if isinstance(exc, MegaAPIError):
        code = -abs(exc.code)
        if code in NOT_FOUND_CODES and not during_login:
            kind = RemoteErrorKind.NOT_FOUND
        elif code in AUTH_CODES:
            kind = RemoteErrorKind.AUTH
        elif code in NETWORK_CODES:
            kind = RemoteErrorKind.NETWORK
        elif code in QUOTA_CODES:
            kind = RemoteErrorKind.QUOTA
        else:
            kind = RemoteErrorKind.UNKNOWN
        return RemoteError(exc.message, kind)
    if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError)):
        return RemoteError(f"Network error: {exc}", RemoteErrorKind.NETWORK)
    if isinstance(exc, FileNotFoundError):
        return RemoteError(str(exc), RemoteErrorKind.NOT_FOUND)
    if isinstance(exc, RuntimeError) and "not logged in" in str(exc).lower():
        return RemoteError(str(exc), RemoteErrorKind.AUTH)
    return RemoteError(str(exc), classify_error(exc))


def _write_temp_file(name: str, data: bytes) -> Path:
    """megapy uploads from a path; spill the bytes to a temp file."""
    fd, tmp_name = tempfile.mkstemp(prefix="megadrop_", suffix=Path(name).suffix)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
    return tmp_path


@dataclass
class MegaFile:
    """IRemoteFile view of a megapy node."""
    node_id: str
    name: str
    size: int = 0
    is_folder: bool = False

    @classmethod
    def from_node(cls, node) -> "MegaFile":
        return cls(node_id=node.handle, name=node.name, size=node.size or 0, is_folder=node.is_folder)


class MegaFolder:
    """
    IRemoteFolder over a megapy folder node.

    Holds only the handle and asks the store for the live client on each
    call, so folders resolved before a re-authentication keep working.
    """

    def __init__(self, store: "MegaStore", handle: str, name: str):
        self._store = store
        self.handle = handle
        self.name = name
        self.is_folder = True

    def __repr__(self) -> str:
        return f"MegaFolder({self.name!r}, handle={self.handle!r})"

    async def children(self) -> List[Any]:
        client = self._store.client
        try:
            node = client.get_node(self.handle)
            if node is None:
                await client.load(refresh=True)
                node = client.get_node(self.handle)
            if node is None:
                raise RemoteError(f"Folder not found: {self.name}", RemoteErrorKind.NOT_FOUND)
            return [self._wrap(child) for child in node.children]
        except Exception as e:
            raise translate_error(e) from e

    async def mkdir(self, name: str) -> "MegaFolder":
        client = self._store.client
        try:
            node = await client.create_folder(name, self.handle)
        except Exception as e:
            raise translate_error(e) from e
        return MegaFolder(self._store, node.handle, node.name)

    async def upload(self, name: str, data: bytes) -> MegaFile:
        client = self._store.client
        try:
            tmp_path = await asyncio.to_thread(_write_temp_file, name, data)
        except OSError as e:
            raise RemoteError(f"Could not stage upload {name}: {e}", RemoteErrorKind.UNKNOWN) from e
        try:
            node = await client.upload(tmp_path, dest_folder=self.handle, name=name, auto_thumb=False)
        except Exception as e:
            raise translate_error(e) from e
        finally:
            tmp_path.unlink(missing_ok=True)
        if node is None:
            raise RemoteError(f"Upload to MEGA failed: {name}", RemoteErrorKind.UNKNOWN)
        return MegaFile.from_node(node)

    def _wrap(self, node):
        if node.is_folder:
            return MegaFolder(self._store, node.handle, node.name)
        return MegaFile.from_node(node)


class MegaSession:
    """IRemoteSession holding one logged-in MegaClient."""

    def __init__(self, store: "MegaStore", client: MegaClient):
        self._store = store
        self.client = client

    async def get_root(self) -> MegaFolder:
        try:
            root = await self.client.get_root()
        except Exception as e:
            raise translate_error(e) from e
        return MegaFolder(self._store, root.handle, root.name)

    async def get_file(self, file_id: str) -> Optional[MegaFile]:
        try:
            await self.client.load()
            node = self.client.get_node(file_id)
        except Exception as e:
            raise translate_error(e) from e
        return MegaFile.from_node(node) if node is not None else None

    async def account_info(self) -> Dict[str, Any]:
        try:
            info = await self.client.get_account_info()
        except Exception as e:
            raise translate_error(e) from e
        return {
            "totalStorage": info.space_total,
            "usedStorage": info.space_used,
            "freeStorage": info.space_free,
        }

    async def close(self) -> None:
        await self.client.close()


class MegaStore:
    """
    IRemoteStore backed by megapy.

    Usage:
        >>> store = MegaStore()
        >>> session = await store.authenticate({"email": ..., "password": ...})
    """

    def __init__(self, config: Optional[UploadConfig] = None):
        self._config = config or UploadConfig()
        self._session: Optional[MegaSession] = None

    @property
    def client(self) -> MegaClient:
        if self._session is None:
            raise RemoteError("MEGA storage not initialized", RemoteErrorKind.AUTH)
        return self._session.client

    async def authenticate(self, credentials: Dict[str, str]) -> MegaSession:
        email = credentials.get("email")
        password = credentials.get("password")
        if not email or not password:
            raise RemoteError("Missing MEGA credentials", RemoteErrorKind.AUTH)

        client = MegaClient(email, password)
        try:
            await client.__aenter__()
            await client.load()
        except Exception as e:
            try:
                await client.close()
            except Exception as close_exc:
                logger.debug("Error closing failed MEGA client: %s", close_exc)
            raise translate_error(e, during_login=True) from e

        self._session = MegaSession(self, client)
        return self._session
