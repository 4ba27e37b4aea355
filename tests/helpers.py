"""In-memory remote store used across the test suite."""
from __future__ import annotations

import asyncio
import itertools
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from megadrop.errors import RemoteError, RemoteErrorKind

_ids = itertools.count(1)


def _next_id(prefix: str) -> str:
    return f"{prefix}{next(_ids)}"


@dataclass
class FakeFile:
    node_id: str
    name: str
    size: int = 0
    is_folder: bool = False


class FakeFolder:
    def __init__(self, store: "FakeStore", name: str):
        self._store = store
        self.name = name
        self.handle = _next_id("folder-")
        self.is_folder = True
        self.items: List[Any] = []

    def __repr__(self) -> str:
        return f"FakeFolder({self.name!r})"

    async def children(self) -> List[Any]:
        self._store.calls["children"] += 1
        await asyncio.sleep(0)
        self._store.raise_next("children")
        return list(self.items)

    async def mkdir(self, name: str) -> "FakeFolder":
        self._store.calls["mkdir"] += 1
        await asyncio.sleep(0)
        self._store.raise_next("mkdir")
        folder = FakeFolder(self._store, name)
        self.items.append(folder)
        return folder

    async def upload(self, name: str, data: bytes) -> FakeFile:
        self._store.calls["upload"] += 1
        await asyncio.sleep(0)
        self._store.raise_next("upload")
        stored = FakeFile(node_id=_next_id("file-"), name=name, size=len(data))
        self.items.append(stored)
        self._store.files[stored.node_id] = stored
        return stored

    def add_file(self, name: str, size: int = 1) -> FakeFile:
        stored = FakeFile(node_id=_next_id("file-"), name=name, size=size)
        self.items.append(stored)
        self._store.files[stored.node_id] = stored
        return stored

    def folder(self, name: str) -> Optional["FakeFolder"]:
        for item in self.items:
            if item.is_folder and item.name == name:
                return item
        return None


class FakeSession:
    def __init__(self, store: "FakeStore"):
        self._store = store
        self.closed = False

    async def get_root(self) -> FakeFolder:
        self._store.calls["get_root"] += 1
        self._store.raise_next("get_root")
        return self._store.root

    async def get_file(self, file_id: str) -> Optional[FakeFile]:
        return self._store.files.get(file_id)

    async def account_info(self) -> Dict[str, Any]:
        return {"totalStorage": 20 * 1024 ** 3, "usedStorage": 0}

    async def close(self) -> None:
        self.closed = True


class FakeStore:
    """
    Scriptable store: queue exceptions per operation with fail(op, *errors).

    calls counts every operation; sessions keeps every session handed out.
    """

    def __init__(self):
        self.root = FakeFolder(self, "Cloud Drive")
        self.files: Dict[str, FakeFile] = {}
        self.calls: Counter = Counter()
        self.sessions: List[FakeSession] = []
        self.credentials: List[Dict[str, str]] = []
        self._errors: Dict[str, List[BaseException]] = {}

    def fail(self, operation: str, *errors: BaseException) -> None:
        self._errors.setdefault(operation, []).extend(errors)

    def raise_next(self, operation: str) -> None:
        queue = self._errors.get(operation)
        if queue:
            raise queue.pop(0)

    async def authenticate(self, credentials: Dict[str, str]) -> FakeSession:
        self.calls["authenticate"] += 1
        self.credentials.append(dict(credentials))
        await asyncio.sleep(0)
        self.raise_next("authenticate")
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    def remote_calls(self) -> int:
        return self.calls["children"] + self.calls["mkdir"] + self.calls["upload"]


def auth_error(message: str = "Unauthorized: session expired") -> RemoteError:
    return RemoteError(message, RemoteErrorKind.AUTH)


def network_error(message: str = "Network error: connection reset") -> RemoteError:
    return RemoteError(message, RemoteErrorKind.NETWORK)
