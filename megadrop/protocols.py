"""
Protocols (Interfaces) for the remote store.

The engine only talks to these; the MEGA adapter and the test fakes
implement them. Every coroutine may raise RemoteError.
"""
from typing import Optional, Dict, Any, List, Protocol, runtime_checkable


@runtime_checkable
class IRemoteFile(Protocol):
    """A stored file (or folder) node."""

    node_id: str
    name: str
    size: int
    is_folder: bool


@runtime_checkable
class IRemoteFolder(Protocol):
    """A folder node that can list, create and receive children."""

    handle: str
    name: str
    is_folder: bool

    async def children(self) -> List[Any]:
        """Direct children of this folder."""
        ...

    async def mkdir(self, name: str) -> "IRemoteFolder":
        """Create a subfolder."""
        ...

    async def upload(self, name: str, data: bytes) -> IRemoteFile:
        """Store bytes under name inside this folder."""
        ...


@runtime_checkable
class IRemoteSession(Protocol):
    """An authenticated connection to the store."""

    async def get_root(self) -> IRemoteFolder:
        """Root folder (Cloud Drive)."""
        ...

    async def get_file(self, file_id: str) -> Optional[IRemoteFile]:
        """Look up a node by its identifier."""
        ...

    async def account_info(self) -> Dict[str, Any]:
        """Storage totals and account details."""
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class IRemoteStore(Protocol):
    """Factory for authenticated sessions."""

    async def authenticate(self, credentials: Dict[str, str]) -> IRemoteSession:
        """Log in and return a live session."""
        ...
