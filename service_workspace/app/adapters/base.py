"""
Abstract remote store interfaces consumed by the workspace core.

Implementations must raise ``shared.errors.RemoteUnavailable`` for any I/O
failure. Both stores enforce rate limits stricter than the core can observe,
which is why pacing is done client-side by the BatchProcessor.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Union
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from pydantic import BaseModel, Field

from shared.errors import RemoteUnavailable

Rows = List[List[Any]]


class NodeKind(str, Enum):
    """Kinds of nodes in the hierarchical store."""
    FOLDER = "folder"
    FILE = "file"


class Access(str, Enum):
    """Who can reach a node."""
    PRIVATE = "private"
    DOMAIN = "domain"
    DOMAIN_WITH_LINK = "domain_with_link"
    ANYONE_WITH_LINK = "anyone_with_link"


class Permission(str, Enum):
    """What reachers may do."""
    VIEW = "view"
    COMMENT = "comment"
    EDIT = "edit"


class PermissionsSpec(BaseModel):
    """Sharing settings applied to a node."""

    access: Access = Field(Access.PRIVATE, description="Link/domain sharing scope")
    permission: Permission = Field(Permission.VIEW, description="Role granted by the sharing scope")
    editors: List[str] = Field(default_factory=list, description="Individual editor emails")

    PRESETS: ClassVar[Dict[str, Dict[str, Any]]] = {
        "Admin": {"access": Access.DOMAIN, "permission": Permission.EDIT},
        "Manager": {"access": Access.DOMAIN, "permission": Permission.EDIT},
        "User": {"access": Access.DOMAIN_WITH_LINK, "permission": Permission.VIEW},
        "Client": {"access": Access.ANYONE_WITH_LINK, "permission": Permission.VIEW},
    }

    @classmethod
    def preset(cls, role: str, editors: Optional[Sequence[str]] = None) -> "PermissionsSpec":
        """Build the spec for a named role (Admin, Manager, User, Client)."""
        if role not in cls.PRESETS:
            raise KeyError(f"Unknown permissions preset: {role}")
        return cls(editors=list(editors or []), **cls.PRESETS[role])


@dataclass(frozen=True)
class WriteRequest:
    """One logical write inside a table-store batch call."""
    key: str
    rows: Rows
    append: bool = False


@dataclass(frozen=True)
class WriteAck:
    """Acknowledgement of one write."""
    key: str
    updated_rows: int
    updated_range: Optional[str] = None


@dataclass(frozen=True)
class RemoteNodeInfo:
    """Metadata of an existing node."""
    node_id: str
    name: str
    parent_id: Optional[str]
    kind: NodeKind = NodeKind.FOLDER
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)


BatchWriteOutcome = Union[WriteAck, RemoteUnavailable]


class RemoteTableStore(ABC):
    """Rate-limited tabular (spreadsheet-like) store."""

    name: str = "table"

    @abstractmethod
    async def read_range(self, key: str) -> Rows:
        """Read all rows of an A1 range key (``Tab!A1:Q``)."""

    @abstractmethod
    async def write_range(self, key: str, rows: Rows) -> WriteAck:
        """Overwrite a range."""

    @abstractmethod
    async def append_rows(self, key: str, rows: Rows) -> WriteAck:
        """Append rows after the last populated row of a range."""

    @abstractmethod
    async def batch_write(self, requests: Sequence[WriteRequest]) -> List[BatchWriteOutcome]:
        """Execute several writes as one physical call.

        Returns one outcome per request, in order. Raises RemoteUnavailable
        only when the call as a whole failed.
        """


class RemoteHierarchicalStore(ABC):
    """Rate-limited hierarchical (folder-like) store."""

    name: str = "hierarchical"

    @abstractmethod
    async def find_child(self, parent_id: str, name: str) -> Optional[str]:
        """Return the id of the child named ``name`` under ``parent_id``."""

    @abstractmethod
    async def create_child(
        self,
        parent_id: str,
        name: str,
        kind: NodeKind,
        content: Optional[str] = None
    ) -> str:
        """Create a child node and return its id."""

    @abstractmethod
    async def set_permissions(self, node_id: str, spec: PermissionsSpec) -> None:
        """Apply sharing settings."""

    @abstractmethod
    async def move(self, node_id: str, new_parent_id: str) -> None:
        """Move a node under a new parent."""

    @abstractmethod
    async def rename(self, node_id: str, new_name: str) -> None:
        """Rename a node in place."""

    @abstractmethod
    async def get_node(self, node_id: str) -> Optional[RemoteNodeInfo]:
        """Return node metadata, or None when the id does not exist."""
