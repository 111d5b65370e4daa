"""
Typed logical operations dispatched by the BatchProcessor.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Type, Union

from ..adapters.base import NodeKind, PermissionsSpec, Rows


class StoreKind(str, Enum):
    """Remote store an operation is sent to."""
    TABLE = "table"
    HIERARCHICAL = "hierarchical"


class OperationKind(str, Enum):
    """Closed set of logical operations."""
    WRITE_RANGE = "write_range"
    APPEND_ROWS = "append_rows"
    CREATE_FOLDER = "create_folder"
    CREATE_FILE = "create_file"
    SET_PERMISSIONS = "set_permissions"
    MOVE_NODE = "move_node"
    RENAME_NODE = "rename_node"

    @property
    def store_kind(self) -> StoreKind:
        return STORE_KIND_BY_OPERATION[self]


STORE_KIND_BY_OPERATION: Dict[OperationKind, StoreKind] = {
    OperationKind.WRITE_RANGE: StoreKind.TABLE,
    OperationKind.APPEND_ROWS: StoreKind.TABLE,
    OperationKind.CREATE_FOLDER: StoreKind.HIERARCHICAL,
    OperationKind.CREATE_FILE: StoreKind.HIERARCHICAL,
    OperationKind.SET_PERMISSIONS: StoreKind.HIERARCHICAL,
    OperationKind.MOVE_NODE: StoreKind.HIERARCHICAL,
    OperationKind.RENAME_NODE: StoreKind.HIERARCHICAL,
}


@dataclass(frozen=True)
class WriteRangePayload:
    key: str
    rows: Rows


@dataclass(frozen=True)
class AppendRowsPayload:
    key: str
    rows: Rows


@dataclass(frozen=True)
class CreateNodePayload:
    parent_id: str
    name: str
    content: Optional[str] = None


@dataclass(frozen=True)
class SetPermissionsPayload:
    node_id: str
    spec: PermissionsSpec


@dataclass(frozen=True)
class MoveNodePayload:
    """``old_parent_id`` narrows cache invalidation when the caller knows it."""
    node_id: str
    new_parent_id: str
    old_parent_id: Optional[str] = None


@dataclass(frozen=True)
class RenameNodePayload:
    node_id: str
    new_name: str
    parent_id: Optional[str] = None


Payload = Union[
    WriteRangePayload,
    AppendRowsPayload,
    CreateNodePayload,
    SetPermissionsPayload,
    MoveNodePayload,
    RenameNodePayload,
]

PAYLOAD_TYPES: Dict[OperationKind, Type] = {
    OperationKind.WRITE_RANGE: WriteRangePayload,
    OperationKind.APPEND_ROWS: AppendRowsPayload,
    OperationKind.CREATE_FOLDER: CreateNodePayload,
    OperationKind.CREATE_FILE: CreateNodePayload,
    OperationKind.SET_PERMISSIONS: SetPermissionsPayload,
    OperationKind.MOVE_NODE: MoveNodePayload,
    OperationKind.RENAME_NODE: RenameNodePayload,
}

NODE_KIND_BY_OPERATION: Dict[OperationKind, NodeKind] = {
    OperationKind.CREATE_FOLDER: NodeKind.FOLDER,
    OperationKind.CREATE_FILE: NodeKind.FILE,
}


@dataclass(frozen=True)
class Operation:
    """A logical operation: a kind plus its matching payload."""
    kind: OperationKind
    payload: Payload

    def __post_init__(self):
        expected = PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.kind.value} expects {expected.__name__}, got {type(self.payload).__name__}"
            )

    @property
    def store_kind(self) -> StoreKind:
        return self.kind.store_kind

    @classmethod
    def write_range(cls, key: str, rows: Rows) -> "Operation":
        return cls(OperationKind.WRITE_RANGE, WriteRangePayload(key=key, rows=rows))

    @classmethod
    def append_rows(cls, key: str, rows: Rows) -> "Operation":
        return cls(OperationKind.APPEND_ROWS, AppendRowsPayload(key=key, rows=rows))

    @classmethod
    def create_folder(cls, parent_id: str, name: str) -> "Operation":
        return cls(OperationKind.CREATE_FOLDER, CreateNodePayload(parent_id=parent_id, name=name))

    @classmethod
    def create_file(cls, parent_id: str, name: str, content: str = "") -> "Operation":
        return cls(OperationKind.CREATE_FILE, CreateNodePayload(parent_id=parent_id, name=name, content=content))

    @classmethod
    def set_permissions(cls, node_id: str, spec: PermissionsSpec) -> "Operation":
        return cls(OperationKind.SET_PERMISSIONS, SetPermissionsPayload(node_id=node_id, spec=spec))

    @classmethod
    def move_node(cls, node_id: str, new_parent_id: str, old_parent_id: Optional[str] = None) -> "Operation":
        return cls(
            OperationKind.MOVE_NODE,
            MoveNodePayload(node_id=node_id, new_parent_id=new_parent_id, old_parent_id=old_parent_id)
        )

    @classmethod
    def rename_node(cls, node_id: str, new_name: str, parent_id: Optional[str] = None) -> "Operation":
        return cls(
            OperationKind.RENAME_NODE,
            RenameNodePayload(node_id=node_id, new_name=new_name, parent_id=parent_id)
        )
