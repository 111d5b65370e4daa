"""
Folder layouts as typed trees.

Layouts are written as nested mappings, the same shape the YAML layout files
use: a mapping value is a folder with subfolders, a list value is a folder
holding placeholder files (markers), and an empty value is a bare folder.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

import yaml

from shared.errors import ValidationError

ORDERS_FOLDER = "01_Orders"
TEMPLATES_FOLDER = "02_Templates"
ARCHIVE_FOLDER = "04_Archive"
CLIENT_ACCESS_FOLDER = "Client_Access"
ORDER_METADATA_FILE = "_order_metadata.json"


@dataclass(frozen=True)
class Marker:
    """A placeholder file."""
    name: str
    content: str = ""


@dataclass(frozen=True)
class Folder:
    name: str
    children: Tuple["TreeNode", ...] = ()


TreeNode = Union[Folder, Marker]


def parse_tree(structure: Optional[Mapping[str, Any]]) -> Tuple[TreeNode, ...]:
    """Convert a nested-mapping layout into tree nodes."""
    if structure is None:
        return ()
    if not isinstance(structure, Mapping):
        raise ValidationError("Layout must be a mapping of folder names", {"got": type(structure).__name__})

    nodes = []
    for name, content in structure.items():
        if content is None:
            nodes.append(Folder(str(name)))
        elif isinstance(content, Mapping):
            nodes.append(Folder(str(name), parse_tree(content)))
        elif isinstance(content, (list, tuple)):
            nodes.append(Folder(str(name), tuple(Marker(str(marker)) for marker in content)))
        else:
            raise ValidationError(
                f"Unsupported layout entry for {name}",
                {"folder": str(name), "got": type(content).__name__}
            )
    return tuple(nodes)


def load_layout(path: str) -> Tuple[TreeNode, ...]:
    """Read a YAML layout file."""
    with open(path, "r", encoding="utf-8") as handle:
        return parse_tree(yaml.safe_load(handle))


def walk(tree: Tuple[TreeNode, ...], prefix: str = ""):
    """Yield ``(relative_path, node)`` for every node, parents first."""
    for node in tree:
        path = f"{prefix}/{node.name}" if prefix else node.name
        yield path, node
        if isinstance(node, Folder):
            yield from walk(node.children, path)


ROOT_LAYOUT = parse_tree({
    ORDERS_FOLDER: {},
    TEMPLATES_FOLDER: {
        "Documents": ["Quote_Template.docx", "Contract_Template.docx", "Invoice_Template.docx"],
        "Emails": ["Welcome_Email.html", "Order_Confirmation.html", "Shipping_Notice.html"],
        "Reports": ["Daily_Report.xlsx", "Weekly_Summary.xlsx", "Monthly_Analysis.xlsx"],
    },
    "03_Marketing": {
        "Campaigns": [],
        "Leads": [],
        "Analytics": [],
    },
    ARCHIVE_FOLDER: {},
    "05_Documentation": {
        "API_Docs": [],
        "Process_Guides": [],
        "Training_Materials": [],
    },
})

ORDER_LAYOUT = parse_tree({
    "Documents": {
        "Quotes": [],
        "Contracts": [],
        "Invoices": [],
        "Certificates": [],
    },
    "Communications": {
        "Emails": [],
        "WeChat_Logs": [],
        "Phone_Records": [],
    },
    "Attachments": {
        "Product_Specs": [],
        "Shipping_Docs": [],
        "Quality_Reports": [],
        "Photos": [],
    },
    "Internal": {
        "Production_Notes": [],
        "Quality_Control": [],
        "Logistics_Planning": [],
    },
})
