"""
Unit tests for order identifier parsing and folder layouts.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import ValidationError
from service_workspace.app.provisioning.identifiers import (
    derive_segments,
    extract_folder_id,
    is_valid_email,
    parse_identifier,
    sanitize_name,
)
from service_workspace.app.provisioning.tree import (
    ORDER_LAYOUT,
    ROOT_LAYOUT,
    Folder,
    Marker,
    load_layout,
    parse_tree,
    walk,
)


class TestIdentifiers:
    """Test cases for identifier parsing and path derivation."""

    def test_parse_identifier(self):
        """Test the date parts and sequence are extracted."""
        order = parse_identifier("ORD-2024-03-15-007")

        assert order.year == 2024
        assert order.month == 3
        assert order.day == 15
        assert order.sequence == "007"
        assert order.quarter == "Q1"

    @pytest.mark.parametrize("month,quarter", [("01", "Q1"), ("03", "Q1"), ("04", "Q2"), ("07", "Q3"), ("12", "Q4")])
    def test_quarter_boundaries(self, month, quarter):
        """Test months map to calendar quarters."""
        assert parse_identifier(f"ORD-2024-{month}-01-001").quarter == quarter

    def test_derive_segments(self):
        """Test the year, quarter and order folder segments."""
        assert derive_segments("ORD-2024-03-15-007", "Acme Ltd") == ["2024", "Q1", "ORD-2024-03-15-007_Acme Ltd"]

    def test_derive_segments_with_category(self):
        """Test a category becomes the first segment."""
        segments = derive_segments("ORD-2024-07-01-002", "Acme Ltd", category="Electronics")
        assert segments == ["Electronics", "2024", "Q3", "ORD-2024-07-01-002_Acme Ltd"]

    @pytest.mark.parametrize("identifier", [
        "ORD-2024-03-15",
        "ORD-2024-03-15-007-X",
        "",
        "ORD-24-03-15-007",
        "ORD-2024-13-15-007",
        "ORD-2024-03-32-007",
        "ORD-2024-Mar-15-007",
        "-2024-03-15-007",
    ])
    def test_malformed_identifiers_are_rejected(self, identifier):
        """Test anything but five well-formed parts is a ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            derive_segments(identifier, "Acme Ltd")
        assert exc_info.value.details["identifier"] == identifier

    @pytest.mark.parametrize("identifier", ["ORD-2024-02-30-001", "ORD-2023-02-29-001", "ORD-2024-04-31-001"])
    def test_impossible_calendar_dates_are_rejected(self, identifier):
        """Test day and month must form a real date."""
        with pytest.raises(ValidationError) as exc_info:
            parse_identifier(identifier)
        assert exc_info.value.details["identifier"] == identifier

    def test_leap_day_is_accepted(self):
        """Test 29 February parses in a leap year."""
        assert parse_identifier("ORD-2024-02-29-001").quarter == "Q1"

    def test_blank_client_label_is_rejected(self):
        """Test a label that sanitizes to nothing is rejected."""
        with pytest.raises(ValidationError):
            derive_segments("ORD-2024-03-15-007", "  ")

    def test_sanitize_name(self):
        """Test unsafe characters are replaced and length is capped."""
        assert sanitize_name('Kestrel/Co: "Ltd"?') == "Kestrel_Co_ _Ltd__"
        assert sanitize_name("  padded  ") == "padded"
        assert sanitize_name("x" * 80, max_length=50) == "x" * 50
        assert sanitize_name(None) == ""

    def test_long_label_is_truncated_in_folder_name(self):
        """Test the order folder name respects the length cap."""
        segments = derive_segments("ORD-2024-03-15-007", "A" * 100, max_length=30)
        assert len(segments[-1]) == 30
        assert segments[-1].startswith("ORD-2024-03-15-007_")

    @pytest.mark.parametrize("url,expected", [
        ("https://drive.google.com/drive/folders/1AbC_d-9", "1AbC_d-9"),
        ("https://drive.google.com/open?id=XYZ123", "XYZ123"),
        ("https://example.com/nothing", None),
        ("", None),
    ])
    def test_extract_folder_id(self, url, expected):
        """Test folder ids are read from both link shapes."""
        assert extract_folder_id(url) == expected

    def test_is_valid_email(self):
        assert is_valid_email("buyer@acme.example")
        assert not is_valid_email("")
        assert not is_valid_email(None)
        assert not is_valid_email("no-at-sign")


class TestLayouts:
    """Test cases for folder layout trees."""

    def test_parse_tree_shapes(self):
        """Test mappings, lists and empty values."""
        tree = parse_tree({"A": {"B": None}, "C": ["one.txt", "two.txt"], "D": None})

        assert tree == (
            Folder("A", (Folder("B"),)),
            Folder("C", (Marker("one.txt"), Marker("two.txt"))),
            Folder("D"),
        )

    def test_parse_tree_rejects_scalars(self):
        """Test an unsupported entry raises ValidationError."""
        with pytest.raises(ValidationError):
            parse_tree({"A": 5})
        with pytest.raises(ValidationError):
            parse_tree(["A"])

    def test_walk_is_parents_first(self):
        """Test walk yields relative paths in creation order."""
        paths = [path for path, _ in walk(parse_tree({"A": {"B": ["c.txt"]}, "D": None}))]
        assert paths == ["A", "A/B", "A/B/c.txt", "D"]

    def test_default_layouts(self):
        """Test the fixed root layout and the per-order layout."""
        assert [node.name for node in ROOT_LAYOUT][:2] == ["01_Orders", "02_Templates"]
        assert "04_Archive" in [node.name for node in ROOT_LAYOUT]
        assert [node.name for node in ORDER_LAYOUT] == ["Documents", "Communications", "Attachments", "Internal"]
        assert len(list(walk(ORDER_LAYOUT))) == 18

    def test_load_layout_from_yaml(self, tmp_path):
        """Test a layout file is read into a tree."""
        layout_file = tmp_path / "order_layout.yaml"
        layout_file.write_text("Documents:\n  Quotes:\n  Invoices:\nShipping:\n  - manifest.txt\n")

        tree = load_layout(str(layout_file))

        assert tree == (
            Folder("Documents", (Folder("Quotes"), Folder("Invoices"))),
            Folder("Shipping", (Marker("manifest.txt"),)),
        )

    def test_load_empty_layout(self, tmp_path):
        """Test an empty file is an empty layout."""
        layout_file = tmp_path / "empty.yaml"
        layout_file.write_text("")
        assert load_layout(str(layout_file)) == ()
