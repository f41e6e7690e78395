"""
Utility function tests.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


class TestNotionIdUtils:
    """Test ID parsing and formatting."""

    def test_parse_page_id_from_url(self):
        from notion_mcp.utils import parse_page_id

        url = "https://www.notion.so/acme/Roadmap-598337872cf94fdf8782e53db20768a5?pvs=4"

        assert parse_page_id(url) == "598337872cf94fdf8782e53db20768a5"

    def test_parse_page_id_strips_dashes(self):
        from notion_mcp.utils import parse_page_id

        assert parse_page_id("59833787-2cf9-4fdf-8782-e53db20768a5") == (
            "598337872cf94fdf8782e53db20768a5"
        )

    def test_is_notion_id(self):
        from notion_mcp.utils import is_notion_id

        assert is_notion_id("59833787-2cf9-4fdf-8782-e53db20768a5") is True
        assert is_notion_id("598337872cf94fdf8782e53db20768a5") is True
        assert is_notion_id("Website Redesign") is False
        assert is_notion_id("") is False

    def test_same_notion_id(self):
        from notion_mcp.utils import same_notion_id

        assert same_notion_id("59833787-2cf9-4fdf-8782-e53db20768a5", "598337872CF94FDF8782E53DB20768A5")
        assert not same_notion_id("59833787-2cf9-4fdf-8782-e53db20768a5", None)


class TestExtraction:
    """Test text and property extraction."""

    def test_format_datetime_adds_timezone(self):
        from notion_mcp.utils import format_datetime_for_api

        assert format_datetime_for_api(datetime(2024, 1, 15, 10, 30)) == "2024-01-15T10:30:00+00:00"
        assert format_datetime_for_api(None) is None

    def test_extract_plain_text_falls_back_to_content(self):
        from notion_mcp.utils import extract_plain_text, rich_text

        assert extract_plain_text([{"plain_text": "Hello "}, {"plain_text": "World"}]) == "Hello World"
        assert extract_plain_text(rich_text("local")) == "local"
        assert extract_plain_text(None) == ""

    def test_extract_title(self, page_full_response, database_full_response):
        from notion_mcp.utils import extract_title

        assert extract_title(page_full_response) == "Roadmap"
        assert extract_title(database_full_response) == "Documents"
        assert extract_title({"object": "page", "properties": {}}) == ""

    def test_flatten_properties(self, page_full_response):
        from notion_mcp.utils import flatten_properties

        flat = flatten_properties(page_full_response["properties"])

        assert flat == {"Name": "Roadmap", "Status": "New", "Score": 3, "Due": "2024-04-01"}

    @pytest.mark.parametrize("prop, expected", [
        ({"type": "number", "number": 42}, 42),
        ({"type": "checkbox", "checkbox": True}, True),
        ({"type": "multi_select", "multi_select": [{"name": "A"}, {"name": "B"}]}, ["A", "B"]),
        ({"type": "select", "select": None}, None),
        ({"type": "relation", "relation": [{"id": "r1"}]}, ["r1"]),
        ({"type": "status", "status": {"name": "Done"}}, "Done"),
        ({"type": "unique_id", "unique_id": {"prefix": "TASK", "number": 7}}, "TASK-7"),
        ({}, None),
    ])
    def test_extract_property_value(self, prop, expected):
        from notion_mcp.utils import extract_property_value

        assert extract_property_value(prop) == expected

    def test_extract_block_content(self, blocks_list_response):
        from notion_mcp.utils import extract_block_content

        contents = [extract_block_content(b) for b in blocks_list_response["results"]]

        assert contents == ["Goals", "Ship v2", "[child_page]"]

    def test_extract_to_do_and_divider(self):
        from notion_mcp.utils import divider_block, extract_block_content, text_block

        assert extract_block_content(text_block("to_do", "Ship", checked=True)) == "[x] Ship"
        assert extract_block_content(divider_block()) == "---"


class TestBuilders:
    """Test request builders."""

    def test_build_icon(self):
        from notion_mcp.utils import build_icon

        assert build_icon("🚀") == {"type": "emoji", "emoji": "🚀"}
        assert build_icon("https://example.com/i.png") == {
            "type": "external", "external": {"url": "https://example.com/i.png"}
        }
        assert build_icon(None) is None

    def test_build_filter_condition(self):
        from notion_mcp.utils import build_filter_condition

        assert build_filter_condition("Status", "select", "equals", "Active") == {
            "property": "Status",
            "select": {"equals": "Active"},
        }

    def test_normalize_sorts(self):
        from notion_mcp.utils import normalize_sorts

        assert normalize_sorts([
            {"timestamp": "last_edited_time"},
            {"property": "Name"},
            {"property": "Due", "direction": "descending"},
        ]) == [
            {"timestamp": "last_edited_time", "direction": "descending"},
            {"property": "Name", "direction": "ascending"},
            {"property": "Due", "direction": "descending"},
        ]
        assert normalize_sorts(None) is None


class TestMarkdownToBlocks:
    """Test markdown conversion."""

    def test_block_types(self):
        from notion_mcp.utils import markdown_to_blocks

        markdown = "\n".join([
            "# Title",
            "## Section",
            "### Sub",
            "- item",
            "* star item",
            "1. first",
            "- [ ] open task",
            "- [x] done task",
            "> quote",
            "---",
            "plain text",
        ])

        blocks = markdown_to_blocks(markdown)

        assert [b["type"] for b in blocks] == [
            "heading_1", "heading_2", "heading_3",
            "bulleted_list_item", "bulleted_list_item", "numbered_list_item",
            "to_do", "to_do", "quote", "divider", "paragraph",
        ]
        assert blocks[5]["numbered_list_item"]["rich_text"][0]["text"]["content"] == "first"
        assert blocks[6]["to_do"]["checked"] is False
        assert blocks[7]["to_do"]["checked"] is True

    def test_code_fence(self):
        from notion_mcp.utils import markdown_to_blocks

        blocks = markdown_to_blocks("```python\nprint('hi')\nx = 1\n```\nafter")

        assert blocks[0]["type"] == "code"
        assert blocks[0]["code"]["language"] == "python"
        assert blocks[0]["code"]["rich_text"][0]["text"]["content"] == "print('hi')\nx = 1"
        assert blocks[1]["type"] == "paragraph"

    def test_long_paragraph_is_split(self):
        from notion_mcp.utils import MAX_RICH_TEXT_LENGTH, markdown_to_blocks

        blocks = markdown_to_blocks("x" * 4500)

        assert len(blocks) == 3
        assert all(
            len(b["paragraph"]["rich_text"][0]["text"]["content"]) <= MAX_RICH_TEXT_LENGTH
            for b in blocks
        )

    @pytest.mark.parametrize("prefix, block_type", [
        ("# ", "heading_1"),
        ("### ", "heading_3"),
        ("- ", "bulleted_list_item"),
        ("1. ", "numbered_list_item"),
        ("- [x] ", "to_do"),
        ("> ", "quote"),
    ])
    def test_long_line_is_split_for_every_type(self, prefix, block_type):
        from notion_mcp.utils import MAX_RICH_TEXT_LENGTH, markdown_to_blocks

        blocks = markdown_to_blocks(prefix + "x" * 4500)

        assert [b["type"] for b in blocks] == [block_type] * 3
        assert all(
            len(b[block_type]["rich_text"][0]["text"]["content"]) <= MAX_RICH_TEXT_LENGTH
            for b in blocks
        )
        if block_type == "to_do":
            assert all(b["to_do"]["checked"] for b in blocks)

    def test_blank_lines_skipped(self):
        from notion_mcp.utils import markdown_to_blocks

        assert markdown_to_blocks("\n\n   \n") == []


class TestChunking:
    """Test chunk_text and chunk_list."""

    def test_short_text_single_chunk(self):
        from notion_mcp.utils import chunk_text

        assert chunk_text("hello", 10) == ["hello"]

    def test_prefers_paragraph_break(self):
        from notion_mcp.utils import chunk_text

        text = "a" * 70 + "\n\n" + "b" * 50

        assert chunk_text(text, 100) == ["a" * 70, "b" * 50]

    def test_early_break_is_ignored(self):
        """A break in the first half of the chunk does not shorten it."""
        from notion_mcp.utils import chunk_text

        text = "a" * 10 + "\n" + "b" * 200

        chunks = chunk_text(text, 100)

        assert len(chunks[0]) == 100
        assert "".join(chunks).replace("\n", "") == "a" * 10 + "b" * 200

    def test_chunks_respect_limit(self):
        from notion_mcp.utils import chunk_text

        text = ("line of text\n" * 20000)

        assert all(len(c) <= 50000 for c in chunk_text(text))

    def test_chunked_paragraph_blocks(self):
        from notion_mcp.utils import chunked_paragraph_blocks

        blocks = chunked_paragraph_blocks("y" * 60000)

        assert len(blocks) == 30
        assert {b["type"] for b in blocks} == {"paragraph"}

    def test_chunk_list(self):
        from notion_mcp.utils import chunk_list

        assert list(chunk_list([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
        assert list(chunk_list([], 2)) == []

    def test_safe_get_nested(self):
        from notion_mcp.utils import safe_get_nested

        data = {"a": {"b": {"c": 1}}, "x": None}

        assert safe_get_nested(data, "a", "b", "c") == 1
        assert safe_get_nested(data, "a", "missing", default="d") == "d"
        assert safe_get_nested(data, "x", "y") is None
