"""
Conversation export tests.
"""

import re
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import DATABASE_ID


def messages(*pairs):
    from notion_mcp.conversations import ConversationMessage
    return [ConversationMessage(role=role, content=content) for role, content in pairs]


class TestHelpers:
    """Test title, ID and code detection helpers."""

    def test_title_from_first_user_message(self):
        from notion_mcp.conversations import generate_title

        assert generate_title(messages(("assistant", "Hi"), ("user", "  Fix my parser "))) == "Fix my parser"

    def test_title_truncated(self):
        from notion_mcp.conversations import generate_title

        title = generate_title(messages(("user", "x" * 150)))

        assert title == "x" * 100 + "..."

    def test_default_title(self):
        from notion_mcp.conversations import generate_title

        assert generate_title([]) == "Gemini Conversation"

    def test_conversation_id_format(self):
        from notion_mcp.conversations import generate_conversation_id

        conv_id = generate_conversation_id("2024-03-01T00:00:00Z")

        assert re.match(r"^conv_1709251200000_[0-9a-f]{6}$", conv_id)

    def test_conversation_id_bad_start_time(self):
        from notion_mcp.conversations import generate_conversation_id

        assert generate_conversation_id("yesterday").startswith("conv_")

    def test_split_content_by_code_blocks(self):
        from notion_mcp.conversations import split_content_by_code_blocks

        parts = split_content_by_code_blocks("Try this:\n```python\nprint(1)\n```\nDone.")

        assert parts == [
            {"type": "text", "content": "Try this:"},
            {"type": "code", "content": "print(1)\n", "language": "python"},
            {"type": "text", "content": "Done."},
        ]

    def test_detect_languages(self):
        from notion_mcp.conversations import detect_languages, has_code_snippets

        msgs = messages(
            ("user", "```js\na\n```"),
            ("assistant", "```python\nb\n```\n```js\nc\n```\n```\nd\n```"),
        )

        assert detect_languages(msgs) == ["js", "python", "plain text"]
        assert has_code_snippets(msgs) is True
        assert has_code_snippets(messages(("user", "no code"))) is False


class TestFormatBlocks:
    """Test block rendering."""

    def test_structure(self):
        from notion_mcp.conversations import format_conversation_blocks

        blocks = format_conversation_blocks(messages(
            ("user", "Question?\n\nMore detail"),
            ("assistant", "```python\nprint(1)\n```"),
        ))

        assert [b["type"] for b in blocks] == [
            "heading_3", "paragraph", "paragraph", "divider", "heading_3", "code",
        ]
        assert blocks[5]["code"]["language"] == "python"

    def test_long_paragraph_chunked(self):
        from notion_mcp.conversations import format_conversation_blocks

        blocks = format_conversation_blocks(messages(("user", "z" * 4100)))

        assert [b["type"] for b in blocks] == ["heading_3", "paragraph", "paragraph", "paragraph"]


class TestExporter:
    """Test ConversationExporter.export."""

    def _exporter(self, database_id=DATABASE_ID):
        from notion_mcp.conversations import ConversationExporter

        client = Mock()
        client.create_page.return_value = {"id": "conv-page", "url": "https://notion.so/conv-page"}
        return ConversationExporter(client, lambda: database_id), client

    def test_export(self):
        exporter, client = self._exporter()

        result = exporter.export(
            {
                "messages": [
                    {"role": "user", "content": "How do I parse JSON?"},
                    {"role": "assistant", "content": "```python\njson.loads(s)\n```"},
                ],
                "metadata": {"startTime": "2024-03-01T00:00:00Z"},
            },
            tags=["learning"],
        )

        body = client.create_page.call_args.args[0]
        props = body["properties"]
        assert body["parent"] == {"database_id": DATABASE_ID}
        assert props["Title"]["title"][0]["text"]["content"] == "How do I parse JSON?"
        assert props["Message Count"] == {"number": 2}
        assert props["Code Snippets Present"] == {"checkbox": True}
        assert props["Languages Mentioned"] == {"multi_select": [{"name": "python"}]}
        assert props["Tags"] == {"multi_select": [{"name": "learning"}]}
        assert result["id"] == "conv-page"
        assert result["messageCount"] == 2
        client.append_block_children.assert_not_called()

    def test_long_conversation_is_appended_in_batches(self):
        exporter, client = self._exporter()
        data = {"messages": [{"role": "user", "content": f"message {i}"} for i in range(80)]}

        result = exporter.export(data)

        # 80 headings + 80 paragraphs + 79 dividers
        assert result["blockCount"] == 239
        assert len(client.create_page.call_args.args[0]["children"]) == 100
        batches = [c.args[1] for c in client.append_block_children.call_args_list]
        assert [len(b) for b in batches] == [100, 39]

    def test_requires_database(self):
        from notion_mcp.errors import NotionConfigurationError

        exporter, _ = self._exporter(database_id=None)

        with pytest.raises(NotionConfigurationError):
            exporter.export({"messages": []})

    def test_invalid_data(self):
        from notion_mcp.errors import ToolInputError

        exporter, client = self._exporter()

        with pytest.raises(ToolInputError):
            exporter.export({"messages": [{"content": "no role"}]})

        client.create_page.assert_not_called()

    def test_empty_conversation(self):
        exporter, client = self._exporter()

        result = exporter.export({})

        assert result["title"] == "Gemini Conversation"
        assert client.create_page.call_args.args[0]["children"] == []
