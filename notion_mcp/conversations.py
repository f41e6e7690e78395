"""
Export of chat conversations into the conversation database.
"""

import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import NotionConfigurationError, ToolInputError
from .utils import (
    MAX_BLOCKS_PER_REQUEST,
    MAX_RICH_TEXT_LENGTH,
    chunk_list,
    chunk_text,
    divider_block,
    rich_text,
    text_block,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Gemini Conversation"
TITLE_LENGTH = 100

CODE_BLOCK_PATTERN = re.compile(r"```(\w+)?\n([\s\S]*?)```")

ROLE_LABELS = {
    "user": "\U0001F464 User",
    "assistant": "\U0001F916 Assistant",
}


class ConversationMessage(BaseModel):
    role: str
    content: str = ""


class ConversationData(BaseModel):
    messages: List[ConversationMessage] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


def generate_title(messages: List[ConversationMessage]) -> str:
    """Title from the first user message, truncated with an ellipsis."""
    for message in messages:
        if message.role == "user" and message.content.strip():
            content = message.content.strip()
            if len(content) > TITLE_LENGTH:
                return content[:TITLE_LENGTH] + "..."
            return content
    return DEFAULT_TITLE


def generate_conversation_id(start_time: Optional[str] = None) -> str:
    """Build an ID of the form conv_<epoch millis>_<random suffix>."""
    started = datetime.now(timezone.utc)
    if start_time:
        try:
            started = datetime.fromisoformat(start_time.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Ignoring unparseable startTime {start_time!r}")
    return f"conv_{int(started.timestamp() * 1000)}_{secrets.token_hex(3)}"


def split_content_by_code_blocks(content: str) -> List[Dict[str, str]]:
    """
    Split message content into text and fenced code parts.

    Returns:
        Parts as {"type": "text"|"code", "content": ..., "language": ...}
    """
    parts: List[Dict[str, str]] = []
    last_index = 0

    for match in CODE_BLOCK_PATTERN.finditer(content):
        text = content[last_index:match.start()].strip()
        if text:
            parts.append({"type": "text", "content": text})
        parts.append({
            "type": "code",
            "content": match.group(2),
            "language": match.group(1) or "plain text",
        })
        last_index = match.end()

    text = content[last_index:].strip()
    if text:
        parts.append({"type": "text", "content": text})

    return parts


def detect_languages(messages: List[ConversationMessage]) -> List[str]:
    """Languages of fenced code blocks, in order of first appearance."""
    languages: List[str] = []
    for message in messages:
        for match in CODE_BLOCK_PATTERN.finditer(message.content):
            language = match.group(1) or "plain text"
            if language not in languages:
                languages.append(language)
    return languages


def has_code_snippets(messages: List[ConversationMessage]) -> bool:
    return any(CODE_BLOCK_PATTERN.search(m.content) for m in messages)


def format_conversation_blocks(messages: List[ConversationMessage]) -> List[Dict[str, Any]]:
    """Render messages as role headings, paragraphs, code blocks and dividers."""
    blocks: List[Dict[str, Any]] = []

    for index, message in enumerate(messages):
        label = ROLE_LABELS.get(message.role, message.role.title())
        blocks.append(text_block("heading_3", label))

        for part in split_content_by_code_blocks(message.content):
            if part["type"] == "code":
                for chunk in chunk_text(part["content"], MAX_RICH_TEXT_LENGTH):
                    blocks.append(text_block("code", chunk, language=part["language"]))
                continue
            for paragraph in part["content"].split("\n\n"):
                paragraph = paragraph.strip()
                if not paragraph:
                    continue
                for chunk in chunk_text(paragraph, MAX_RICH_TEXT_LENGTH):
                    blocks.append(text_block("paragraph", chunk))

        if index < len(messages) - 1:
            blocks.append(divider_block())

    return blocks


class ConversationExporter:
    """Creates one page per exported conversation."""

    def __init__(self, client: Any, database_id: Callable[[], Optional[str]]):
        self.client = client
        self._database_id = database_id

    def export(
        self,
        conversation_data: Dict[str, Any],
        title: Optional[str] = None,
        tags: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Export a conversation.

        Blocks beyond the first 100 are appended in further batches.

        Raises:
            NotionConfigurationError: If no conversation database is configured
            ToolInputError: If ``conversation_data`` is malformed
        """
        database_id = self._database_id()
        if not database_id:
            raise NotionConfigurationError("No conversation database configured")

        try:
            data = ConversationData.model_validate(conversation_data or {})
        except ValidationError as e:
            raise ToolInputError(f"Invalid conversation data: {e}")

        messages = data.messages
        title = title or generate_title(messages)
        languages = detect_languages(messages)

        properties: Dict[str, Any] = {
            "Title": {"title": rich_text(title)},
            "Conversation ID": {
                "rich_text": rich_text(generate_conversation_id(data.metadata.get("startTime")))
            },
            "Export Date": {"date": {"start": datetime.now(timezone.utc).isoformat()}},
            "Message Count": {"number": len(messages)},
            "Code Snippets Present": {"checkbox": has_code_snippets(messages)},
            "Languages Mentioned": {"multi_select": [{"name": lang} for lang in languages]},
        }
        if tags:
            properties["Tags"] = {"multi_select": [{"name": tag} for tag in tags]}

        blocks = format_conversation_blocks(messages)
        batches = list(chunk_list(blocks, MAX_BLOCKS_PER_REQUEST)) or [[]]

        page = self.client.create_page({
            "parent": {"database_id": database_id},
            "properties": properties,
            "children": batches[0],
        })
        for batch in batches[1:]:
            self.client.append_block_children(page["id"], batch)

        logger.info(f"Exported conversation '{title}' ({len(messages)} messages) to {page['id']}")
        return {
            "id": page["id"],
            "url": page.get("url"),
            "title": title,
            "messageCount": len(messages),
            "blockCount": len(blocks),
            "languages": languages,
        }
