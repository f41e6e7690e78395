"""
Helper functions for shaping Notion API data.

This module provides:
- ID and URL parsing
- Rich text, property and block extraction
- Builders for rich text, blocks, icons and covers
- Markdown to block conversion and content chunking
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

# Notion limits
MAX_RICH_TEXT_LENGTH = 2000
MAX_CHUNK_SIZE = 50000
MAX_BLOCKS_PER_REQUEST = 100

NOTION_ID_PATTERN = re.compile(r"^[a-f0-9-]{32,36}$", re.IGNORECASE)
_URL_ID_PATTERN = re.compile(r"([a-f0-9]{32}|[a-f0-9-]{36})", re.IGNORECASE)
_NUMBERED_ITEM = re.compile(r"^\d+\.\s")


# =============================================================================
# IDs
# =============================================================================


def is_notion_id(value: str) -> bool:
    """Check whether a string looks like a Notion UUID (dashed or not)."""
    return bool(NOTION_ID_PATTERN.match(value or ""))


def parse_page_id(value: str) -> str:
    """
    Extract a Notion ID from a URL, or normalize a raw ID.

    Accepts notion.so / notion.site URLs as well as IDs with or
    without dashes.

    Args:
        value: Page URL or ID

    Returns:
        ID as found in the URL, or the raw ID without dashes
    """
    if "notion.so" in value or "notion.site" in value:
        match = _URL_ID_PATTERN.search(value)
        if match:
            return match.group(1)
    return normalize_notion_id(value)


def normalize_notion_id(notion_id: str) -> str:
    """
    Normalize a Notion ID by removing dashes if present.

    Args:
        notion_id: Notion object ID (with or without dashes)

    Returns:
        ID without dashes
    """
    return notion_id.replace("-", "")


def same_notion_id(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two IDs ignoring dashes and case."""
    if not a or not b:
        return False
    return normalize_notion_id(a).lower() == normalize_notion_id(b).lower()


# =============================================================================
# Extraction
# =============================================================================


def format_datetime_for_api(dt: Optional[datetime]) -> Optional[str]:
    """
    Format a datetime object for Notion API requests.

    Args:
        dt: Datetime object to format

    Returns:
        ISO 8601 formatted string or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.isoformat()


def extract_plain_text(rich_text_array: Optional[List[Dict[str, Any]]]) -> str:
    """
    Extract plain text from Notion's rich text array format.

    Falls back to ``text.content`` for rich text built locally.

    Args:
        rich_text_array: List of rich text objects

    Returns:
        Concatenated plain text string
    """
    if not rich_text_array:
        return ""

    return "".join(
        item.get("plain_text") or item.get("text", {}).get("content", "")
        for item in rich_text_array
    )


def extract_title(obj: Dict[str, Any]) -> str:
    """
    Extract the title of a page or database object.

    Databases carry a top-level ``title`` array; pages carry a property
    of type ``title`` whose name varies ("title", "Name", ...).
    """
    if obj.get("object") == "database":
        return extract_plain_text(obj.get("title", []))

    for prop in (obj.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return extract_plain_text(prop.get("title", []))
    return ""


def extract_property_value(property_data: Dict[str, Any]) -> Any:
    """
    Extract the value from a Notion property object.

    Notion properties have different structures based on type.
    This function normalizes them to simple Python values.

    Args:
        property_data: Property object from Notion API

    Returns:
        Extracted value in appropriate Python type
    """
    if not property_data:
        return None

    prop_type = property_data.get("type")

    if prop_type == "title":
        return extract_plain_text(property_data.get("title", []))

    elif prop_type == "rich_text":
        return extract_plain_text(property_data.get("rich_text", []))

    elif prop_type == "number":
        return property_data.get("number")

    elif prop_type == "select":
        select_data = property_data.get("select")
        return select_data.get("name") if select_data else None

    elif prop_type == "multi_select":
        return [item.get("name") for item in property_data.get("multi_select", [])]

    elif prop_type == "date":
        date_data = property_data.get("date")
        return date_data.get("start") if date_data else None

    elif prop_type == "people":
        return [person.get("name") or person.get("id") for person in property_data.get("people", [])]

    elif prop_type == "files":
        files = []
        for file_obj in property_data.get("files", []):
            file_type = file_obj.get("type")
            files.append(file_obj.get(file_type, {}).get("url"))
        return files

    elif prop_type in ("checkbox", "url", "email", "phone_number"):
        return property_data.get(prop_type)

    elif prop_type in ("formula", "rollup"):
        data = property_data.get(prop_type, {})
        return data.get(data.get("type"))

    elif prop_type == "relation":
        return [rel.get("id") for rel in property_data.get("relation", [])]

    elif prop_type == "status":
        status_data = property_data.get("status")
        return status_data.get("name") if status_data else None

    elif prop_type in ("created_by", "last_edited_by"):
        return property_data.get(prop_type, {}).get("id")

    elif prop_type == "unique_id":
        unique_id_data = property_data.get("unique_id", {})
        prefix = unique_id_data.get("prefix", "")
        number = unique_id_data.get("number", "")
        return f"{prefix}-{number}" if prefix else str(number)

    else:
        # created_time, last_edited_time and unknown types
        return property_data.get(prop_type)


def flatten_properties(properties: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Flatten Notion properties into a simple key-value dictionary.

    Args:
        properties: Properties object from Notion page/database

    Returns:
        Flattened dictionary with property names as keys
    """
    return {
        name: extract_property_value(prop_data)
        for name, prop_data in properties.items()
    }


def extract_block_content(block: Dict[str, Any]) -> str:
    """Render a block's content as a short plain-text string."""
    block_type = block.get("type", "")
    content = block.get(block_type) or {}

    if block_type == "to_do":
        checked = "[x] " if content.get("checked") else "[ ] "
        return checked + extract_plain_text(content.get("rich_text", []))
    if "rich_text" in content:
        return extract_plain_text(content["rich_text"])
    if block_type == "image":
        caption = extract_plain_text(content.get("caption", []))
        return caption or "[Image]"
    if block_type == "divider":
        return "---"
    if block_type == "bookmark":
        return content.get("url") or "[Bookmark]"
    if block_type == "file":
        return content.get("name") or "[File]"
    return f"[{block_type}]"


# =============================================================================
# Builders
# =============================================================================


def rich_text(content: str) -> List[Dict[str, Any]]:
    """Build a single-segment rich text array."""
    return [{"type": "text", "text": {"content": content}}]


def text_block(block_type: str, content: str, **extra: Any) -> Dict[str, Any]:
    """Build a block whose payload is a rich text array."""
    return {
        "object": "block",
        "type": block_type,
        block_type: {"rich_text": rich_text(content), **extra},
    }


def text_blocks(block_type: str, content: str, **extra: Any) -> List[Dict[str, Any]]:
    """Build one block per chunk so no rich text segment exceeds the API limit."""
    return [
        text_block(block_type, chunk, **extra)
        for chunk in chunk_text(content, MAX_RICH_TEXT_LENGTH)
    ]


def divider_block() -> Dict[str, Any]:
    return {"object": "block", "type": "divider", "divider": {}}


def build_icon(icon: Optional[str]) -> Optional[Dict[str, Any]]:
    """Build an icon object: URLs become external icons, anything else an emoji."""
    if not icon:
        return None
    if icon.startswith("http"):
        return {"type": "external", "external": {"url": icon}}
    return {"type": "emoji", "emoji": icon}


def build_cover(url: Optional[str]) -> Optional[Dict[str, Any]]:
    if not url:
        return None
    return {"type": "external", "external": {"url": url}}


def build_filter_condition(
    property_name: str,
    property_type: str,
    condition: str,
    value: Any
) -> Dict[str, Any]:
    """
    Build a Notion filter condition for database queries.

    Args:
        property_name: Name of the property to filter on
        property_type: Type of the property (e.g., 'select', 'title')
        condition: Filter condition (e.g., 'equals', 'contains')
        value: Value to compare against

    Returns:
        Filter condition dict for Notion API
    """
    return {
        "property": property_name,
        property_type: {
            condition: value
        }
    }


def normalize_sorts(sorts: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    """
    Normalize sort specs into Notion's two accepted shapes.

    Timestamp sorts default to descending, property sorts to ascending.
    """
    if not sorts:
        return None

    normalized = []
    for sort in sorts:
        if sort.get("timestamp"):
            normalized.append({
                "timestamp": sort["timestamp"],
                "direction": sort.get("direction") or "descending",
            })
        else:
            normalized.append({
                "property": sort.get("property"),
                "direction": sort.get("direction") or "ascending",
            })
    return normalized


# =============================================================================
# Markdown and chunking
# =============================================================================


def markdown_to_blocks(markdown: str) -> List[Dict[str, Any]]:
    """
    Convert a small markdown subset into Notion blocks.

    Supports headings (#, ##, ###), bulleted, numbered and to-do list
    items, quotes, fenced code blocks and dividers. Other non-empty lines
    become paragraphs.
    """
    blocks: List[Dict[str, Any]] = []
    lines = markdown.split("\n")
    i = 0

    while i < len(lines):
        line = lines[i]
        i += 1

        if not line.strip():
            continue

        if line.startswith("### "):
            blocks.extend(text_blocks("heading_3", line[4:]))
        elif line.startswith("## "):
            blocks.extend(text_blocks("heading_2", line[3:]))
        elif line.startswith("# "):
            blocks.extend(text_blocks("heading_1", line[2:]))
        elif line.startswith("- [ ] ") or line.startswith("- [x] "):
            blocks.extend(
                text_blocks("to_do", line[6:], checked=line.startswith("- [x] "))
            )
        elif line.startswith("- ") or line.startswith("* "):
            blocks.extend(text_blocks("bulleted_list_item", line[2:]))
        elif _NUMBERED_ITEM.match(line):
            item = _NUMBERED_ITEM.sub("", line, count=1)
            blocks.extend(text_blocks("numbered_list_item", item))
        elif line.startswith("> "):
            blocks.extend(text_blocks("quote", line[2:]))
        elif line.startswith("```"):
            language = line[3:].strip() or "plain text"
            code_lines = []
            while i < len(lines) and not lines[i].startswith("```"):
                code_lines.append(lines[i])
                i += 1
            i += 1  # closing fence
            code = "\n".join(code_lines)
            blocks.extend(text_blocks("code", code, language=language))
        elif line in ("---", "***"):
            blocks.append(divider_block())
        else:
            blocks.extend(text_blocks("paragraph", line))

    return blocks


def chunk_text(content: str, chunk_size: int = MAX_CHUNK_SIZE) -> List[str]:
    """
    Split text into chunks no longer than ``chunk_size``.

    Splits prefer a paragraph break, then a line break, as long as the
    break falls in the second half of the chunk; otherwise the text is cut
    at ``chunk_size``. Leading whitespace of each following chunk is dropped.
    """
    if len(content) <= chunk_size:
        return [content]

    chunks = []
    remaining = content

    while remaining:
        if len(remaining) <= chunk_size:
            chunks.append(remaining)
            break

        split_index = remaining.rfind("\n\n", 0, chunk_size + 1)
        if split_index == -1 or split_index < chunk_size * 0.5:
            split_index = remaining.rfind("\n", 0, chunk_size + 1)
        if split_index == -1 or split_index < chunk_size * 0.5:
            split_index = chunk_size

        chunks.append(remaining[:split_index])
        remaining = remaining[split_index:].lstrip()

    return chunks


def chunked_paragraph_blocks(content: str) -> List[Dict[str, Any]]:
    """Convert long plain content into paragraphs within the rich text limit."""
    return text_blocks("paragraph", content)


def chunk_list(items: List[Any], chunk_size: int) -> Iterator[List[Any]]:
    """
    Split a list into chunks of specified size.

    Args:
        items: List to split
        chunk_size: Maximum size of each chunk

    Yields:
        Consecutive slices of ``items``
    """
    for i in range(0, len(items), chunk_size):
        yield items[i:i + chunk_size]


def safe_get_nested(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """
    Safely get a nested value from a dictionary.

    Args:
        data: Dictionary to traverse
        *keys: Keys to follow in order
        default: Default value if key path doesn't exist

    Returns:
        Value at the key path or default
    """
    current = data
    for key in keys:
        if isinstance(current, dict):
            current = current.get(key)
        else:
            return default
        if current is None:
            return default
    return current
