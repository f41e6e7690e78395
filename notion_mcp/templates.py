"""
Database schemas used by templates and database discovery.
"""

from copy import deepcopy
from typing import Any, Dict, List, Optional, Tuple

from .errors import ToolInputError


def _options(*pairs: Tuple[str, str]) -> Dict[str, List[Dict[str, str]]]:
    return {"options": [{"name": name, "color": color} for name, color in pairs]}


DATABASE_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "document_scanner": {
        "Name": {"title": {}},
        "File Path": {"rich_text": {}},
        "Upload Date": {"date": {}},
        "File Size": {"rich_text": {}},
        "Document Type": {"select": _options(
            ("Invoice", "blue"), ("Receipt", "green"),
            ("Contract", "red"), ("Scan", "purple"),
        )},
        "Status": {"select": _options(
            ("New", "blue"), ("Processed", "green"), ("Archived", "gray"),
        )},
        "Notes": {"rich_text": {}},
    },
    "project_tracker": {
        "Name": {"title": {}},
        "Status": {"select": _options(
            ("Planning", "blue"), ("In Progress", "yellow"),
            ("Completed", "green"), ("On Hold", "red"),
        )},
        "Description": {"rich_text": {}},
        "Start Date": {"date": {}},
        "Due Date": {"date": {}},
        "Priority": {"select": _options(
            ("Low", "gray"), ("Medium", "yellow"), ("High", "red"),
        )},
    },
    "meeting_notes": {
        "Name": {"title": {}},
        "Meeting Date": {"date": {}},
        "Attendees": {"people": {}},
        "Meeting Type": {"select": _options(
            ("Standup", "blue"), ("Planning", "green"),
            ("Review", "purple"), ("One-on-One", "yellow"),
        )},
        "Action Items": {"rich_text": {}},
        "Follow-up Required": {"checkbox": {}},
    },
    "task_management": {
        "Name": {"title": {}},
        "Status": {"select": _options(
            ("To Do", "gray"), ("In Progress", "blue"),
            ("Blocked", "red"), ("Done", "green"),
        )},
        "Priority": {"select": _options(
            ("Low", "gray"), ("Medium", "yellow"), ("High", "red"),
        )},
        "Assignee": {"people": {}},
        "Due Date": {"date": {}},
        "Tags": {"multi_select": {"options": []}},
    },
}

CONVERSATION_DATABASE_TITLE = "Gemini Conversations"
PROJECT_DATABASE_TITLE = "Projects"

CONVERSATION_DATABASE_PROPERTIES: Dict[str, Any] = {
    "Title": {"title": {}},
    "Conversation ID": {"rich_text": {}},
    "Export Date": {"date": {}},
    "Message Count": {"number": {}},
    "Tags": {"multi_select": _options(
        ("development", "blue"), ("documentation", "green"),
        ("debugging", "red"), ("learning", "purple"),
    )},
    "Code Snippets Present": {"checkbox": {}},
    "Languages Mentioned": {"multi_select": _options(
        ("TypeScript", "blue"), ("JavaScript", "yellow"),
        ("Python", "blue"), ("Java", "red"),
    )},
}

PROJECT_DATABASE_PROPERTIES: Dict[str, Any] = {
    "Project Name": {"title": {}},
    "Status": {"select": _options(
        ("Active", "green"), ("Planning", "blue"), ("On Hold", "yellow"),
        ("Completed", "gray"), ("Archived", "red"),
    )},
    "Description": {"rich_text": {}},
    "Start Date": {"date": {}},
    "Target Completion": {"date": {}},
    "Key Technologies": {"multi_select": {"options": []}},
    "GitHub Repository": {"url": {}},
    "Last Activity": {"date": {}},
}


def template_names() -> List[str]:
    return sorted(DATABASE_TEMPLATES)


def get_template(name: str) -> Dict[str, Any]:
    """
    Return a copy of a template's property schema.

    Raises:
        ToolInputError: If the template is unknown
    """
    if name not in DATABASE_TEMPLATES:
        raise ToolInputError(
            f"Unknown template: {name}. Available: {', '.join(template_names())}"
        )
    return deepcopy(DATABASE_TEMPLATES[name])


def property_schema(prop_type: str, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build a database property schema for a property type.

    Args:
        prop_type: Notion property type (e.g. "select", "number")
        config: Optional extra settings such as ``options`` or ``format``

    Returns:
        Property schema object for databases.create / databases.update
    """
    config = config or {}

    if prop_type == "number":
        return {"number": {"format": config.get("format", "number")}}
    if prop_type in ("select", "multi_select"):
        return {prop_type: {"options": config.get("options", [])}}
    if prop_type == "status":
        return {"status": {
            "options": config.get("options", []),
            "groups": config.get("groups", []),
        }}
    if prop_type in (
        "title", "rich_text", "date", "checkbox", "url",
        "email", "phone_number", "people", "files",
    ):
        return {prop_type: {}}
    if "options" in config:
        return {prop_type: {"options": config["options"]}}
    return {prop_type: {}}
