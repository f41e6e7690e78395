"""
Project tracking on top of the project database.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union
from datetime import date, datetime

from dateutil import parser as date_parser

from .errors import NotionConfigurationError, ToolInputError
from .utils import (
    build_filter_condition,
    extract_property_value,
    is_notion_id,
    parse_page_id,
    rich_text,
)

logger = logging.getLogger(__name__)

PROJECT_STATUSES = ["Active", "Planning", "On Hold", "Completed", "Archived"]
DEFAULT_PROJECT_STATUS = "Planning"

SORT_PROPERTIES = {
    "name": ("Project Name", "ascending"),
    "date": ("Start Date", "descending"),
    "status": ("Status", "ascending"),
    "activity": ("Last Activity", "descending"),
}

DateInput = Union[str, date, datetime, None]


def to_notion_date(value: DateInput) -> Optional[str]:
    """
    Convert a date-like value into a Notion date string (YYYY-MM-DD).

    Raises:
        ToolInputError: If a string cannot be parsed as a date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date_parser.parse(value).date().isoformat()
    except (ValueError, OverflowError) as e:
        raise ToolInputError(f"Invalid date '{value}': {e}")


def build_project_properties(
    name: Optional[str] = None,
    status: Optional[str] = None,
    description: Optional[str] = None,
    technologies: Optional[List[str]] = None,
    github_repo: Optional[str] = None,
    start_date: DateInput = None,
    target_completion: DateInput = None
) -> Dict[str, Any]:
    """Build page properties for the fields that were given."""
    properties: Dict[str, Any] = {}

    if name:
        properties["Project Name"] = {"title": rich_text(name)}
    if status:
        properties["Status"] = {"select": {"name": status}}
    if description:
        properties["Description"] = {"rich_text": rich_text(description)}
    if technologies is not None:
        properties["Key Technologies"] = {
            "multi_select": [{"name": tech} for tech in technologies]
        }
    if github_repo:
        properties["GitHub Repository"] = {"url": github_repo}

    start = to_notion_date(start_date)
    if start:
        properties["Start Date"] = {"date": {"start": start}}
    target = to_notion_date(target_completion)
    if target:
        properties["Target Completion"] = {"date": {"start": target}}

    return properties


def parse_project(page: Dict[str, Any]) -> Dict[str, Any]:
    """Summarize a project page."""
    props = page.get("properties", {})

    def value(name: str) -> Any:
        return extract_property_value(props.get(name, {}))

    return {
        "id": page.get("id"),
        "url": page.get("url"),
        "name": value("Project Name") or "Untitled",
        "status": value("Status"),
        "description": value("Description"),
        "technologies": value("Key Technologies") or [],
        "githubRepo": value("GitHub Repository"),
        "startDate": value("Start Date"),
        "targetCompletion": value("Target Completion"),
        "lastActivity": value("Last Activity"),
    }


class ProjectManager:
    """
    Lists, creates and updates projects.

    ``database_id`` is read on every call so a later discovery run is
    picked up without rebuilding the manager.
    """

    def __init__(self, client: Any, database_id: Callable[[], Optional[str]]):
        self.client = client
        self._database_id = database_id

    @property
    def database_id(self) -> str:
        database_id = self._database_id()
        if not database_id:
            raise NotionConfigurationError("No project database configured")
        return database_id

    def list_projects(
        self,
        status: Optional[str] = None,
        sort_by: str = "name",
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        filter = build_filter_condition("Status", "select", "equals", status) if status else None
        prop, direction = SORT_PROPERTIES.get(sort_by, SORT_PROPERTIES["name"])

        response = self.client.query_database(
            self.database_id,
            filter=filter,
            sorts=[{"property": prop, "direction": direction}],
            page_size=limit
        )
        return [parse_project(page) for page in response.get("results", [])]

    def create_project(
        self,
        name: str,
        status: Optional[str] = None,
        description: Optional[str] = None,
        technologies: Optional[List[str]] = None,
        github_repo: Optional[str] = None,
        start_date: DateInput = None,
        target_completion: DateInput = None
    ) -> Dict[str, Any]:
        if not name or not name.strip():
            raise ToolInputError("Project name is required")

        properties = build_project_properties(
            name=name,
            status=status or DEFAULT_PROJECT_STATUS,
            description=description,
            technologies=technologies,
            github_repo=github_repo,
            start_date=start_date,
            target_completion=target_completion,
        )
        page = self.client.create_page({
            "parent": {"database_id": self.database_id},
            "properties": properties,
        })
        logger.info(f"Created project '{name}': {page.get('id')}")
        return parse_project(page)

    def find_project_id(self, name_or_id: str) -> str:
        """
        Resolve a project ID from an ID, a Notion URL or a name fragment.

        Raises:
            ToolInputError: If no project title contains ``name_or_id``
        """
        if is_notion_id(name_or_id) or "notion.so" in name_or_id:
            return parse_page_id(name_or_id)

        response = self.client.query_database(
            self.database_id,
            filter=build_filter_condition("Project Name", "title", "contains", name_or_id),
            page_size=1
        )
        results = response.get("results", [])
        if not results:
            raise ToolInputError(f"Project not found: {name_or_id}")
        return results[0]["id"]

    def update_project(self, project: str, **fields: Any) -> Dict[str, Any]:
        """
        Update a project found by ID or name.

        Keyword arguments are those of ``build_project_properties``.
        """
        page_id = self.find_project_id(project)
        properties = build_project_properties(**fields)
        if not properties:
            raise ToolInputError("No project fields to update")

        page = self.client.update_page(page_id, {"properties": properties})
        logger.info(f"Updated project {page_id}: {sorted(properties)}")
        return parse_project(page)

    def link_conversation(
        self,
        conversation_id: str,
        project: str,
        notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """Set a conversation's Associated Project relation, optionally commenting notes."""
        conversation_page = parse_page_id(conversation_id)
        project_id = self.find_project_id(project)

        self.client.update_page(conversation_page, {
            "properties": {
                "Associated Project": {"relation": [{"id": project_id}]},
            }
        })
        if notes:
            self.client.create_comment({
                "parent": {"page_id": conversation_page},
                "rich_text": rich_text(notes),
            })

        return {"conversationId": conversation_page, "projectId": project_id}
