"""
Tool operations exposed by the MCP server.

This module provides:
- NotionTools, one method per tool, returning JSON-serializable dicts
- run_tool, the boundary that turns exceptions into tool error payloads

Every Notion call goes through the NotionClient, so it is admitted by the
shared token bucket and retried by the RetryOrchestrator.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from mcp.server.fastmcp.exceptions import ToolError
from pydantic import ValidationError

from .cache import DatabaseCache
from .client import NotionClient
from .config import CONVERSATIONS_SHORTCUT, PROJECTS_SHORTCUT, ServerConfig
from .conversations import ConversationExporter
from .discovery import DatabaseDiscovery
from .errors import NotionConfigurationError, ToolInputError, error_payload
from .projects import ProjectManager
from .rate_limiter import Clock, TokenBucket
from .templates import get_template, property_schema
from .usage import UsageTracker
from .utils import (
    MAX_BLOCKS_PER_REQUEST,
    MAX_CHUNK_SIZE,
    build_cover,
    build_icon,
    chunk_list,
    chunked_paragraph_blocks,
    extract_block_content,
    extract_plain_text,
    extract_title,
    flatten_properties,
    markdown_to_blocks,
    normalize_sorts,
    parse_page_id,
    rich_text,
    safe_get_nested,
    same_notion_id,
    text_block,
)
from .watcher import FileWatcherRegistry, WatcherConfig, build_file_page, scan_folder_for_files

logger = logging.getLogger(__name__)

SEARCH_FILTERS = ("page", "database")
MAX_RECURSION_DEPTH = 3
MAX_PAGE_BLOCKS = 500

# Property types Notion computes; they cannot be written when copying a page
READ_ONLY_PROPERTY_TYPES = {
    "formula", "rollup", "created_time", "created_by",
    "last_edited_time", "last_edited_by", "unique_id", "verification",
}
# Block types that cannot be recreated through the children endpoints
UNCOPYABLE_BLOCK_TYPES = {"child_page", "child_database", "unsupported", "link_preview"}


def run_tool(name: str, operation: Callable[[], Any]) -> str:
    """
    Run a tool operation and serialize its result.

    Raises:
        ToolError: With message ``{"error": ..., "kind": ...}`` for any failure
    """
    try:
        result = operation()
    except ToolError:
        raise
    except Exception as e:
        logger.error(f"Tool error [{name}]: {e}")
        raise ToolError(json.dumps(error_payload(e))) from e
    return json.dumps(result, indent=2, ensure_ascii=False, default=str)


def summarize_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Compact view of a page or database search result."""
    return {
        "id": obj.get("id"),
        "type": obj.get("object"),
        "title": extract_title(obj),
        "url": obj.get("url"),
        "lastEdited": obj.get("last_edited_time"),
    }


def summarize_page(page: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": page.get("id"),
        "url": page.get("url"),
        "lastEdited": page.get("last_edited_time"),
        "properties": flatten_properties(page.get("properties", {})),
    }


def summarize_block(block: Dict[str, Any]) -> Dict[str, Any]:
    summary = {
        "id": block.get("id"),
        "type": block.get("type"),
        "content": extract_block_content(block),
        "hasChildren": block.get("has_children", False),
    }
    if "children" in block:
        summary["children"] = [summarize_block(child) for child in block["children"]]
    return summary


def _search_filter(filter: Optional[str]) -> Optional[str]:
    if not filter or filter == "all":
        return None
    if filter not in SEARCH_FILTERS:
        raise ToolInputError(f"filter must be one of: all, page, database (got {filter})")
    return filter


def _copyable_block(block: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    block_type = block.get("type")
    if not block_type or block_type in UNCOPYABLE_BLOCK_TYPES:
        return None
    return {"object": "block", "type": block_type, block_type: block.get(block_type, {})}


def _writable_properties(properties: Dict[str, Any]) -> Dict[str, Any]:
    writable = {}
    for name, prop in properties.items():
        prop_type = prop.get("type")
        if prop_type and prop_type not in READ_ONLY_PROPERTY_TYPES:
            writable[name] = {prop_type: prop.get(prop_type)}
    return writable


class NotionTools:
    """
    Implementation of every tool.

    Holds the conversation/project database IDs resolved at startup; a
    ``discover_databases`` run refreshes them.
    """

    def __init__(
        self,
        client: NotionClient,
        config: ServerConfig,
        watchers: FileWatcherRegistry,
        usage: UsageTracker,
        rate_limiter: Optional[TokenBucket] = None,
        cache: Optional[DatabaseCache] = None,
        clock: Optional[Clock] = None
    ):
        self.client = client
        self.config = config
        self.watchers = watchers
        self.usage = usage
        self.rate_limiter = rate_limiter
        self.cache = cache or DatabaseCache(config.cache_file)
        self.clock = clock or Clock()

        self.conversation_db_id = config.conversation_database_id
        self.project_db_id = config.project_database_id

        self.projects = ProjectManager(client, lambda: self.project_db_id)
        self.conversations = ConversationExporter(client, lambda: self.conversation_db_id)

    def load_cached_databases(self) -> None:
        """Fill database IDs not set in the config from the cache file."""
        data = self.cache.load()
        self.conversation_db_id = self.conversation_db_id or data.conversation_db_id
        self.project_db_id = self.project_db_id or data.project_db_id

        if not self.conversation_db_id:
            logger.warning("No conversation database configured")
        if not self.project_db_id:
            logger.warning("No project database configured")

    def resolve_database_id(self, database_id: str) -> str:
        """
        Resolve the "conversations"/"projects" shortcuts or parse an ID/URL.

        Raises:
            NotionConfigurationError: If a shortcut's database is not configured
        """
        if database_id == CONVERSATIONS_SHORTCUT:
            if not self.conversation_db_id:
                raise NotionConfigurationError("No conversation database configured")
            return self.conversation_db_id
        if database_id == PROJECTS_SHORTCUT:
            if not self.project_db_id:
                raise NotionConfigurationError("No project database configured")
            return self.project_db_id
        if not database_id:
            raise ToolInputError("database_id is required")
        return parse_page_id(database_id)

    def _title_property(self, database_id: str) -> str:
        database = self.client.get_database(database_id)
        for name, prop in database.get("properties", {}).items():
            if prop.get("type") == "title":
                return name
        return "Name"

    def _append_in_batches(self, block_id: str, blocks: List[Dict[str, Any]]) -> int:
        added = 0
        for batch in chunk_list(blocks, MAX_BLOCKS_PER_REQUEST):
            self.client.append_block_children(block_id, batch)
            added += len(batch)
            if len(blocks) > MAX_BLOCKS_PER_REQUEST:
                logger.info(f"Batch append: {added}/{len(blocks)} blocks")
        return added

    def _create_page_with_blocks(
        self,
        body: Dict[str, Any],
        blocks: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Create a page with its first 100 blocks, appending the rest."""
        page = self.client.create_page({**body, "children": blocks[:MAX_BLOCKS_PER_REQUEST]})
        if len(blocks) > MAX_BLOCKS_PER_REQUEST:
            self._append_in_batches(page["id"], blocks[MAX_BLOCKS_PER_REQUEST:])
        return page

    # =========================================================================
    # Search
    # =========================================================================

    def notion_search(
        self,
        query: str = "",
        filter: str = "all",
        limit: int = 20
    ) -> Dict[str, Any]:
        response = self.client.search(
            query=query or None,
            filter_object=_search_filter(filter),
            page_size=limit
        )
        results = [summarize_object(r) for r in response.get("results", [])]
        return {"count": len(results), "results": results}

    def advanced_search(self, query: str, include_analytics: bool = False) -> Dict[str, Any]:
        response = self.client.search(query=query or None, page_size=50)
        results = response.get("results", [])

        payload: Dict[str, Any] = {
            "query": query,
            "results": [summarize_object(r) for r in results],
        }
        if include_analytics:
            payload["analytics"] = {
                "totalResults": len(results),
                "pageCount": sum(1 for r in results if r.get("object") == "page"),
                "databaseCount": sum(1 for r in results if r.get("object") == "database"),
                "hasMore": response.get("has_more", False),
                "searchTime": datetime.now(timezone.utc).isoformat(),
            }
        return payload

    def get_recent_changes(self, filter: str = "all", limit: int = 20) -> Dict[str, Any]:
        response = self.client.search(
            filter_object=_search_filter(filter),
            sort={"direction": "descending", "timestamp": "last_edited_time"},
            page_size=limit
        )
        results = [summarize_object(r) for r in response.get("results", [])]
        return {"count": len(results), "results": results}

    # =========================================================================
    # Pages
    # =========================================================================

    def create_page(
        self,
        title: str,
        content: Optional[str] = None,
        parent_database_id: Optional[str] = None,
        parent_page_id: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
        icon: Optional[str] = None,
        cover: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a page under a database or a page.

        For database parents the title goes into the database's title
        property and ``properties`` are merged in.
        """
        if parent_database_id:
            database_id = self.resolve_database_id(parent_database_id)
            parent = {"database_id": database_id}
            page_properties = {
                self._title_property(database_id): {"title": rich_text(title)},
                **(properties or {}),
            }
        elif parent_page_id:
            parent = {"page_id": parse_page_id(parent_page_id)}
            page_properties = {"title": {"title": rich_text(title)}}
        else:
            raise ToolInputError("Either parent_database_id or parent_page_id is required")

        body: Dict[str, Any] = {"parent": parent, "properties": page_properties}
        if icon:
            body["icon"] = build_icon(icon)
        if cover:
            body["cover"] = build_cover(cover)

        blocks = markdown_to_blocks(content) if content else []
        page = self._create_page_with_blocks(body, blocks)
        return {"id": page["id"], "url": page.get("url"), "message": "Page created successfully"}

    def get_page(self, page_id: str, include_content: bool = True) -> Dict[str, Any]:
        page_id = parse_page_id(page_id)
        page = self.client.get_page(page_id)

        result = {
            "id": page.get("id"),
            "url": page.get("url"),
            "title": extract_title(page),
            "archived": page.get("archived", False),
            "lastEdited": page.get("last_edited_time"),
            "properties": flatten_properties(page.get("properties", {})),
        }
        if include_content:
            blocks = list(self.client.iter_block_children(page_id, limit=MAX_PAGE_BLOCKS))
            result["content"] = [summarize_block(b) for b in blocks]
        return result

    def update_page(
        self,
        page_id: str,
        title: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
        icon: Optional[str] = None,
        cover: Optional[str] = None,
        archived: Optional[bool] = None
    ) -> Dict[str, Any]:
        page_id = parse_page_id(page_id)
        body: Dict[str, Any] = {}

        page_properties = dict(properties or {})
        if title:
            current = self.client.get_page(page_id)
            title_name = next(
                (name for name, prop in current.get("properties", {}).items()
                 if prop.get("type") == "title"),
                "title"
            )
            page_properties[title_name] = {"title": rich_text(title)}
        if page_properties:
            body["properties"] = page_properties
        if icon:
            body["icon"] = build_icon(icon)
        if cover:
            body["cover"] = build_cover(cover)
        if archived is not None:
            body["archived"] = archived

        if not body:
            raise ToolInputError("Nothing to update")

        page = self.client.update_page(page_id, body)
        return {"id": page.get("id"), "url": page.get("url"), "message": "Page updated successfully"}

    def _set_archived(self, page_id: str, archived: bool) -> Dict[str, Any]:
        page = self.client.update_page(parse_page_id(page_id), {"archived": archived})
        return {"id": page.get("id"), "archived": archived}

    def delete_page(self, page_id: str) -> Dict[str, Any]:
        result = self._set_archived(page_id, True)
        result["message"] = "Page archived (deleted)"
        return result

    def archive_page(self, page_id: str) -> Dict[str, Any]:
        result = self._set_archived(page_id, True)
        result["message"] = "Page archived successfully"
        return result

    def restore_page(self, page_id: str) -> Dict[str, Any]:
        result = self._set_archived(page_id, False)
        result["message"] = "Page restored successfully"
        return result

    def duplicate_page(
        self,
        page_id: str,
        target_parent_id: Optional[str] = None,
        new_title: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Copy a page's properties and top-level blocks to a new page.

        Child pages and child databases are not copied.
        """
        source_id = parse_page_id(page_id)
        source = self.client.get_page(source_id)
        blocks = [
            copy for copy in (
                _copyable_block(b) for b in self.client.iter_block_children(source_id)
            )
            if copy is not None
        ]

        parent_info = source.get("parent", {})
        parent_type = parent_info.get("type")
        title = new_title or f"{extract_title(source)} (Copy)"

        if parent_type == "database_id":
            target = parse_page_id(target_parent_id) if target_parent_id else parent_info["database_id"]
            parent = {"database_id": target}
            properties = _writable_properties(source.get("properties", {}))
            for name, prop in source.get("properties", {}).items():
                if prop.get("type") == "title":
                    properties[name] = {"title": rich_text(title)}
        else:
            if target_parent_id:
                target = parse_page_id(target_parent_id)
            elif parent_type == "page_id":
                target = parent_info["page_id"]
            else:
                raise ToolInputError("target_parent_id is required for top-level pages")
            parent = {"page_id": target}
            properties = {"title": {"title": rich_text(title)}}

        body: Dict[str, Any] = {"parent": parent, "properties": properties}
        if source.get("icon"):
            body["icon"] = source["icon"]
        if source.get("cover"):
            body["cover"] = source["cover"]

        page = self._create_page_with_blocks(body, blocks)
        return {
            "id": page["id"],
            "url": page.get("url"),
            "blocksCopied": len(blocks),
            "message": "Page duplicated",
        }

    # =========================================================================
    # Databases
    # =========================================================================

    def list_databases(self, limit: int = 50) -> Dict[str, Any]:
        response = self.client.search(filter_object="database", page_size=limit)
        databases = [
            {
                "id": db.get("id"),
                "title": extract_title(db),
                "url": db.get("url"),
                "properties": list(db.get("properties", {}).keys()),
                "lastEdited": db.get("last_edited_time"),
                "isConversationDb": same_notion_id(db.get("id"), self.conversation_db_id),
                "isProjectDb": same_notion_id(db.get("id"), self.project_db_id),
            }
            for db in response.get("results", [])
        ]
        return {"count": len(databases), "databases": databases}

    def get_database(self, database_id: str) -> Dict[str, Any]:
        database = self.client.get_database(self.resolve_database_id(database_id))
        return {
            "id": database.get("id"),
            "title": extract_title(database),
            "url": database.get("url"),
            "properties": database.get("properties", {}),
            "lastEdited": database.get("last_edited_time"),
        }

    def query_database(
        self,
        database_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        limit: int = 100
    ) -> Dict[str, Any]:
        """
        Query a database; limits above 100 paginate automatically.
        """
        database_id = self.resolve_database_id(database_id)
        sorts = normalize_sorts(sorts)

        if limit > 100:
            pages = list(self.client.iter_database_pages(
                database_id, filter=filter, sorts=sorts, limit=limit
            ))
            has_more = None
        else:
            response = self.client.query_database(
                database_id, filter=filter, sorts=sorts, page_size=limit
            )
            pages = response.get("results", [])
            has_more = response.get("has_more", False)

        results = [summarize_page(p) for p in pages]
        payload: Dict[str, Any] = {"count": len(results), "results": results}
        if has_more is not None:
            payload["hasMore"] = has_more
        return payload

    def create_database(
        self,
        parent_page_id: str,
        title: str,
        properties: Optional[Dict[str, Any]] = None,
        is_inline: bool = False
    ) -> Dict[str, Any]:
        database = self.client.create_database({
            "parent": {"type": "page_id", "page_id": parse_page_id(parent_page_id)},
            "title": rich_text(title),
            "is_inline": is_inline,
            "properties": properties or {"Name": {"title": {}}},
        })
        return {
            "id": database["id"],
            "title": title,
            "url": database.get("url"),
            "message": "Database created successfully",
        }

    def update_database(
        self,
        database_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if title:
            body["title"] = rich_text(title)
        if description:
            body["description"] = rich_text(description)
        if properties:
            body["properties"] = properties
        if not body:
            raise ToolInputError("Nothing to update")

        database = self.client.update_database(self.resolve_database_id(database_id), body)
        return {"id": database.get("id"), "message": "Database updated successfully"}

    def add_database_entry(
        self,
        database_id: str,
        properties: Dict[str, Any],
        content: Optional[str] = None
    ) -> Dict[str, Any]:
        body = {
            "parent": {"database_id": self.resolve_database_id(database_id)},
            "properties": properties,
        }
        blocks = markdown_to_blocks(content) if content else []
        page = self._create_page_with_blocks(body, blocks)
        return {"id": page["id"], "url": page.get("url"), "message": "Entry added"}

    def get_database_schema(self, database_id: str) -> Dict[str, Any]:
        database = self.client.get_database(self.resolve_database_id(database_id))
        schema = []
        for name, prop in database.get("properties", {}).items():
            prop_type = prop.get("type")
            entry: Dict[str, Any] = {"name": name, "type": prop_type}
            options = (prop.get(prop_type) or {}).get("options") if prop_type else None
            if options is not None:
                entry["options"] = [o.get("name") for o in options]
            schema.append(entry)

        return {
            "id": database.get("id"),
            "title": extract_title(database),
            "properties": schema,
        }

    def update_database_schema(
        self,
        database_id: str,
        title: Optional[str] = None,
        add_properties: Optional[Dict[str, Union[str, Dict[str, Any]]]] = None,
        update_properties: Optional[Dict[str, Any]] = None,
        remove_properties: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Add, update or remove database properties.

        ``add_properties`` maps names to a type name or to a dict with
        ``type`` plus options such as ``options`` or ``format``.
        """
        property_updates: Dict[str, Any] = {}

        for name, config in (add_properties or {}).items():
            if isinstance(config, str):
                property_updates[name] = property_schema(config)
            else:
                if not config.get("type"):
                    raise ToolInputError(f"Property '{name}' needs a type")
                property_updates[name] = property_schema(config["type"], config)

        property_updates.update(update_properties or {})

        for name in remove_properties or []:
            property_updates[name] = None

        body: Dict[str, Any] = {}
        if title:
            body["title"] = rich_text(title)
        if property_updates:
            body["properties"] = property_updates
        if not body:
            raise ToolInputError("No schema changes given")

        database = self.client.update_database(self.resolve_database_id(database_id), body)
        return {
            "id": database.get("id"),
            "message": "Database schema updated",
            "propertiesModified": list(property_updates.keys()),
        }

    def create_database_from_template(
        self,
        parent_page_id: str,
        template_name: str,
        database_title: str
    ) -> Dict[str, Any]:
        properties = get_template(template_name)
        database = self.client.create_database({
            "parent": {"type": "page_id", "page_id": parse_page_id(parent_page_id)},
            "title": rich_text(database_title),
            "properties": properties,
        })
        return {
            "id": database["id"],
            "title": database_title,
            "template": template_name,
            "url": database.get("url"),
            "message": f'Database "{database_title}" created using {template_name} template',
        }

    # =========================================================================
    # Blocks
    # =========================================================================

    def _fetch_children(self, block_id: str, recursive: bool, depth: int) -> List[Dict[str, Any]]:
        blocks = list(self.client.iter_block_children(block_id))
        if recursive and depth < MAX_RECURSION_DEPTH:
            for block in blocks:
                if block.get("has_children"):
                    block["children"] = self._fetch_children(block["id"], recursive, depth + 1)
        return blocks

    def get_block_children(self, block_id: str, recursive: bool = False) -> Dict[str, Any]:
        blocks = self._fetch_children(parse_page_id(block_id), recursive, 0)
        return {"count": len(blocks), "blocks": [summarize_block(b) for b in blocks]}

    def append_blocks(
        self,
        parent_id: str,
        content: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """
        Append markdown content or raw blocks, 100 blocks per request.

        Content longer than 50,000 characters is stored as plain chunked
        paragraphs instead of being parsed as markdown.
        """
        if content:
            if len(content) > MAX_CHUNK_SIZE:
                blocks = chunked_paragraph_blocks(content)
            else:
                blocks = markdown_to_blocks(content)
        blocks = blocks or []
        if not blocks:
            raise ToolInputError("No content or blocks provided")

        added = self._append_in_batches(parse_page_id(parent_id), blocks)
        batches = -(-len(blocks) // MAX_BLOCKS_PER_REQUEST)
        return {
            "blocksAdded": added,
            "batches": batches,
            "message": f"Content appended in {batches} batch(es)",
        }

    def update_block(
        self,
        block_id: str,
        content: Optional[str] = None,
        block_type: Optional[str] = None,
        archived: Optional[bool] = None
    ) -> Dict[str, Any]:
        block_id = parse_page_id(block_id)
        body: Dict[str, Any] = {}

        if content is not None:
            if not block_type:
                block_type = self.client.get_block(block_id).get("type")
            body[block_type] = text_block(block_type, content)[block_type]
        if archived is not None:
            body["archived"] = archived
        if not body:
            raise ToolInputError("Nothing to update")

        block = self.client.update_block(block_id, body)
        return {"id": block.get("id"), "type": block.get("type"), "message": "Block updated"}

    def delete_block(self, block_id: str) -> Dict[str, Any]:
        block = self.client.delete_block(parse_page_id(block_id))
        return {"id": block.get("id"), "archived": block.get("archived", True), "message": "Block deleted"}

    # =========================================================================
    # Comments
    # =========================================================================

    def get_comments(self, page_id: str, limit: int = 50) -> Dict[str, Any]:
        response = self.client.list_comments(parse_page_id(page_id), page_size=limit)
        comments = [
            {
                "id": c.get("id"),
                "text": extract_plain_text(c.get("rich_text", [])),
                "author": safe_get_nested(c, "created_by", "name") or safe_get_nested(c, "created_by", "id"),
                "createdTime": c.get("created_time"),
                "discussionId": c.get("discussion_id"),
            }
            for c in response.get("results", [])
        ]
        return {"count": len(comments), "comments": comments}

    def add_comment(
        self,
        content: str,
        page_id: Optional[str] = None,
        discussion_id: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"rich_text": rich_text(content)}
        if discussion_id:
            body["discussion_id"] = discussion_id
        elif page_id:
            body["parent"] = {"page_id": parse_page_id(page_id)}
        else:
            raise ToolInputError("Either page_id or discussion_id is required")

        comment = self.client.create_comment(body)
        return {"id": comment.get("id"), "discussionId": comment.get("discussion_id"), "message": "Comment added"}

    # =========================================================================
    # Users
    # =========================================================================

    def list_users(self, limit: int = 100) -> Dict[str, Any]:
        response = self.client.list_users(page_size=min(limit, 100))
        users = [
            {
                "id": u.get("id"),
                "name": u.get("name"),
                "type": u.get("type"),
                "email": safe_get_nested(u, "person", "email"),
                "avatarUrl": u.get("avatar_url"),
            }
            for u in response.get("results", [])
        ]
        return {"count": len(users), "users": users}

    def get_current_user(self) -> Dict[str, Any]:
        user = self.client.get_me()
        return {
            "id": user.get("id"),
            "name": user.get("name"),
            "type": user.get("type"),
            "avatarUrl": user.get("avatar_url"),
            "workspace": safe_get_nested(user, "bot", "workspace_name"),
        }

    # =========================================================================
    # Projects and conversations
    # =========================================================================

    def list_projects(
        self,
        status: Optional[str] = None,
        sort_by: str = "name",
        limit: int = 50
    ) -> Dict[str, Any]:
        projects = self.projects.list_projects(status=status, sort_by=sort_by, limit=limit)
        return {"count": len(projects), "projects": projects}

    def create_project(self, name: str, **fields: Any) -> Dict[str, Any]:
        project = self.projects.create_project(name, **fields)
        return {**project, "message": "Project created"}

    def update_project(self, project_id: str, **fields: Any) -> Dict[str, Any]:
        project = self.projects.update_project(project_id, **fields)
        return {**project, "message": "Project updated"}

    def link_conversation_to_project(
        self,
        conversation_id: str,
        project_id: str,
        notes: Optional[str] = None
    ) -> Dict[str, Any]:
        link = self.projects.link_conversation(conversation_id, project_id, notes=notes)
        return {**link, "message": "Conversation linked to project"}

    def export_conversation(
        self,
        conversation_data: Dict[str, Any],
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
        project_id: Optional[str] = None
    ) -> Dict[str, Any]:
        result = self.conversations.export(conversation_data, title=title, tags=tags)
        if project_id:
            result["project"] = self.projects.link_conversation(result["id"], project_id)
        result["message"] = "Conversation exported successfully"
        return result

    def discover_databases(self, create_missing: bool = True) -> Dict[str, Any]:
        data = DatabaseDiscovery(self.client, self.cache).discover(create_missing=create_missing)
        self.conversation_db_id = data.conversation_db_id or self.conversation_db_id
        self.project_db_id = data.project_db_id or self.project_db_id
        return {
            **data.model_dump(by_alias=True),
            "cacheFile": self.cache.path,
            "message": "Database discovery complete",
        }

    # =========================================================================
    # Files and watchers
    # =========================================================================

    def bulk_create_pages_from_files(
        self,
        folder_path: str,
        database_id: str,
        file_extensions: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Create one page per matching file directly inside ``folder_path``.

        Per-file failures are counted and reported; they do not stop the run.
        """
        database_id = self.resolve_database_id(database_id)
        files = scan_folder_for_files(folder_path, file_extensions or [".pdf"], recursive=False)

        success_count = 0
        errors = []
        for file_path in files:
            try:
                self.client.create_page(build_file_page(database_id, file_path))
                success_count += 1
            except Exception as e:
                logger.error(f"Failed to create page for {file_path}: {e}")
                errors.append({"file": os.path.basename(file_path), **error_payload(e)})
            self.clock.sleep(self.config.bulk_file_delay)

        return {
            "folderPath": folder_path,
            "totalFiles": len(files),
            "successCount": success_count,
            "errorCount": len(errors),
            "errors": errors,
            "message": (
                f"Processed {len(files)} files: {success_count} successful, "
                f"{len(errors)} failed"
            ),
        }

    def start_file_watcher(
        self,
        watch_path: str,
        database_id: str,
        file_filter: Optional[List[str]] = None,
        auto_process: bool = True,
        poll_interval: float = 5.0,
        recursive: bool = True
    ) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            "database_id": self.resolve_database_id(database_id),
            "auto_process": auto_process,
            "poll_interval": poll_interval,
            "recursive": recursive,
        }
        if file_filter:
            values["file_filter"] = file_filter
        try:
            config = WatcherConfig(**values)
        except ValidationError as e:
            raise ToolInputError(f"Invalid watcher settings: {e}")
        return self.watchers.start(watch_path, config)

    def stop_file_watcher(self, watch_path: Optional[str] = None) -> Dict[str, Any]:
        stopped = self.watchers.stop(watch_path)
        if watch_path:
            message = f"File watcher stopped for {watch_path}"
        else:
            message = f"Stopped {stopped} file watchers"
        return {"stopped": stopped, "message": message}

    def list_active_watchers(self) -> Dict[str, Any]:
        watchers = self.watchers.list()
        return {"count": len(watchers), "activeWatchers": watchers}

    # =========================================================================
    # Monitoring
    # =========================================================================

    def check_api_health(self, include_details: bool = True) -> Dict[str, Any]:
        """Probe /users/me with a single retry and report latency."""
        started = self.clock.monotonic()
        error = None
        try:
            self.client.get_me(max_retries=1)
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            error = error_payload(e)
        latency_ms = int((self.clock.monotonic() - started) * 1000)

        health: Dict[str, Any] = {
            "status": "healthy" if error is None else "unhealthy",
            "apiConnectivity": error is None,
            "latency": f"{latency_ms}ms",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if error is not None:
            health["error"] = error
        if include_details:
            health["activeWatchers"] = len(self.watchers)
            health["requestsLast24h"] = self.usage.count_since(86400.0)
            health["rateLimitStatus"] = self.usage.rate_limit_status()
            if self.rate_limiter is not None:
                health["availableTokens"] = round(self.rate_limiter.available_tokens, 3)
        return health

    def get_usage_statistics(self, time_window: str = "24h") -> Dict[str, Any]:
        stats = self.usage.statistics(time_window)
        stats["activeFeatures"] = {"fileWatchers": len(self.watchers)}
        return stats
