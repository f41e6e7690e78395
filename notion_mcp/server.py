"""
Notion MCP server.

Exposes the Notion tools over stdio. Run with:
    NOTION_API_KEY=... notion-mcp
    NOTION_API_KEY=... python -m notion_mcp.server
"""

import asyncio
import logging
import os
import sys
from typing import Any, Callable, Dict, List, Optional, Union

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP

from .cache import DatabaseCache
from .client import NotionClient
from .config import ServerConfig
from .credentials import resolve_api_key, validate_credentials
from .errors import CredentialNotFoundError
from .rate_limiter import Clock, TokenBucket
from .retry import RetryOrchestrator, RetryPolicy
from .scheduler import ThreadScheduler
from .tools import NotionTools, run_tool
from .usage import UsageTracker
from .watcher import FileWatcherRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send all logging to stderr; stdout carries the JSON-RPC stream."""
    logging.basicConfig(stream=sys.stderr, level=level, format=LOG_FORMAT, force=True)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


async def run_tool_in_thread(name: str, operation: Callable[[], Any]) -> str:
    """
    Run a tool on a worker thread so retry and rate-limit waits do not
    block the event loop.
    """
    return await asyncio.to_thread(run_tool, name, operation)


def build_tools(config: ServerConfig, clock: Optional[Clock] = None) -> NotionTools:
    """
    Wire the shared rate limiter, retry orchestrator, client and watcher
    registry into one NotionTools instance.
    """
    clock = clock or Clock()
    rate_limiter = TokenBucket(
        capacity=config.burst_capacity,
        refill_rate=config.requests_per_second,
        clock=clock
    )
    usage = UsageTracker(clock=clock, requests_per_second=config.requests_per_second)
    policy = RetryPolicy(
        max_retries=config.max_retries,
        base_delay=config.base_retry_delay,
        max_delay=config.max_retry_delay,
        default_retry_after=config.default_retry_after
    )
    orchestrator = RetryOrchestrator(rate_limiter, policy, clock=clock, usage=usage)
    client = NotionClient(config, orchestrator)
    watchers = FileWatcherRegistry(
        client,
        scheduler=ThreadScheduler(),
        clock=clock,
        inter_file_delay=config.inter_file_delay
    )

    tools = NotionTools(
        client,
        config,
        watchers,
        usage,
        rate_limiter=rate_limiter,
        cache=DatabaseCache(config.cache_file),
        clock=clock
    )
    tools.load_cached_databases()
    return tools


def build_server(tools: NotionTools) -> FastMCP:
    """Register every tool on a FastMCP server."""
    mcp = FastMCP("notion")

    # Search

    @mcp.tool()
    async def notion_search(query: str = "", filter: str = "all", limit: int = 20) -> str:
        """Search pages and databases. filter: all, page or database."""
        return await run_tool_in_thread("notion_search", lambda: tools.notion_search(query, filter, limit))

    @mcp.tool()
    async def advanced_search(query: str, include_analytics: bool = False) -> str:
        """Search up to 50 results, optionally with result analytics."""
        return await run_tool_in_thread("advanced_search", lambda: tools.advanced_search(query, include_analytics))

    @mcp.tool()
    async def get_recent_changes(filter: str = "all", limit: int = 20) -> str:
        """List the most recently edited pages and databases."""
        return await run_tool_in_thread("get_recent_changes", lambda: tools.get_recent_changes(filter, limit))

    # Pages

    @mcp.tool()
    async def create_page(
        title: str,
        content: Optional[str] = None,
        parent_database_id: Optional[str] = None,
        parent_page_id: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
        icon: Optional[str] = None,
        cover: Optional[str] = None
    ) -> str:
        """Create a page with markdown content under a database or page.

        parent_database_id accepts "conversations" and "projects" shortcuts.
        """
        return await run_tool_in_thread("create_page", lambda: tools.create_page(
            title, content, parent_database_id, parent_page_id, properties, icon, cover
        ))

    @mcp.tool()
    async def get_page(page_id: str, include_content: bool = True) -> str:
        """Retrieve a page's properties and, optionally, its blocks."""
        return await run_tool_in_thread("get_page", lambda: tools.get_page(page_id, include_content))

    @mcp.tool()
    async def update_page(
        page_id: str,
        title: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
        icon: Optional[str] = None,
        cover: Optional[str] = None,
        archived: Optional[bool] = None
    ) -> str:
        """Update a page's title, properties, icon, cover or archived state."""
        return await run_tool_in_thread("update_page", lambda: tools.update_page(
            page_id, title, properties, icon, cover, archived
        ))

    @mcp.tool()
    async def delete_page(page_id: str) -> str:
        """Delete (archive) a page."""
        return await run_tool_in_thread("delete_page", lambda: tools.delete_page(page_id))

    @mcp.tool()
    async def archive_page(page_id: str) -> str:
        """Archive a page."""
        return await run_tool_in_thread("archive_page", lambda: tools.archive_page(page_id))

    @mcp.tool()
    async def restore_page(page_id: str) -> str:
        """Restore an archived page."""
        return await run_tool_in_thread("restore_page", lambda: tools.restore_page(page_id))

    @mcp.tool()
    async def duplicate_page(
        page_id: str,
        target_parent_id: Optional[str] = None,
        new_title: Optional[str] = None
    ) -> str:
        """Copy a page's properties and top-level blocks to a new page."""
        return await run_tool_in_thread("duplicate_page", lambda: tools.duplicate_page(
            page_id, target_parent_id, new_title
        ))

    # Databases

    @mcp.tool()
    async def list_databases(limit: int = 50) -> str:
        """List databases shared with the integration."""
        return await run_tool_in_thread("list_databases", lambda: tools.list_databases(limit))

    @mcp.tool()
    async def get_database(database_id: str) -> str:
        """Retrieve a database and its property schema."""
        return await run_tool_in_thread("get_database", lambda: tools.get_database(database_id))

    @mcp.tool()
    async def query_database(
        database_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        limit: int = 100
    ) -> str:
        """Query a database with a Notion filter and sorts.

        Limits above 100 paginate automatically.
        """
        return await run_tool_in_thread("query_database", lambda: tools.query_database(
            database_id, filter, sorts, limit
        ))

    @mcp.tool()
    async def create_database(
        parent_page_id: str,
        title: str,
        properties: Optional[Dict[str, Any]] = None,
        is_inline: bool = False
    ) -> str:
        """Create a database under a page."""
        return await run_tool_in_thread("create_database", lambda: tools.create_database(
            parent_page_id, title, properties, is_inline
        ))

    @mcp.tool()
    async def update_database(
        database_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None
    ) -> str:
        """Update a database's title, description or properties."""
        return await run_tool_in_thread("update_database", lambda: tools.update_database(
            database_id, title, description, properties
        ))

    @mcp.tool()
    async def add_database_entry(
        database_id: str,
        properties: Dict[str, Any],
        content: Optional[str] = None
    ) -> str:
        """Add a page to a database."""
        return await run_tool_in_thread("add_database_entry", lambda: tools.add_database_entry(
            database_id, properties, content
        ))

    @mcp.tool()
    async def get_database_schema(database_id: str) -> str:
        """List a database's properties, types and select options."""
        return await run_tool_in_thread("get_database_schema", lambda: tools.get_database_schema(database_id))

    @mcp.tool()
    async def update_database_schema(
        database_id: str,
        title: Optional[str] = None,
        add_properties: Optional[Dict[str, Union[str, Dict[str, Any]]]] = None,
        update_properties: Optional[Dict[str, Any]] = None,
        remove_properties: Optional[List[str]] = None
    ) -> str:
        """Add, update or remove database properties."""
        return await run_tool_in_thread("update_database_schema", lambda: tools.update_database_schema(
            database_id, title, add_properties, update_properties, remove_properties
        ))

    @mcp.tool()
    async def create_database_from_template(
        parent_page_id: str,
        template_name: str,
        database_title: str
    ) -> str:
        """Create a database from a template: document_scanner, project_tracker,
        meeting_notes or task_management."""
        return await run_tool_in_thread("create_database_from_template", lambda: tools.create_database_from_template(
            parent_page_id, template_name, database_title
        ))

    # Blocks

    @mcp.tool()
    async def get_block_children(block_id: str, recursive: bool = False) -> str:
        """List a block's children, optionally three levels deep."""
        return await run_tool_in_thread("get_block_children", lambda: tools.get_block_children(block_id, recursive))

    @mcp.tool()
    async def append_blocks(
        parent_id: str,
        content: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None
    ) -> str:
        """Append markdown content or raw blocks to a page or block."""
        return await run_tool_in_thread("append_blocks", lambda: tools.append_blocks(parent_id, content, blocks))

    @mcp.tool()
    async def update_block(
        block_id: str,
        content: Optional[str] = None,
        block_type: Optional[str] = None,
        archived: Optional[bool] = None
    ) -> str:
        """Replace a block's text or change its archived state."""
        return await run_tool_in_thread("update_block", lambda: tools.update_block(
            block_id, content, block_type, archived
        ))

    @mcp.tool()
    async def delete_block(block_id: str) -> str:
        """Delete a block."""
        return await run_tool_in_thread("delete_block", lambda: tools.delete_block(block_id))

    # Comments and users

    @mcp.tool()
    async def get_comments(page_id: str, limit: int = 50) -> str:
        """List comments on a page."""
        return await run_tool_in_thread("get_comments", lambda: tools.get_comments(page_id, limit))

    @mcp.tool()
    async def add_comment(
        content: str,
        page_id: Optional[str] = None,
        discussion_id: Optional[str] = None
    ) -> str:
        """Comment on a page or reply to a discussion."""
        return await run_tool_in_thread("add_comment", lambda: tools.add_comment(content, page_id, discussion_id))

    @mcp.tool()
    async def list_users(limit: int = 100) -> str:
        """List workspace users."""
        return await run_tool_in_thread("list_users", lambda: tools.list_users(limit))

    @mcp.tool()
    async def get_current_user() -> str:
        """Show the integration's bot user."""
        return await run_tool_in_thread("get_current_user", tools.get_current_user)

    # Projects and conversations

    @mcp.tool()
    async def list_projects(status: Optional[str] = None, sort_by: str = "name", limit: int = 50) -> str:
        """List projects. sort_by: name, date, status or activity."""
        return await run_tool_in_thread("list_projects", lambda: tools.list_projects(status, sort_by, limit))

    @mcp.tool()
    async def create_project(
        name: str,
        status: Optional[str] = None,
        description: Optional[str] = None,
        technologies: Optional[List[str]] = None,
        github_repo: Optional[str] = None,
        start_date: Optional[str] = None,
        target_completion: Optional[str] = None
    ) -> str:
        """Create a project in the project database."""
        return await run_tool_in_thread("create_project", lambda: tools.create_project(
            name,
            status=status,
            description=description,
            technologies=technologies,
            github_repo=github_repo,
            start_date=start_date,
            target_completion=target_completion,
        ))

    @mcp.tool()
    async def update_project(
        project_id: str,
        name: Optional[str] = None,
        status: Optional[str] = None,
        description: Optional[str] = None,
        technologies: Optional[List[str]] = None,
        github_repo: Optional[str] = None,
        start_date: Optional[str] = None,
        target_completion: Optional[str] = None
    ) -> str:
        """Update a project found by ID, URL or name."""
        return await run_tool_in_thread("update_project", lambda: tools.update_project(
            project_id,
            name=name,
            status=status,
            description=description,
            technologies=technologies,
            github_repo=github_repo,
            start_date=start_date,
            target_completion=target_completion,
        ))

    @mcp.tool()
    async def link_conversation_to_project(
        conversation_id: str,
        project_id: str,
        notes: Optional[str] = None
    ) -> str:
        """Link an exported conversation to a project."""
        return await run_tool_in_thread("link_conversation_to_project", lambda: tools.link_conversation_to_project(
            conversation_id, project_id, notes
        ))

    @mcp.tool()
    async def export_conversation(
        conversation_data: Dict[str, Any],
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
        project_id: Optional[str] = None
    ) -> str:
        """Export a conversation ({"messages": [{"role", "content"}], "metadata": {}})."""
        return await run_tool_in_thread("export_conversation", lambda: tools.export_conversation(
            conversation_data, title, tags, project_id
        ))

    @mcp.tool()
    async def discover_databases(create_missing: bool = True) -> str:
        """Find or create the conversation and project databases."""
        return await run_tool_in_thread("discover_databases", lambda: tools.discover_databases(create_missing))

    # File automation

    @mcp.tool()
    async def bulk_create_pages_from_files(
        folder_path: str,
        database_id: str,
        file_extensions: Optional[List[str]] = None
    ) -> str:
        """Create a page per matching file in a folder (default: .pdf)."""
        return await run_tool_in_thread("bulk_create_pages_from_files", lambda: tools.bulk_create_pages_from_files(
            folder_path, database_id, file_extensions
        ))

    @mcp.tool()
    async def start_file_watcher(
        watch_path: str,
        database_id: str,
        file_filter: Optional[List[str]] = None,
        auto_process: bool = True,
        poll_interval: float = 5.0,
        recursive: bool = True
    ) -> str:
        """Watch a folder and create a page for each new matching file."""
        return await run_tool_in_thread("start_file_watcher", lambda: tools.start_file_watcher(
            watch_path, database_id, file_filter, auto_process, poll_interval, recursive
        ))

    @mcp.tool()
    async def stop_file_watcher(watch_path: Optional[str] = None) -> str:
        """Stop one watcher, or all watchers when no path is given."""
        return await run_tool_in_thread("stop_file_watcher", lambda: tools.stop_file_watcher(watch_path))

    @mcp.tool()
    async def list_active_watchers() -> str:
        """List active folder watchers."""
        return await run_tool_in_thread("list_active_watchers", tools.list_active_watchers)

    # Monitoring

    @mcp.tool()
    async def check_api_health(include_details: bool = True) -> str:
        """Check API connectivity and latency."""
        return await run_tool_in_thread("check_api_health", lambda: tools.check_api_health(include_details))

    @mcp.tool()
    async def get_usage_statistics(time_window: str = "24h") -> str:
        """Report request counts for a time window: 1h, 24h or 7d."""
        return await run_tool_in_thread("get_usage_statistics", lambda: tools.get_usage_statistics(time_window))

    return mcp


def main() -> None:
    """Entry point: resolve credentials, validate them and serve over stdio."""
    load_dotenv()
    configure_logging(os.environ.get("NOTION_LOG_LEVEL", "INFO").upper())

    try:
        api_key = resolve_api_key()
    except CredentialNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)

    config = ServerConfig.from_env(api_key)
    configure_logging(config.log_level)

    tools = build_tools(config)
    auth = validate_credentials(tools.client)
    if not auth.success:
        logger.error(f"Failed to validate Notion API key: {auth.error}")
        sys.exit(1)

    bot_name = (auth.user_info or {}).get("name", "integration")
    logger.info(f"Authenticated as {bot_name}")

    try:
        build_server(tools).run()
    finally:
        tools.watchers.stop()
        tools.client.close()


if __name__ == "__main__":
    main()
