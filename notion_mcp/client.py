"""
Notion API client.

This module provides:
- NotionClient class for making API requests
- Typed errors raised at the HTTP boundary
- Rate limiting and retries delegated to the RetryOrchestrator
- Cursor-based pagination support
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

import requests

from .config import ServerConfig
from .errors import NotionAPIError, NotionConnectionError
from .retry import RetryOrchestrator

logger = logging.getLogger(__name__)


class NotionClient:
    """
    Notion API client.

    ``_request`` performs exactly one HTTP call. Every public endpoint goes
    through ``_call``, which runs that single call inside the shared
    RetryOrchestrator so admission control and retries apply uniformly.
    """

    BASE_URL = "https://api.notion.com/v1"

    def __init__(
        self,
        config: ServerConfig,
        orchestrator: Optional[RetryOrchestrator] = None
    ):
        """
        Initialize the Notion client.

        Args:
            config: ServerConfig instance with credentials and settings
            orchestrator: Shared retry orchestrator (one is built if omitted)
        """
        self.config = config
        self.session = requests.Session()
        self.session.headers.update(config.get_auth_headers())
        self.orchestrator = orchestrator or RetryOrchestrator()

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint path."""
        if endpoint.startswith("/"):
            endpoint = endpoint[1:]
        return f"{self.BASE_URL}/{endpoint}"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make a single API request.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path (e.g., "/users/me")
            params: Query parameters
            json: JSON body for POST/PATCH requests

        Returns:
            Parsed JSON response

        Raises:
            NotionAPIError: On non-2xx responses
            NotionConnectionError: On timeouts and connection failures
        """
        url = self._build_url(endpoint)
        logger.debug(f"Request: {method} {url}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json,
                timeout=self.config.request_timeout
            )
        except requests.exceptions.Timeout:
            raise NotionConnectionError(f"Request to {endpoint} timed out")
        except requests.exceptions.ConnectionError as e:
            raise NotionConnectionError(f"Failed to connect to {endpoint}: {e}")

        if not response.ok:
            raise NotionAPIError.from_response(response)

        return response.json()

    def _call(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        max_retries: Optional[int] = None,
        operation_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Run one request through the retry orchestrator."""
        return self.orchestrator.run(
            lambda: self._request(method, endpoint, params=params, json=json),
            max_retries=max_retries,
            operation_name=operation_name or f"{method} {endpoint}"
        )

    def _paginate(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None
    ) -> Iterator[Dict[str, Any]]:
        """
        Paginate through results from an endpoint.

        Each page fetch is retried independently.

        Args:
            endpoint: API endpoint path
            method: HTTP method (GET or POST)
            body: Request body for POST requests
            params: Query parameters for GET requests
            limit: Stop after this many items (None for all)

        Yields:
            Individual result items
        """
        start_cursor: Optional[str] = None
        page_count = 0
        yielded = 0

        while True:
            page_count += 1
            logger.debug(f"Fetching page {page_count} from {endpoint}")

            pagination_params: Dict[str, Any] = {
                "page_size": self.config.page_size
            }
            if start_cursor:
                pagination_params["start_cursor"] = start_cursor

            if method == "POST":
                data = self._call(
                    "POST", endpoint, json={**(body or {}), **pagination_params}
                )
            else:
                data = self._call(
                    "GET", endpoint, params={**(params or {}), **pagination_params}
                )

            results = data.get("results", [])
            logger.debug(f"Got {len(results)} results on page {page_count}")

            for item in results:
                yield item
                yielded += 1
                if limit is not None and yielded >= limit:
                    return

            if not data.get("has_more", False):
                logger.debug(f"Pagination complete after {page_count} pages")
                break

            start_cursor = data.get("next_cursor")
            if not start_cursor:
                break

    # =========================================================================
    # User Endpoints
    # =========================================================================

    def get_me(self, max_retries: Optional[int] = None) -> Dict[str, Any]:
        """
        Get the current bot user.

        Args:
            max_retries: Override for the orchestrator's retry budget

        Returns:
            Bot user object

        API Reference:
            GET /v1/users/me
        """
        return self._call("GET", "/users/me", max_retries=max_retries)

    def list_users(self, page_size: int = 100) -> Dict[str, Any]:
        """
        List one page of users in the workspace.

        API Reference:
            GET /v1/users
        """
        return self._call("GET", "/users", params={"page_size": page_size})

    # =========================================================================
    # Search
    # =========================================================================

    def search(
        self,
        query: Optional[str] = None,
        filter_object: Optional[str] = None,
        sort: Optional[Dict[str, str]] = None,
        page_size: int = 100,
        start_cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Search for pages and databases.

        Args:
            query: Optional search query text
            filter_object: Optional filter by object type ("page" or "database")
            sort: Optional sort configuration
            page_size: Results per page (max 100)
            start_cursor: Cursor from a previous response

        Returns:
            Search response with results, has_more and next_cursor

        API Reference:
            POST /v1/search
        """
        body: Dict[str, Any] = {"page_size": min(page_size, 100)}

        if query:
            body["query"] = query

        if filter_object:
            body["filter"] = {
                "property": "object",
                "value": filter_object
            }

        if sort:
            body["sort"] = sort

        if start_cursor:
            body["start_cursor"] = start_cursor

        return self._call("POST", "/search", json=body)

    def iter_databases(self) -> Iterator[Dict[str, Any]]:
        """
        Iterate over every database shared with the integration.

        API Reference:
            POST /v1/search (filtered for databases)
        """
        yield from self._paginate(
            "/search",
            method="POST",
            body={
                "filter": {
                    "property": "object",
                    "value": "database"
                }
            }
        )

    # =========================================================================
    # Database Endpoints
    # =========================================================================

    def get_database(self, database_id: str) -> Dict[str, Any]:
        """
        Get a database by ID.

        API Reference:
            GET /v1/databases/{database_id}
        """
        return self._call("GET", f"/databases/{database_id}")

    def query_database(
        self,
        database_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        page_size: int = 100,
        start_cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Query one page of a database.

        Args:
            database_id: Database UUID
            filter: Optional filter conditions
            sorts: Optional sort conditions
            page_size: Results per page (max 100)
            start_cursor: Cursor from a previous response

        Returns:
            Query response with results, has_more and next_cursor

        API Reference:
            POST /v1/databases/{database_id}/query
        """
        body: Dict[str, Any] = {"page_size": min(page_size, 100)}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts
        if start_cursor:
            body["start_cursor"] = start_cursor

        return self._call("POST", f"/databases/{database_id}/query", json=body)

    def iter_database_pages(
        self,
        database_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        limit: Optional[int] = None
    ) -> Iterator[Dict[str, Any]]:
        """
        Iterate over database query results across pages.

        API Reference:
            POST /v1/databases/{database_id}/query
        """
        body: Dict[str, Any] = {}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts

        yield from self._paginate(
            f"/databases/{database_id}/query",
            method="POST",
            body=body,
            limit=limit
        )

    def create_database(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a database.

        API Reference:
            POST /v1/databases
        """
        return self._call("POST", "/databases", json=body)

    def update_database(
        self,
        database_id: str,
        body: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Update a database title or schema.

        API Reference:
            PATCH /v1/databases/{database_id}
        """
        return self._call("PATCH", f"/databases/{database_id}", json=body)

    # =========================================================================
    # Page Endpoints
    # =========================================================================

    def create_page(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a page under a page or database parent.

        API Reference:
            POST /v1/pages
        """
        return self._call("POST", "/pages", json=body)

    def get_page(self, page_id: str) -> Dict[str, Any]:
        """
        Get a page by ID.

        API Reference:
            GET /v1/pages/{page_id}
        """
        return self._call("GET", f"/pages/{page_id}")

    def update_page(self, page_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update page properties, icon, cover or archived state.

        API Reference:
            PATCH /v1/pages/{page_id}
        """
        return self._call("PATCH", f"/pages/{page_id}", json=body)

    # =========================================================================
    # Block Endpoints
    # =========================================================================

    def get_block_children(
        self,
        block_id: str,
        page_size: int = 100,
        start_cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        List one page of a block's children.

        API Reference:
            GET /v1/blocks/{block_id}/children
        """
        params: Dict[str, Any] = {"page_size": min(page_size, 100)}
        if start_cursor:
            params["start_cursor"] = start_cursor
        return self._call("GET", f"/blocks/{block_id}/children", params=params)

    def iter_block_children(
        self,
        block_id: str,
        limit: Optional[int] = None
    ) -> Iterator[Dict[str, Any]]:
        """
        Iterate over a block's children across pages.

        API Reference:
            GET /v1/blocks/{block_id}/children
        """
        yield from self._paginate(f"/blocks/{block_id}/children", limit=limit)

    def append_block_children(
        self,
        block_id: str,
        children: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Append up to 100 blocks to a page or block.

        API Reference:
            PATCH /v1/blocks/{block_id}/children
        """
        return self._call(
            "PATCH", f"/blocks/{block_id}/children", json={"children": children}
        )

    def get_block(self, block_id: str) -> Dict[str, Any]:
        """
        API Reference:
            GET /v1/blocks/{block_id}
        """
        return self._call("GET", f"/blocks/{block_id}")

    def update_block(self, block_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a block's content or archived state.

        API Reference:
            PATCH /v1/blocks/{block_id}
        """
        return self._call("PATCH", f"/blocks/{block_id}", json=body)

    def delete_block(self, block_id: str) -> Dict[str, Any]:
        """
        Archive a block.

        API Reference:
            DELETE /v1/blocks/{block_id}
        """
        return self._call("DELETE", f"/blocks/{block_id}")

    # =========================================================================
    # Comment Endpoints
    # =========================================================================

    def list_comments(self, block_id: str, page_size: int = 100) -> Dict[str, Any]:
        """
        List one page of comments on a page or block.

        API Reference:
            GET /v1/comments
        """
        return self._call(
            "GET",
            "/comments",
            params={"block_id": block_id, "page_size": min(page_size, 100)}
        )

    def create_comment(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Add a comment to a page or an existing discussion.

        API Reference:
            POST /v1/comments
        """
        return self._call("POST", "/comments", json=body)

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self) -> "NotionClient":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
