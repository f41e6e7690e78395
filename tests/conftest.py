"""
Shared pytest fixtures for Notion MCP server tests.
"""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
import responses

# Ensure the notion_mcp package is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

NOTION_API = "https://api.notion.com/v1"

PAGE_ID = "59833787-2cf9-4fdf-8782-e53db20768a5"
DATABASE_ID = "668d797c-76fa-4934-9b05-ad288df2d136"
PROJECT_DB_ID = "3f1c2b4a-9d8e-4f7a-b6c5-1a2b3c4d5e6f"
ROOT_PAGE_ID = "a1d8501e-1ac1-43e9-a6bd-ea9fe6c8822b"


# =============================================================================
# Fixture Loading Utilities
# =============================================================================

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(relative_path: str) -> Dict[str, Any]:
    """Load a JSON fixture file."""
    fixture_path = FIXTURES_DIR / relative_path
    with open(fixture_path, "r", encoding="utf-8") as f:
        return json.load(f)


def request_body(call) -> Dict[str, Any]:
    """Decode the JSON body of a recorded responses call."""
    return json.loads(call.request.body)


# =============================================================================
# Time and Scheduling Doubles
# =============================================================================

class FakeClock:
    """Deterministic clock; ``sleep`` advances time and is recorded."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.mono = 1000.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.mono

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        self.now += seconds
        self.mono += seconds


class FakeTask:
    """Handle returned by FakeScheduler; runs only when fired."""

    def __init__(self, interval: float, callback: Callable[[], None], name: Optional[str]):
        self.interval = interval
        self.callback = callback
        self.name = name
        self.cancelled = False

    def fire(self) -> None:
        if not self.cancelled:
            self.callback()

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records scheduled tasks instead of starting threads."""

    def __init__(self):
        self.tasks: List[FakeTask] = []

    def schedule(self, interval, callback, name=None) -> FakeTask:
        task = FakeTask(interval, callback, name)
        self.tasks.append(task)
        return task


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


# =============================================================================
# Response Fixtures - Success
# =============================================================================

@pytest.fixture
def user_me_bot_response() -> Dict[str, Any]:
    """Load user/me bot response."""
    return load_fixture("responses/success/user_me_bot.json")


@pytest.fixture
def users_list_response() -> Dict[str, Any]:
    """Load users list response."""
    return load_fixture("responses/success/users_list.json")


@pytest.fixture
def search_results_response() -> Dict[str, Any]:
    """Load mixed page/database search results."""
    return load_fixture("responses/success/search_results.json")


@pytest.fixture
def databases_search_response() -> Dict[str, Any]:
    """Load database-only search results."""
    return load_fixture("responses/success/databases_search.json")


@pytest.fixture
def database_full_response() -> Dict[str, Any]:
    """Load single database response."""
    return load_fixture("responses/success/database_full.json")


@pytest.fixture
def page_full_response() -> Dict[str, Any]:
    """Load single page response."""
    return load_fixture("responses/success/page_full.json")


@pytest.fixture
def query_results_response() -> Dict[str, Any]:
    """Load project database query response."""
    return load_fixture("responses/success/query_results.json")


@pytest.fixture
def blocks_list_response() -> Dict[str, Any]:
    """Load blocks list response."""
    return load_fixture("responses/success/blocks_list.json")


@pytest.fixture
def comments_list_response() -> Dict[str, Any]:
    """Load comments list response."""
    return load_fixture("responses/success/comments_list.json")


# =============================================================================
# Response Fixtures - Errors
# =============================================================================

@pytest.fixture
def error_400_response() -> Dict[str, Any]:
    return load_fixture("responses/errors/400_validation.json")


@pytest.fixture
def error_401_response() -> Dict[str, Any]:
    """Load 401 unauthorized error response."""
    return load_fixture("responses/errors/401_unauthorized.json")


@pytest.fixture
def error_404_response() -> Dict[str, Any]:
    return load_fixture("responses/errors/404_not_found.json")


@pytest.fixture
def error_429_response() -> Dict[str, Any]:
    """Load 429 rate limited error response."""
    return load_fixture("responses/errors/429_rate_limited.json")


@pytest.fixture
def error_500_response() -> Dict[str, Any]:
    return load_fixture("responses/errors/500_internal.json")


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def server_config(tmp_path):
    """ServerConfig with a test token and a temporary cache file."""
    from notion_mcp.config import ServerConfig, TokenCredentials
    return ServerConfig(
        credentials=TokenCredentials(token="secret_test_token"),
        cache_file=str(tmp_path / "cache.json"),
        conversation_database_id=DATABASE_ID,
        project_database_id=PROJECT_DB_ID,
    )


# =============================================================================
# Client and Tools Fixtures
# =============================================================================

@pytest.fixture
def usage(clock):
    from notion_mcp.usage import UsageTracker
    return UsageTracker(clock=clock)


@pytest.fixture
def orchestrator(clock, usage):
    """Orchestrator with a fake clock so retries never really sleep."""
    from notion_mcp.rate_limiter import TokenBucket
    from notion_mcp.retry import RetryOrchestrator, RetryPolicy
    return RetryOrchestrator(
        TokenBucket(capacity=3, refill_rate=3, clock=clock),
        RetryPolicy(max_retries=3, base_delay=1.0, max_delay=30.0),
        clock=clock,
        usage=usage
    )


@pytest.fixture
def notion_client(server_config, orchestrator):
    """NotionClient wired to the fake-clock orchestrator."""
    from notion_mcp.client import NotionClient
    client = NotionClient(server_config, orchestrator)
    yield client
    client.close()


@pytest.fixture
def watchers(notion_client, scheduler, clock):
    from notion_mcp.watcher import FileWatcherRegistry
    return FileWatcherRegistry(notion_client, scheduler=scheduler, clock=clock)


@pytest.fixture
def notion_tools(notion_client, server_config, watchers, usage, orchestrator, clock):
    """NotionTools with both shortcut databases configured."""
    from notion_mcp.cache import DatabaseCache
    from notion_mcp.tools import NotionTools
    return NotionTools(
        notion_client,
        server_config,
        watchers,
        usage,
        rate_limiter=orchestrator.rate_limiter,
        cache=DatabaseCache(server_config.cache_file),
        clock=clock
    )


# =============================================================================
# Mocked API Fixtures
# =============================================================================

@pytest.fixture
def mock_notion_api():
    """Bare responses mock; tests register the endpoints they need."""
    with responses.RequestsMock() as rsps:
        yield rsps


@pytest.fixture
def mock_notion_api_auth_failure(error_401_response):
    """Set up mock for authentication failure."""
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{NOTION_API}/users/me",
            json=error_401_response,
            status=401
        )
        yield rsps
