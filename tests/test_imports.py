"""
Import validation tests for Notion MCP server modules.
"""

import sys
from pathlib import Path

import pytest

# Ensure notion_mcp is importable
sys.path.insert(0, str(Path(__file__).parent.parent))


class TestModuleImports:
    """Test that all modules can be imported successfully."""

    def test_import_config_module(self):
        """Test importing config module."""
        try:
            from notion_mcp.config import ServerConfig, TokenCredentials
        except ImportError as e:
            pytest.fail(f"Failed to import config module: {e}")

    def test_import_admission_modules(self):
        """Test importing rate limiter, retry and usage modules."""
        try:
            from notion_mcp.rate_limiter import Clock, TokenBucket
            from notion_mcp.retry import RetryOrchestrator, RetryPolicy
            from notion_mcp.usage import UsageTracker
        except ImportError as e:
            pytest.fail(f"Failed to import admission control modules: {e}")

    def test_import_client_module(self):
        """Test importing client module."""
        try:
            from notion_mcp.client import NotionClient
        except ImportError as e:
            pytest.fail(f"Failed to import client module: {e}")

    def test_import_credentials_module(self):
        try:
            from notion_mcp.credentials import (
                AuthenticationResult,
                get_credential,
                resolve_api_key,
                validate_credentials,
            )
        except ImportError as e:
            pytest.fail(f"Failed to import credentials module: {e}")

    def test_import_workspace_modules(self):
        """Test importing cache, discovery, project and conversation modules."""
        try:
            from notion_mcp.cache import DatabaseCache, DatabaseCacheData
            from notion_mcp.conversations import ConversationExporter, ConversationMessage
            from notion_mcp.discovery import DatabaseDiscovery
            from notion_mcp.projects import ProjectManager
            from notion_mcp.templates import DATABASE_TEMPLATES, get_template
        except ImportError as e:
            pytest.fail(f"Failed to import workspace modules: {e}")

    def test_import_watcher_modules(self):
        try:
            from notion_mcp.scheduler import PeriodicTask, ThreadScheduler
            from notion_mcp.watcher import FileWatcherRegistry, WatcherConfig
        except ImportError as e:
            pytest.fail(f"Failed to import watcher modules: {e}")

    def test_import_errors_module(self):
        """Test importing errors module."""
        try:
            from notion_mcp.errors import (
                ErrorKind,
                NotionAPIError,
                NotionAuthenticationError,
                NotionRateLimitError,
                NotionValidationError,
                NotionNotFoundError,
                NotionPermissionError,
                NotionConnectionError,
                NotionConfigurationError,
                ToolInputError,
                WatcherNotFoundError,
                classify_error,
            )
        except ImportError as e:
            pytest.fail(f"Failed to import errors module: {e}")

    def test_import_server_module(self):
        """Test importing the tools and server modules."""
        try:
            from notion_mcp.server import build_server, build_tools, main
            from notion_mcp.tools import NotionTools, run_tool
        except ImportError as e:
            pytest.fail(f"Failed to import server module: {e}")

    def test_import_package_init(self):
        """Test importing from package __init__."""
        try:
            from notion_mcp import (
                ServerConfig,
                TokenCredentials,
                NotionClient,
                NotionTools,
                TokenBucket,
                RetryOrchestrator,
                NotionAPIError,
            )
        except ImportError as e:
            pytest.fail(f"Failed to import from package: {e}")


class TestDependencyImports:
    """Test that all dependencies can be imported."""

    def test_import_requests(self):
        """Test that requests library is available."""
        try:
            import requests
        except ImportError as e:
            pytest.fail(f"Failed to import requests: {e}")

    def test_import_pydantic(self):
        """Test that pydantic is available."""
        try:
            import pydantic
            from pydantic import BaseModel, Field
        except ImportError as e:
            pytest.fail(f"Failed to import pydantic: {e}")

    def test_import_dateutil(self):
        """Test that python-dateutil is available."""
        try:
            from dateutil.parser import parse as parse_date
        except ImportError as e:
            pytest.fail(f"Failed to import dateutil: {e}")

    def test_import_mcp(self):
        try:
            from mcp.server.fastmcp import FastMCP
            from mcp.server.fastmcp.exceptions import ToolError
        except ImportError as e:
            pytest.fail(f"Failed to import mcp: {e}")

    def test_import_dotenv(self):
        try:
            from dotenv import load_dotenv
        except ImportError as e:
            pytest.fail(f"Failed to import python-dotenv: {e}")
