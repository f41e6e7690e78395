"""
Notion MCP Server

An MCP server exposing a Notion workspace as tools: search, pages,
databases, blocks, comments, projects, conversation export and folder
watchers. All API calls share one token-bucket rate limiter and retry
orchestrator.
"""

from .config import ServerConfig, TokenCredentials
from .client import NotionClient
from .errors import (
    ErrorKind,
    NotionAPIError,
    NotionAuthenticationError,
    NotionConfigurationError,
    NotionConnectionError,
    NotionNotFoundError,
    NotionPermissionError,
    NotionRateLimitError,
    NotionValidationError,
    ToolInputError,
    classify_error,
)
from .rate_limiter import Clock, TokenBucket
from .retry import RetryOrchestrator, RetryPolicy
from .tools import NotionTools
from .usage import UsageTracker
from .watcher import FileWatcherRegistry, WatcherConfig

__version__ = "1.0.0"
__all__ = [
    # Config
    "ServerConfig",
    "TokenCredentials",
    # Client
    "NotionClient",
    # Admission control
    "Clock",
    "TokenBucket",
    "RetryOrchestrator",
    "RetryPolicy",
    "UsageTracker",
    # Tools
    "NotionTools",
    "FileWatcherRegistry",
    "WatcherConfig",
    # Exceptions
    "ErrorKind",
    "classify_error",
    "NotionAPIError",
    "NotionAuthenticationError",
    "NotionConfigurationError",
    "NotionConnectionError",
    "NotionNotFoundError",
    "NotionPermissionError",
    "NotionRateLimitError",
    "NotionValidationError",
    "ToolInputError",
]
