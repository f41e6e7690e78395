"""
API key resolution and validation.

This module provides:
- Lookup of the Notion API key in the OS secret store
- Fallback to the NOTION_API_KEY environment variable
- Token validation via an authenticated API call (not format checking)

IMPORTANT: Per Notion's guidance, tokens are treated as opaque strings.
Validation is done by calling /users/me, not by checking prefixes.
"""

import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import CredentialNotFoundError, NotionAPIError, NotionConnectionError

logger = logging.getLogger(__name__)

SERVICE_NAME = "gemini-notion-extension"
API_KEY_ACCOUNT = "API_KEY"
API_KEY_ENV_VAR = "NOTION_API_KEY"
PLACEHOLDER_TOKEN = "secret_your_integration_token_here"


def _secret_store_command(platform: str, account: str) -> Optional[List[str]]:
    if platform == "darwin":
        return ["security", "find-generic-password", "-s", SERVICE_NAME, "-a", account, "-w"]
    if platform.startswith("linux"):
        return ["secret-tool", "lookup", "service", SERVICE_NAME, "account", account]
    return None


def get_credential(
    account: str,
    platform: Optional[str] = None,
    runner: Callable[..., Any] = subprocess.run
) -> Optional[str]:
    """
    Read a credential from the OS secret store.

    Uses the macOS Keychain (``security``) or libsecret (``secret-tool``).
    Other platforms have no store lookup.

    Args:
        account: Account name under the extension's service
        platform: Platform name (defaults to sys.platform)
        runner: Callable compatible with subprocess.run

    Returns:
        The stored secret, or None if absent or the lookup failed
    """
    command = _secret_store_command(platform or sys.platform, account)
    if command is None:
        return None

    try:
        result = runner(command, capture_output=True, text=True, check=True, timeout=10)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Secret store lookup for '{account}' failed: {e}")
        return None

    secret = (result.stdout or "").strip()
    return secret or None


def resolve_api_key(
    environ: Optional[Mapping[str, str]] = None,
    platform: Optional[str] = None,
    runner: Callable[..., Any] = subprocess.run
) -> str:
    """
    Resolve the Notion API key.

    Order: OS secret store, then the NOTION_API_KEY environment variable.
    The template placeholder value is ignored.

    Raises:
        CredentialNotFoundError: If no usable key is found
    """
    api_key = get_credential(API_KEY_ACCOUNT, platform=platform, runner=runner)
    if api_key:
        logger.debug("Using Notion API key from the OS secret store")
        return api_key

    env = os.environ if environ is None else environ
    api_key = (env.get(API_KEY_ENV_VAR) or "").strip()
    if api_key and api_key != PLACEHOLDER_TOKEN:
        return api_key

    raise CredentialNotFoundError(
        "Notion API key not found. Store it in the OS keychain under service "
        f"'{SERVICE_NAME}' (account '{API_KEY_ACCOUNT}') or set the "
        f"{API_KEY_ENV_VAR} environment variable."
    )


@dataclass
class AuthenticationResult:
    """
    Result of an authentication attempt.

    Attributes:
        success: Whether authentication was successful
        user_info: Information about the authenticated user/bot
        workspace_info: Information about the workspace
        error: Error message if authentication failed
    """
    success: bool
    user_info: Optional[Dict[str, Any]] = None
    workspace_info: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def validate_credentials(client: Any, max_retries: int = 1) -> AuthenticationResult:
    """
    Validate the configured token by calling /users/me.

    Args:
        client: NotionClient
        max_retries: Retry budget for the check

    Returns:
        AuthenticationResult with success status and user/workspace info
    """
    try:
        user_data = client.get_me(max_retries=max_retries)
    except NotionAPIError as e:
        if e.status_code == 401:
            return AuthenticationResult(success=False, error=e.message or "Invalid or expired token")
        if e.status_code == 403:
            return AuthenticationResult(
                success=False,
                error="Access forbidden - check integration permissions"
            )
        return AuthenticationResult(success=False, error=str(e))
    except NotionConnectionError as e:
        return AuthenticationResult(success=False, error=str(e))

    if user_data.get("object") != "user":
        return AuthenticationResult(
            success=False,
            error="Unexpected response from /users/me endpoint"
        )

    workspace_info = None
    if user_data.get("type") == "bot":
        workspace_name = user_data.get("bot", {}).get("workspace_name")
        if workspace_name:
            workspace_info = {"name": workspace_name}

    return AuthenticationResult(
        success=True,
        user_info=user_data,
        workspace_info=workspace_info
    )
