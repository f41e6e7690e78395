"""
Polling file watchers that create Notion pages for new files.

Each watcher scans one directory on its own PeriodicTask. New files are
marked processed before the page is created, so a file is attempted at
most once even if the create fails.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, Field, field_validator

from .errors import WatcherNotFoundError
from .rate_limiter import Clock
from .scheduler import PeriodicTask, ThreadScheduler
from .utils import format_datetime_for_api, rich_text

logger = logging.getLogger(__name__)

DEFAULT_FILE_FILTER = [".pdf", ".jpg", ".png"]


def normalize_extensions(extensions: Iterable[str]) -> List[str]:
    """Lower-case extensions and ensure a leading dot, keeping order."""
    normalized: List[str] = []
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = f".{ext}"
        if ext not in normalized:
            normalized.append(ext)
    return normalized


class WatcherConfig(BaseModel):
    """Settings for one folder watcher."""

    database_id: str = Field(
        ...,
        min_length=1,
        description="Database that receives one page per file"
    )
    file_filter: List[str] = Field(
        default_factory=lambda: list(DEFAULT_FILE_FILTER),
        description="File extensions to pick up"
    )
    title_property: str = Field(default="Name")
    file_property: str = Field(default="File Path")
    date_property: Optional[str] = Field(default="Upload Date")
    recursive: bool = Field(default=True)
    poll_interval: float = Field(
        default=5.0,
        gt=0,
        le=3600,
        description="Seconds between scans"
    )
    auto_process: bool = Field(
        default=True,
        description="Create pages for new files (otherwise only track them)"
    )

    @field_validator("file_filter")
    @classmethod
    def validate_file_filter(cls, v: List[str]) -> List[str]:
        normalized = normalize_extensions(v)
        if not normalized:
            raise ValueError("file_filter must contain at least one extension")
        return normalized


@dataclass
class WatcherEntry:
    """State of one active watcher."""

    watch_path: str
    config: WatcherConfig
    started_at: float
    started_monotonic: float
    processed_files: Set[str] = field(default_factory=set)
    handle: Optional[PeriodicTask] = None
    scans: int = 0
    created: int = 0
    failed: int = 0


def scan_folder_for_files(
    folder_path: str,
    extensions: Iterable[str],
    recursive: bool = True
) -> List[str]:
    """
    List files under ``folder_path`` whose extension is in ``extensions``.

    Raises:
        OSError: If ``folder_path`` itself cannot be listed. Unreadable
            subdirectories are logged and skipped.
    """
    wanted = set(normalize_extensions(extensions))
    files: List[str] = []

    for name in sorted(os.listdir(folder_path)):
        item_path = os.path.join(folder_path, name)
        if os.path.isfile(item_path):
            if os.path.splitext(name)[1].lower() in wanted:
                files.append(item_path)
        elif recursive and os.path.isdir(item_path):
            try:
                files.extend(scan_folder_for_files(item_path, wanted, recursive))
            except OSError as e:
                logger.warning(f"Skipping unreadable folder {item_path}: {e}")

    return files


def build_file_page(
    database_id: str,
    file_path: str,
    title_property: str = "Name",
    file_property: str = "File Path",
    date_property: Optional[str] = None,
    timestamp: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Build the create-page body for a file.

    The title is the file name without its extension.
    """
    title = os.path.splitext(os.path.basename(file_path))[0]
    properties: Dict[str, Any] = {
        title_property: {"title": rich_text(title)},
        file_property: {"rich_text": rich_text(file_path)},
    }
    if date_property:
        properties[date_property] = {
            "date": {"start": format_datetime_for_api(timestamp or datetime.now(timezone.utc))}
        }

    return {
        "parent": {"database_id": database_id},
        "properties": properties,
    }


class FileWatcherRegistry:
    """
    Registry of active folder watchers, keyed by watch path.

    At most one watcher exists per path; starting a watcher for a path
    that is already watched replaces the old one. All map mutations and
    timer cancellations happen under one lock.
    """

    def __init__(
        self,
        client: Any,
        scheduler: Optional[ThreadScheduler] = None,
        clock: Optional[Clock] = None,
        inter_file_delay: float = 0.5
    ):
        """
        Args:
            client: Object with a ``create_page(body)`` method, normally
                the NotionClient, whose calls go through the orchestrator
            scheduler: Creates the periodic scan tasks
            clock: Time source for uptime, timestamps and inter-file delay
            inter_file_delay: Pause in seconds after each created file
        """
        self.client = client
        self.scheduler = scheduler or ThreadScheduler()
        self.clock = clock or Clock()
        self.inter_file_delay = inter_file_delay
        self._lock = threading.Lock()
        self._watchers: Dict[str, WatcherEntry] = {}

    def __len__(self) -> int:
        return len(self._watchers)

    def __contains__(self, watch_path: str) -> bool:
        return watch_path in self._watchers

    def start(self, watch_path: str, config: WatcherConfig) -> Dict[str, Any]:
        """
        Start watching ``watch_path``, replacing any existing watcher.

        Raises:
            NotADirectoryError: If ``watch_path`` is not a directory
        """
        if not os.path.isdir(watch_path):
            raise NotADirectoryError(f"Not a directory: {watch_path}")

        with self._lock:
            previous = self._watchers.pop(watch_path, None)
            if previous is not None:
                logger.info(f"Replacing file watcher for {watch_path}")
                self._cancel(previous)

            entry = WatcherEntry(
                watch_path=watch_path,
                config=config,
                started_at=self.clock.time(),
                started_monotonic=self.clock.monotonic(),
            )
            entry.handle = self.scheduler.schedule(
                config.poll_interval,
                lambda: self.scan(entry),
                name=f"watcher:{watch_path}"
            )
            self._watchers[watch_path] = entry

        logger.info(
            f"File watcher started for {watch_path} "
            f"(every {config.poll_interval}s, filter {config.file_filter})"
        )
        return {
            "message": f"File watcher started for {watch_path}",
            "watchPath": watch_path,
            "databaseId": config.database_id,
            "fileFilter": config.file_filter,
            "pollInterval": f"{config.poll_interval:g}s",
            "replaced": previous is not None,
        }

    def stop(self, watch_path: Optional[str] = None) -> int:
        """
        Stop one watcher, or all watchers when no path is given.

        Returns:
            Number of watchers stopped

        Raises:
            WatcherNotFoundError: If ``watch_path`` is not being watched
        """
        with self._lock:
            if watch_path is not None:
                entry = self._watchers.get(watch_path)
                if entry is None:
                    raise WatcherNotFoundError(watch_path)
                self._cancel(entry)
                del self._watchers[watch_path]
                logger.info(f"File watcher stopped for {watch_path}")
                return 1

            count = len(self._watchers)
            for entry in self._watchers.values():
                self._cancel(entry)
            self._watchers.clear()

        logger.info(f"Stopped {count} file watchers")
        return count

    def list(self) -> List[Dict[str, Any]]:
        """Snapshot of active watchers."""
        now = self.clock.monotonic()
        with self._lock:
            entries = list(self._watchers.values())

        return [
            {
                "path": entry.watch_path,
                "config": entry.config.model_dump(),
                "status": "active",
                "startedAt": datetime.fromtimestamp(entry.started_at, tz=timezone.utc).isoformat(),
                "uptimeSeconds": int(now - entry.started_monotonic),
                "processedFiles": len(entry.processed_files),
                "pagesCreated": entry.created,
                "failures": entry.failed,
                "scans": entry.scans,
            }
            for entry in entries
        ]

    def scan(self, entry: WatcherEntry) -> int:
        """
        Run one scan for ``entry``.

        Returns:
            Number of newly seen files
        """
        config = entry.config
        entry.scans += 1

        try:
            files = scan_folder_for_files(
                entry.watch_path, config.file_filter, config.recursive
            )
        except OSError as e:
            logger.error(f"Error scanning folder {entry.watch_path}: {e}")
            return 0

        new_files = 0
        for file_path in files:
            if file_path in entry.processed_files:
                continue
            entry.processed_files.add(file_path)
            new_files += 1

            if not config.auto_process:
                continue

            logger.info(f"Processing: {file_path}")
            body = build_file_page(
                config.database_id,
                file_path,
                title_property=config.title_property,
                file_property=config.file_property,
                date_property=config.date_property,
                timestamp=datetime.fromtimestamp(self.clock.time(), tz=timezone.utc),
            )
            try:
                page = self.client.create_page(body)
                entry.created += 1
                logger.info(f"Created page {page.get('id')} for {file_path}")
            except Exception as e:
                entry.failed += 1
                logger.error(f"Failed to process {file_path}: {e}")

            self.clock.sleep(self.inter_file_delay)

        return new_files

    @staticmethod
    def _cancel(entry: WatcherEntry) -> None:
        if entry.handle is not None:
            entry.handle.cancel()
