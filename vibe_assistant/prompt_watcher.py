# vibe_assistant/prompt_watcher.py

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger("vibe_assistant")


@dataclass
class FileState:
    path: Path
    last_hash: str
    last_modified: float


@dataclass
class WatchEvent:
    """A prompt file change."""

    path: Path
    event_type: str  # "created", "modified", "deleted"
    timestamp: datetime = field(default_factory=datetime.now)


class NullPromptWatcher:
    """Watcher used when hot reload is off (production, or the real one failed to start)."""

    running = False

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass


class PromptWatcher:
    """
    Polls a directory on a daemon thread and reports created / modified / deleted files.

    Changes are detected by content hash, so touching a file without editing it is not
    reported. The callback runs on the watcher thread.
    """

    def __init__(
        self,
        directory,
        on_change: Optional[Callable[[list[WatchEvent]], None]] = None,
        patterns: Optional[list[str]] = None,
        poll_interval: float = 1.0,
    ):
        self.directory = Path(directory)
        self.on_change = on_change
        self.patterns = patterns or ["*.txt"]
        self.poll_interval = poll_interval
        self.file_states: dict[Path, FileState] = {}
        self.running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _compute_hash(self, path: Path) -> str:
        try:
            return hashlib.md5(path.read_bytes()).hexdigest()
        except OSError:
            return ""

    def _scan_files(self) -> dict[Path, FileState]:
        files = {}
        for pattern in self.patterns:
            for path in self.directory.glob(pattern):
                if path.is_file():
                    files[path] = FileState(
                        path=path,
                        last_hash=self._compute_hash(path),
                        last_modified=path.stat().st_mtime,
                    )
        return files

    def _detect_changes(self) -> list[WatchEvent]:
        events = []
        current_files = self._scan_files()

        for path, state in current_files.items():
            if path not in self.file_states:
                events.append(WatchEvent(path=path, event_type="created"))
            elif state.last_hash != self.file_states[path].last_hash:
                events.append(WatchEvent(path=path, event_type="modified"))

        for path in self.file_states:
            if path not in current_files:
                events.append(WatchEvent(path=path, event_type="deleted"))

        self.file_states = current_files
        return events

    def poll_once(self) -> list[WatchEvent]:
        events = self._detect_changes()
        if events and self.on_change:
            try:
                self.on_change(events)
            except Exception as e:
                logger.error("Error processing prompt changes: %s", e)
        return events

    def start(self) -> None:
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Prompt directory not found: {self.directory}")
        if self.running:
            return

        self.file_states = self._scan_files()
        self._stop_event.clear()
        self.running = True
        self._thread = threading.Thread(target=self._run, name="prompt-watcher", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop_event.wait(self.poll_interval):
            try:
                self.poll_once()
            except OSError as e:
                logger.error("Prompt watcher scan failed: %s", e)

    def stop(self) -> None:
        self.running = False
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self.poll_interval + 1.0)
            self._thread = None
