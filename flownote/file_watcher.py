"""Polling watcher that reports when a document's content changes."""

import hashlib
import logging
import threading
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class FileWatcher:
    """Watch a document file for content changes.

    A background thread compares the file's mtime every ``poll_interval``
    seconds and confirms a change with a SHA-256 of the content, so a
    touch without edits is not reported.
    """

    def __init__(
        self,
        file_path: str | Path,
        poll_interval: float = 1.0,
        on_change: Optional[Callable[[str], None]] = None,
    ):
        """
        Args:
            file_path: Document to watch
            poll_interval: Seconds between checks
            on_change: Called from the watcher thread with the new content
        """
        self.file_path = Path(file_path)
        self.poll_interval = poll_interval
        self.on_change = on_change
        self._mtime: Optional[float] = None
        self._digest: Optional[str] = None
        self._changed = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._snapshot()

    def _read(self) -> Optional[bytes]:
        try:
            return self.file_path.read_bytes()
        except OSError:
            return None

    def _snapshot(self) -> Optional[bytes]:
        """Record the current mtime and digest; returns the content read."""
        try:
            self._mtime = self.file_path.stat().st_mtime
        except OSError:
            self._mtime = None
        content = self._read()
        self._digest = hashlib.sha256(content).hexdigest() if content is not None else None
        return content

    def poll(self) -> bool:
        """Check once. Returns True if the content changed since the last snapshot."""
        try:
            mtime = self.file_path.stat().st_mtime
        except OSError:
            return False
        if mtime == self._mtime:
            return False

        previous = self._digest
        content = self._snapshot()
        if content is None or self._digest == previous:
            return False

        logger.debug("Detected change in %s", self.file_path)
        self._changed.set()
        if self.on_change is not None:
            self.on_change(content.decode("utf-8", errors="replace"))
        return True

    def _run(self):
        while not self._stop_event.wait(self.poll_interval):
            self.poll()

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self.poll_interval + 0.5)
            self._thread = None

    def has_changes(self) -> bool:
        return self._changed.is_set()

    def acknowledge_changes(self):
        self._changed.clear()

    def wait_for_change(self, timeout: Optional[float] = None) -> bool:
        """Block until a change is seen (or timeout); clears the flag when it returns True."""
        if self._changed.wait(timeout):
            self._changed.clear()
            return True
        return False

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
