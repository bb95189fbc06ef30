"""
Preview Files

Temporary local copies of PDFs opened for preview. Every copy is a
handle with an expiry; a background thread releases expired handles
on a fixed interval (running any other registered sweep tasks with
it), and shutdown releases everything that is left.
"""

import logging
import tempfile
import threading
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .exceptions import NotFoundError
from .types import PreviewHandle

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300  # 5 minutes
DEFAULT_SWEEP_INTERVAL = 300  # 5 minutes
DEFAULT_DIR_NAME = 'item_sign_previews'


class PreviewFileManager:
    """
    Registry of temporary preview files.

    Usage:
        previews = PreviewFileManager()
        previews.start_sweeper()
        handle = previews.create(pdf_bytes, 'convenio.pdf')
        ...
        previews.release(handle.handle_id)
    """

    def __init__(
        self,
        directory: Optional[str] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        sweep_interval: int = DEFAULT_SWEEP_INTERVAL
    ):
        self.directory = Path(directory) if directory else Path(tempfile.gettempdir()) / DEFAULT_DIR_NAME
        self.directory.mkdir(parents=True, exist_ok=True)
        self.ttl = timedelta(seconds=ttl_seconds)
        self.sweep_interval = sweep_interval
        self._handles: Dict[str, PreviewHandle] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._sweep_tasks: List[Callable[[], Any]] = []

    def create(
        self,
        content: bytes,
        file_name: str,
        mime_type: str = 'application/pdf',
        ttl_seconds: Optional[int] = None
    ) -> PreviewHandle:
        """Write `content` to a temporary file and register it for release."""
        handle_id = uuid.uuid4().hex
        suffix = Path(file_name).suffix or '.pdf'
        path = self.directory / f"{handle_id}{suffix}"
        path.write_bytes(content)

        now = datetime.now()
        ttl = timedelta(seconds=ttl_seconds) if ttl_seconds is not None else self.ttl
        handle = PreviewHandle(
            handle_id=handle_id,
            path=str(path),
            file_name=file_name,
            size_bytes=len(content),
            mime_type=mime_type,
            created_at=now,
            expires_at=now + ttl
        )

        with self._lock:
            self._handles[handle_id] = handle

        logger.info(f"Preview registered: {file_name} (expires in {int(ttl.total_seconds())}s)")
        return handle

    def get(self, handle_id: str, now: Optional[datetime] = None) -> PreviewHandle:
        """
        Look up a live handle.

        Raises:
            NotFoundError: unknown, released or expired handle
        """
        now = now or datetime.now()
        with self._lock:
            handle = self._handles.get(handle_id)

        if handle is None:
            raise NotFoundError(f"Preview {handle_id} not found or already released", resource='preview')

        if now > handle.expires_at:
            self.release(handle_id)
            raise NotFoundError(f"Preview {handle_id} has expired", resource='preview')

        return handle

    def release(self, handle_id: str) -> bool:
        """Delete one preview file. Returns False if the handle was unknown."""
        with self._lock:
            handle = self._handles.pop(handle_id, None)

        if handle is None:
            return False

        self._delete_file(handle)
        logger.info(f"Preview released: {handle.file_name}")
        return True

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Release every handle past its expiry. Returns how many were released."""
        now = now or datetime.now()
        with self._lock:
            expired = [h for h in self._handles.values() if now > h.expires_at]
            for handle in expired:
                del self._handles[handle.handle_id]

        for handle in expired:
            self._delete_file(handle)

        if expired:
            logger.info(f"Preview sweep released {len(expired)} expired file(s)")
        return len(expired)

    def release_all(self) -> int:
        """Release every handle regardless of expiry."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()

        for handle in handles:
            self._delete_file(handle)

        if handles:
            logger.info(f"Released all {len(handles)} preview file(s)")
        return len(handles)

    def info(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Active handles with the seconds each has left."""
        now = now or datetime.now()
        with self._lock:
            handles = list(self._handles.values())

        return {
            'total': len(handles),
            'previews': [
                dict(h.to_dict(), seconds_left=max(0, int((h.expires_at - now).total_seconds())))
                for h in handles
            ]
        }

    def _delete_file(self, handle: PreviewHandle) -> None:
        try:
            Path(handle.path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete preview file {handle.path}: {e}")

    # ---------- background sweep ----------------------------------------------

    def add_sweep_task(self, task: Callable[[], Any]) -> None:
        """Run `task` on every sweep, after expired previews are released."""
        self._sweep_tasks.append(task)

    def run_sweep(self) -> None:
        """One sweep pass. A failing task is logged and does not stop the others."""
        for task in [self.sweep_expired] + self._sweep_tasks:
            try:
                task()
            except Exception as e:
                logger.error(f"Sweep task {getattr(task, '__qualname__', task)} failed: {e}")

    def start_sweeper(self) -> None:
        """Start the periodic sweep thread (idempotent)."""
        if self._thread and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._sweep_loop, name='preview-sweeper', daemon=True)
        self._thread.start()
        logger.debug(f"Preview sweeper started (every {self.sweep_interval}s)")

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self.sweep_interval):
            self.run_sweep()

    def stop_sweeper(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._thread = None

    def shutdown(self) -> int:
        """Stop the sweeper and release everything. Registered with atexit by the app."""
        self.stop_sweeper()
        return self.release_all()
