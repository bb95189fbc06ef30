"""
Signing Session State

The one explicit state object of a signing session: resolved context,
the item's extracted contacts and files, the selected template and
its role mapper.

Loads are last-request-wins: each load takes a token, and a result
arriving with a token older than the latest load is discarded.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .assets import AssetResolver
from .column_extractor import ExtractedItem
from .exceptions import NotFoundError, ParseError, SigningError
from .role_mapper import RoleMapper
from .types import Contact, FileReference, RawItem, ResolvedContext, SubmissionResult, Template

logger = logging.getLogger(__name__)

DEFAULT_IDLE_SECONDS = 3600  # 1 hour


class SigningSession:
    """State of one user's signing session."""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex
        self.context: Optional[ResolvedContext] = None
        self.item: Optional[RawItem] = None
        self.contacts: Tuple[Contact, ...] = ()
        self.files: List[FileReference] = []
        self.parse_errors: Tuple[ParseError, ...] = ()
        self.assets: Optional[AssetResolver] = None
        self.templates: Tuple[Template, ...] = ()
        self.template: Optional[Template] = None
        self.mapper: Optional[RoleMapper] = None
        self.last_submission: Optional[SubmissionResult] = None
        self.last_error: Optional[Dict[str, Any]] = None
        self._item_generation = 0
        self._template_generation = 0
        self.last_access = datetime.now()
        self._lock = threading.RLock()

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_access = now or datetime.now()

    # ---------- context ------------------------------------------------------

    def set_context(self, context: ResolvedContext) -> None:
        """New context: everything derived from the previous one is dropped."""
        with self._lock:
            self.context = context
            self._item_generation += 1
            self._reset_item()

    # ---------- item ---------------------------------------------------------

    def begin_item_load(self) -> int:
        """Start an item load; returns its token."""
        with self._lock:
            self._item_generation += 1
            return self._item_generation

    def apply_item(self, token: int, extracted: ExtractedItem, assets: AssetResolver) -> bool:
        """
        Store a loaded item unless a newer load has started since `token`.

        Returns:
            True if applied, False if discarded as stale
        """
        with self._lock:
            if token != self._item_generation:
                logger.info(
                    f"Discarding stale item {extracted.item.item_id} "
                    f"(load {token}, current {self._item_generation})"
                )
                return False

            self._reset_item()
            item = extracted.item
            self.item = item
            self.contacts = tuple(extracted.contacts)
            self.files = list(extracted.files)
            self.parse_errors = tuple(extracted.errors)
            self.assets = assets
            if self.context and self.context.item_id != item.item_id:
                self.context = self.context.with_item(item.item_id)

            logger.info(
                f"Loaded item {item.item_id}: {len(self.contacts)} contact(s), "
                f"{len(self.files)} PDF(s), {len(self.parse_errors)} unreadable column(s)"
            )
            return True

    def _reset_item(self) -> None:
        # A template load started for the previous item must not land on the new one
        self._template_generation += 1
        self.item = None
        self.contacts = ()
        self.files = []
        self.parse_errors = ()
        self.assets = None
        self._reset_template()

    def get_file(self, index: int) -> FileReference:
        with self._lock:
            if index < 0 or index >= len(self.files):
                raise NotFoundError(f"No file at position {index} on this item", resource='file')
            return self.files[index]

    def replace_file(self, index: int, original: FileReference, file_ref: FileReference) -> bool:
        """
        Swap `original` at `index` for `file_ref`.

        Returns:
            False if the slot no longer holds `original` (the item changed)
        """
        with self._lock:
            if not 0 <= index < len(self.files) or self.files[index] is not original:
                logger.info(f"Discarding resolved file '{file_ref.file_name}': item changed")
                return False
            self.files[index] = file_ref
            return True

    # ---------- template -----------------------------------------------------

    def begin_template_load(self) -> int:
        with self._lock:
            self._template_generation += 1
            return self._template_generation

    def apply_template(self, token: int, template: Template) -> bool:
        """Select a template and start a fresh mapping, unless superseded."""
        with self._lock:
            if token != self._template_generation:
                logger.info(f"Discarding stale template {template.template_id}")
                return False

            self.template = template
            self.mapper = RoleMapper(template.roles, self.contacts)
            self.last_submission = None
            return True

    def clear_template(self) -> None:
        with self._lock:
            self._template_generation += 1
            self._reset_template()

    def _reset_template(self) -> None:
        self.template = None
        self.mapper = None
        self.last_submission = None

    # ---------- errors -------------------------------------------------------

    def record_error(self, error: SigningError) -> None:
        self.last_error = {
            'error': error.user_message,
            'error_type': type(error).__name__,
            'retryable': error.retryable
        }

    def dismiss_error(self) -> None:
        self.last_error = None

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'session_id': self.session_id,
                'context': self.context.to_dict() if self.context else None,
                'item': {'id': self.item.item_id, 'name': self.item.name} if self.item else None,
                'contacts': [c.to_dict() for c in self.contacts],
                'files': [f.to_dict() for f in self.files],
                'parse_errors': [e.to_dict() for e in self.parse_errors],
                'template': self.template.to_dict() if self.template else None,
                'mapping': self.mapper.to_dict() if self.mapper else None,
                'last_submission': self.last_submission.to_dict() if self.last_submission else None,
                'last_error': self.last_error
            }


class SessionStore:
    """
    In-memory, process-local map of session id → SigningSession.

    Sessions idle for longer than `idle_seconds` are dropped by
    expire_idle(), which the app runs on the preview sweep interval.
    """

    def __init__(self, idle_seconds: int = DEFAULT_IDLE_SECONDS):
        self.idle_timeout = timedelta(seconds=idle_seconds)
        self._sessions: Dict[str, SigningSession] = {}
        self._lock = threading.Lock()

    def get_or_create(self, session_id: Optional[str], now: Optional[datetime] = None) -> SigningSession:
        with self._lock:
            session = self._sessions.get(session_id) if session_id else None
            if session is None:
                session = SigningSession(session_id)
                self._sessions[session.session_id] = session
            session.touch(now)
            return session

    def get(self, session_id: str) -> Optional[SigningSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def expire_idle(self, now: Optional[datetime] = None) -> int:
        """Drop sessions not accessed within the idle timeout. Returns how many were dropped."""
        now = now or datetime.now()
        with self._lock:
            idle = [
                sid for sid, s in self._sessions.items()
                if now - s.last_access > self.idle_timeout
            ]
            for sid in idle:
                del self._sessions[sid]

        if idle:
            logger.info(f"Expired {len(idle)} idle signing session(s)")
        return len(idle)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
