"""
Signing Integration Type Definitions

Dataclasses for the records flowing through the pipeline:
raw work-item columns in, contacts and files out, signer roles
from the template, and the final submission request.

Records produced by extraction are immutable and are discarded
whenever the item context changes.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ColumnKind(Enum):
    """How a column is treated by extraction."""
    PERSON = "person"
    EMAIL = "email"
    FILE = "file"
    OTHER = "other"


class ContactSource(Enum):
    """Where a contact was found on the item."""
    EMAIL_COLUMN = "email_column"
    PERSON_COLUMN = "person_column"


class ContextMode(Enum):
    """Execution context the session is running in."""
    EMBEDDED = "embedded"
    TEST_LIVE = "test-with-live-data"
    TEST_MOCK = "test-with-mock-data"


@dataclass(frozen=True)
class ColumnEntry:
    """
    One column value on a work item.

    Attributes:
        column_id: Column identifier on the board
        title: Column title as shown to users
        type: Platform type tag (email, person, file, text, ...)
        text: Rendered text value
        value: Structured value payload (JSON string, already-parsed dict, or None)
    """
    column_id: str
    title: str
    type: str
    text: Optional[str] = None
    value: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ColumnEntry':
        """
        Build from a column value as returned by the work-item API.

        Accepts the GraphQL shape (title nested under 'column') and a flat shape.
        """
        column = data.get('column') or {}
        return cls(
            column_id=str(data.get('id') or column.get('id') or ''),
            title=data.get('title') or column.get('title') or '',
            type=(data.get('type') or column.get('type') or '').lower(),
            text=data.get('text'),
            value=data.get('value')
        )


@dataclass(frozen=True)
class RawItem:
    """A work item with its ordered column entries."""
    item_id: str
    name: str
    columns: Tuple[ColumnEntry, ...] = ()
    board_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RawItem':
        board = data.get('board') or {}
        columns = tuple(ColumnEntry.from_dict(c) for c in data.get('column_values') or [])
        board_id = board.get('id') or data.get('board_id')
        return cls(
            item_id=str(data.get('id', '')),
            name=data.get('name') or '',
            columns=columns,
            board_id=str(board_id) if board_id else None
        )


@dataclass(frozen=True)
class Contact:
    """
    A person who can be assigned to a signer role.

    The email is the identity key within a mapping.
    """
    email: str
    display_name: str
    source_column_id: str
    source_column_title: str
    source: ContactSource = ContactSource.EMAIL_COLUMN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'email': self.email,
            'name': self.display_name,
            'column_id': self.source_column_id,
            'column_title': self.source_column_title,
            'source': self.source.value
        }


@dataclass(frozen=True)
class FileReference:
    """
    A PDF attached to the item.

    Two-phase value: the reference is known at extraction time, the URL
    may only be known after resolving the asset id.
    """
    file_name: str
    source_column_id: str
    source_column_title: str = ''
    remote_asset_id: Optional[str] = None
    resolved_url: Optional[str] = None
    size_bytes: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return bool(self.resolved_url)

    def with_url(self, url: str, size_bytes: Optional[int] = None) -> 'FileReference':
        return replace(self, resolved_url=url, size_bytes=size_bytes if size_bytes is not None else self.size_bytes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file_name': self.file_name,
            'asset_id': self.remote_asset_id,
            'url': self.resolved_url,
            'size_bytes': self.size_bytes,
            'column_id': self.source_column_id,
            'column_title': self.source_column_title,
            'resolved': self.is_resolved
        }


@dataclass(frozen=True)
class AssetInfo:
    """Answer of the remote asset lookup."""
    asset_id: str
    url: str
    name: str = ''
    size_bytes: Optional[int] = None


@dataclass(frozen=True)
class SignerRole:
    """A submitter slot defined by a signing template."""
    role_id: str
    display_name: str = ''

    @property
    def label(self) -> str:
        """Display name, falling back to the identifier."""
        return self.display_name or self.role_id

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.role_id, 'name': self.display_name}


@dataclass(frozen=True)
class Template:
    """
    A signing template.

    `roles` is empty for entries of the template listing and filled
    once the template details have been fetched.
    """
    template_id: str
    name: str
    roles: Tuple[SignerRole, ...] = ()
    description: str = ''
    documents: Tuple[Dict[str, Any], ...] = ()

    def get_role(self, role_id: str) -> Optional[SignerRole]:
        """Get a role by its identifier."""
        return next((r for r in self.roles if r.role_id == role_id), None)

    def get_role_ids(self) -> List[str]:
        return [r.role_id for r in self.roles]

    @classmethod
    def from_docuseal(cls, data: Dict[str, Any]) -> 'Template':
        """Create a Template from a DocuSeal template record."""
        roles = []
        for index, submitter in enumerate(data.get('submitters') or []):
            # Names need not be unique, so only the uuid or the position identifies a role
            role_id = submitter.get('uuid') or f"submitter-{index + 1}"
            roles.append(SignerRole(role_id=str(role_id), display_name=submitter.get('name') or ''))

        return cls(
            template_id=str(data['id']),
            name=data.get('name') or '',
            roles=tuple(roles),
            description=data.get('description') or '',
            documents=tuple(data.get('documents') or [])
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.template_id,
            'name': self.name,
            'description': self.description,
            'roles': [r.to_dict() for r in self.roles]
        }


@dataclass(frozen=True)
class Submitter:
    """
    A DocuSeal submitter ready for API submission.
    """
    role: str  # DocuSeal role name
    email: str
    name: str
    role_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to DocuSeal API format."""
        return {
            'role': self.role,
            'email': self.email,
            'name': self.name
        }


@dataclass(frozen=True)
class SubmissionMetadata:
    """Opaque pass-through fields recorded on the remote submission."""
    item_id: Optional[str] = None
    board_id: Optional[str] = None
    item_name: Optional[str] = None
    template_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'monday_item_id': self.item_id,
            'monday_board_id': self.board_id,
            'monday_item_name': self.item_name,
            'template_name': self.template_name,
            'created_from': 'monday_app'
        }


@dataclass(frozen=True)
class SubmissionRequest:
    """
    A finalized signature request.

    Built only from a total assignment; immutable once sent.
    """
    template_id: str
    submitters: Tuple[Submitter, ...]
    metadata: SubmissionMetadata = field(default_factory=SubmissionMetadata)
    send_email: bool = True

    def to_payload(self) -> Dict[str, Any]:
        """Render the DocuSeal /submissions payload."""
        template_id = int(self.template_id) if str(self.template_id).isdigit() else self.template_id
        return {
            'template_id': template_id,
            'send_email': self.send_email,
            'submitters': [s.to_dict() for s in self.submitters],
            'metadata': self.metadata.to_dict()
        }


@dataclass(frozen=True)
class SubmissionResult:
    """What the signing service returned for a created submission."""
    submission_id: Optional[str]
    status: str
    submitters: Tuple[Dict[str, Any], ...] = ()
    expires_at: Optional[str] = None
    slug: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_docuseal(cls, data: Any) -> 'SubmissionResult':
        """
        Normalize a DocuSeal response.

        DocuSeal answers POST /submissions with a list of submitter records;
        GET /submissions/{id} returns a submission object.
        """
        if isinstance(data, list):
            first = data[0] if data else {}
            submission_id = first.get('submission_id')
            statuses = {s.get('status') for s in data}
            status = statuses.pop() if len(statuses) == 1 else 'pending'
            return cls(
                submission_id=str(submission_id) if submission_id is not None else None,
                status=status or 'pending',
                submitters=tuple(data),
                created_at=first.get('created_at')
            )

        submission_id = data.get('id')
        return cls(
            submission_id=str(submission_id) if submission_id is not None else None,
            status=data.get('status') or 'pending',
            submitters=tuple(data.get('submitters') or []),
            expires_at=data.get('expire_at') or data.get('expires_at'),
            slug=data.get('slug'),
            created_at=data.get('created_at')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.submission_id,
            'status': self.status,
            'submitters': list(self.submitters),
            'expires_at': self.expires_at,
            'slug': self.slug,
            'created_at': self.created_at
        }


@dataclass(frozen=True)
class ResolvedContext:
    """
    Where the session is running and which item it works on.

    `error` keeps the message of a failure that forced the mock fallback.
    """
    item_id: Optional[str]
    board_id: Optional[str]
    mode: ContextMode
    user: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def is_test_mode(self) -> bool:
        return self.mode != ContextMode.EMBEDDED

    @property
    def is_mock_mode(self) -> bool:
        return self.mode == ContextMode.TEST_MOCK

    def with_item(self, item_id: str) -> 'ResolvedContext':
        return replace(self, item_id=item_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'item_id': self.item_id,
            'board_id': self.board_id,
            'mode': self.mode.value,
            'user': self.user,
            'is_test_mode': self.is_test_mode,
            'is_mock_mode': self.is_mock_mode,
            'error': self.error
        }


@dataclass(frozen=True)
class PreviewHandle:
    """A temporary local copy of a file, released after `expires_at`."""
    handle_id: str
    path: str
    file_name: str
    size_bytes: int
    mime_type: str
    created_at: datetime
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.handle_id,
            'file_name': self.file_name,
            'size_bytes': self.size_bytes,
            'mime_type': self.mime_type,
            'created_at': self.created_at.isoformat(),
            'expires_at': self.expires_at.isoformat()
        }
