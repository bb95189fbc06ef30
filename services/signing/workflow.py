"""
Signing Workflow

Pipeline steps over a SigningSession, in strict order:

    context → item data → template details → role mapping → submission

Calling a step before the one it depends on raises ValidationError.
These are plain functions: all state lives in the session passed in,
all remote access goes through the clients passed in.
"""

import logging
from typing import Any, Dict, List, Optional

from .assets import AssetResolver
from .column_extractor import ColumnExtractor
from .context_resolver import ContextResolver
from .docuseal_client import DocuSealClient
from .exceptions import NotFoundError, ValidationError
from .monday_client import MondayClient, mock_board_items, mock_item
from .preview_files import PreviewFileManager
from .role_mapper import RoleMapper
from .session import SigningSession
from .submission_builder import SubmissionBuilder
from .types import (
    Contact,
    FileReference,
    PreviewHandle,
    RawItem,
    ResolvedContext,
    SubmissionMetadata,
    SubmissionRequest,
    SubmissionResult,
    Template
)

logger = logging.getLogger(__name__)


def start_session(
    session: SigningSession,
    resolver: ContextResolver,
    host_context: Optional[Dict[str, Any]] = None
) -> ResolvedContext:
    """Resolve the context and reset the session to it."""
    context = resolver.resolve(host_context)
    session.set_context(context)
    if context.error:
        session.last_error = {'error': context.error, 'error_type': 'ContextError', 'retryable': True}
    return context


def load_item(
    session: SigningSession,
    client: MondayClient,
    extractor: ColumnExtractor,
    item_id: Optional[str] = None
) -> bool:
    """
    Fetch the item and extract its contacts and files.

    Returns:
        False when a newer load superseded this one and the result was discarded
    """
    context = _require_context(session)
    item_id = item_id or context.item_id
    if not item_id:
        raise ValidationError('No item id available. Open the app from an item.', field='item_id')

    token = session.begin_item_load()
    if context.is_mock_mode:
        item = mock_item(item_id)
    else:
        item = client.get_item(item_id)

    return session.apply_item(token, extractor.extract(item), AssetResolver(client))


def search_item(session: SigningSession, client: MondayClient, needle: str) -> RawItem:
    """
    Find an item on the context board by id, name or request code.

    Raises:
        NotFoundError: nothing on the board matches
    """
    context = _require_context(session)
    needle = (needle or '').strip()
    if not needle:
        raise ValidationError('Enter an item id or name to search for', field='q')

    if context.is_mock_mode:
        match = next(
            (i for i in mock_board_items() if i['id'] == needle or needle.lower() in i['name'].lower()),
            None
        )
        item = mock_item(match['id']) if match else None
    elif not context.board_id:
        raise ValidationError('No board available to search', field='board_id')
    else:
        item = client.find_item(context.board_id, needle)

    if item is None:
        raise NotFoundError(f"No item matching '{needle}' on this board", resource='item')
    return item


def list_templates(session: SigningSession, docuseal: DocuSealClient) -> List[Template]:
    templates = docuseal.list_templates()
    session.templates = tuple(templates)
    return templates


def select_template(
    session: SigningSession,
    docuseal: DocuSealClient,
    template_id: Optional[str]
) -> Optional[Template]:
    """
    Fetch template details and start a fresh mapping.

    An empty template id clears the selection.
    """
    _require_item(session)
    if not template_id:
        session.clear_template()
        return None

    token = session.begin_template_load()
    template = docuseal.get_template_details(template_id)
    if not session.apply_template(token, template):
        return None

    logger.info(f"Selected template {template.template_id} with {len(template.roles)} role(s)")
    return template


def assign_role(session: SigningSession, role_id: str, email: Optional[str]) -> Optional[Contact]:
    return _require_mapper(session).assign_email(role_id, email)


def clear_role(session: SigningSession, role_id: str) -> None:
    _require_mapper(session).clear(role_id)


def build_request(session: SigningSession, send_email: bool = True) -> SubmissionRequest:
    """Build the submission request from the session's current mapping."""
    mapper = _require_mapper(session)
    metadata = SubmissionMetadata(
        item_id=session.context.item_id,
        board_id=session.context.board_id or session.item.board_id,
        item_name=session.item.name,
        template_name=session.template.name
    )
    return SubmissionBuilder.build(session.template, mapper.assignment, metadata, send_email=send_email)


def submit(session: SigningSession, docuseal: DocuSealClient, send_email: bool = True) -> SubmissionResult:
    """Build and send the signature request."""
    request = build_request(session, send_email=send_email)
    result = docuseal.create_submission(request)
    session.last_submission = result
    session.dismiss_error()

    logger.info(
        f"Signature request {result.submission_id} sent for item {request.metadata.item_id} "
        f"({len(request.submitters)} signer(s))"
    )
    return result


def resolve_file(session: SigningSession, index: int) -> FileReference:
    """Resolve the URL of the file at `index` and keep the resolved reference."""
    _require_item(session)
    file_ref = session.get_file(index)
    resolved = session.assets.resolve(file_ref)
    # The item may have been switched while resolving; the new item keeps its own files
    session.replace_file(index, file_ref, resolved)
    return resolved


def open_preview(
    session: SigningSession,
    client: MondayClient,
    previews: PreviewFileManager,
    index: int
) -> PreviewHandle:
    """Download the file at `index` into a temporary preview handle."""
    _require_item(session)
    item, contacts = session.item, session.contacts
    file_ref = resolve_file(session, index)
    if not file_ref.resolved_url:
        raise ValidationError(f"File '{file_ref.file_name}' has no download URL", field='file')

    content, content_type = client.download_file(file_ref.resolved_url)
    mime_type = content_type.split(';')[0].strip() or 'application/pdf'
    return previews.create(content, file_ref.file_name, mime_type=mime_type)


def docuseal_template_url(session: SigningSession, docuseal: DocuSealClient, index: int) -> str:
    """
    Link to DocuSeal's template editor prefilled with the file at `index`
    and the item's contacts as submitters.
    """
    _require_item(session)
    item, contacts = session.item, session.contacts
    file_ref = resolve_file(session, index)
    if not file_ref.resolved_url:
        raise ValidationError(f"File '{file_ref.file_name}' has no download URL", field='file')

    name = item.name or f"Documento {item.item_id}"
    return docuseal.new_template_url(name, file_ref.resolved_url, contacts)


def _require_context(session: SigningSession) -> ResolvedContext:
    if session.context is None:
        raise ValidationError('Resolve the context before loading item data', field='context')
    return session.context


def _require_item(session: SigningSession) -> None:
    _require_context(session)
    if session.item is None:
        raise ValidationError('Load the item data before choosing a template', field='item')


def _require_mapper(session: SigningSession) -> RoleMapper:
    _require_item(session)
    if session.mapper is None or session.template is None:
        raise ValidationError('Select a template before assigning signers', field='template')
    return session.mapper
