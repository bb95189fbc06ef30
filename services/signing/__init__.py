"""
Work-Item Signing Integration

Connects monday.com work items to DocuSeal signature requests.
Contacts and PDFs are extracted from an item's columns, the user maps
template signer roles to those contacts, and the completed mapping is
sent to DocuSeal as a submission.

Usage:
    from services.signing import (
        ColumnExtractor, ContextResolver, DocuSealClient, MondayClient,
        SigningSession, workflow
    )

    session = SigningSession()
    workflow.start_session(session, resolver, host_context)
    workflow.load_item(session, monday, extractor)
    workflow.select_template(session, docuseal, template_id)
    workflow.assign_role(session, role_id, 'jane@example.org')
    result = workflow.submit(session, docuseal)
"""

from .types import (
    ColumnKind,
    ContactSource,
    ContextMode,
    ColumnEntry,
    RawItem,
    Contact,
    FileReference,
    AssetInfo,
    SignerRole,
    Template,
    Submitter,
    SubmissionMetadata,
    SubmissionRequest,
    SubmissionResult,
    ResolvedContext,
    PreviewHandle
)

from .exceptions import (
    SigningError,
    ConfigurationError,
    AuthenticationError,
    NotFoundError,
    ValidationError,
    ConnectivityError,
    RemoteServiceError,
    ParseError
)

from .rules import ColumnRules, load_column_rules
from .column_extractor import ColumnExtractor, ExtractedItem, find_emails
from .assets import AssetResolver
from .role_mapper import RoleMapper
from .submission_builder import SubmissionBuilder
from .context_resolver import ContextResolver
from .monday_client import MondayClient
from .docuseal_client import DocuSealClient
from .preview_files import PreviewFileManager
from .session import SigningSession, SessionStore
from . import workflow

__all__ = [
    # Types
    'ColumnKind',
    'ContactSource',
    'ContextMode',
    'ColumnEntry',
    'RawItem',
    'Contact',
    'FileReference',
    'AssetInfo',
    'SignerRole',
    'Template',
    'Submitter',
    'SubmissionMetadata',
    'SubmissionRequest',
    'SubmissionResult',
    'ResolvedContext',
    'PreviewHandle',

    # Exceptions
    'SigningError',
    'ConfigurationError',
    'AuthenticationError',
    'NotFoundError',
    'ValidationError',
    'ConnectivityError',
    'RemoteServiceError',
    'ParseError',

    # Services
    'ColumnRules',
    'load_column_rules',
    'ColumnExtractor',
    'ExtractedItem',
    'find_emails',
    'AssetResolver',
    'RoleMapper',
    'SubmissionBuilder',
    'ContextResolver',
    'MondayClient',
    'DocuSealClient',
    'PreviewFileManager',
    'SigningSession',
    'SessionStore',
    'workflow',
]
