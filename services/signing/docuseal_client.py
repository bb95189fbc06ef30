"""
DocuSeal Client

Thin wrapper around the DocuSeal API for the signing integration.
Handles authentication, request building, and error handling.

Runs in mock mode when no API key is configured, returning the
development templates and a simulated submission.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlencode

import requests

from .exceptions import NotFoundError, from_request_exception
from .monday_client import DUMMY_PDF_URL
from .types import Contact, SubmissionRequest, SubmissionResult, Template

logger = logging.getLogger(__name__)

SERVICE_NAME = 'DocuSeal'
DEFAULT_API_URL = 'http://localhost:3000'

# Request timeout
DEFAULT_TIMEOUT = 30

MOCK_SUBMISSION_LIFETIME = timedelta(days=30)

MOCK_TEMPLATES = {
    'mock-template-1': {
        'id': 'mock-template-1',
        'name': 'Convenio de Voluntariado',
        'description': 'Plantilla para convenios con voluntarios',
        'submitters': [
            {'uuid': 'submitter-1', 'name': 'Representante Fundación'},
            {'uuid': 'submitter-2', 'name': 'Voluntario'}
        ]
    },
    'mock-template-2': {
        'id': 'mock-template-2',
        'name': 'Acuerdo de Confidencialidad',
        'description': 'Plantilla para acuerdos de confidencialidad',
        'submitters': [
            {'uuid': 'submitter-1', 'name': 'Representante Legal'},
            {'uuid': 'submitter-2', 'name': 'Contraparte'}
        ]
    },
    'mock-template-3': {
        'id': 'mock-template-3',
        'name': 'Contrato de Proveedor',
        'description': 'Plantilla para contratos con proveedores',
        'submitters': [
            {'uuid': 'submitter-1', 'name': 'Director Fundación'},
            {'uuid': 'submitter-2', 'name': 'Proveedor'},
            {'uuid': 'submitter-3', 'name': 'Testigo'}
        ]
    }
}


class DocuSealClient:
    """
    Client for DocuSeal API operations.

    Provides methods for:
        - Listing templates and fetching their signer roles
        - Getting a template preview URL
        - Creating submissions (send for signature)
        - Fetching a submission's status
        - Building the link that opens DocuSeal's template editor prefilled
    """

    def __init__(
        self,
        api_key: str = '',
        api_url: str = DEFAULT_API_URL,
        timeout: int = DEFAULT_TIMEOUT,
        base_url: Optional[str] = None
    ):
        self.api_key = api_key or ''
        self.api_url = api_url.rstrip('/')
        # Browser-facing address of the DocuSeal UI
        self.base_url = (base_url or api_url).rstrip('/')
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> 'DocuSealClient':
        return cls(
            api_key=config['DOCUSEAL_API_KEY'],
            api_url=config['DOCUSEAL_API_URL'],
            timeout=config['REQUEST_TIMEOUT'],
            base_url=config.get('DOCUSEAL_BASE_URL')
        )

    def is_mock_mode(self) -> bool:
        """Check if running in mock mode (no API key)."""
        return not self.api_key

    def _get_headers(self) -> Dict[str, str]:
        """Get request headers with auth."""
        return {
            'X-Auth-Token': self.api_key,
            'Content-Type': 'application/json'
        }

    def _get(self, path: str, action: str) -> Any:
        try:
            response = requests.get(
                f"{self.api_url}{path}",
                headers=self._get_headers(),
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            self._log_failure(e, action)
            raise from_request_exception(e, SERVICE_NAME, action)

    def _log_failure(self, e: requests.exceptions.RequestException, action: str) -> None:
        logger.error(f"DocuSeal request failed ({action}): {e}")
        response = getattr(e, 'response', None)
        if response is not None and response.text:
            logger.error(f"Response body: {response.text}")

    def list_templates(self) -> List[Template]:
        """
        Fetch the available templates.

        Returns:
            Templates without roles (fetch details for those)
        """
        if self.is_mock_mode():
            return [Template.from_docuseal(dict(t, submitters=[])) for t in MOCK_TEMPLATES.values()]

        data = self._get('/templates', 'list templates')
        # DocuSeal paginates as {'data': [...], 'pagination': {...}}
        records = data.get('data', []) if isinstance(data, dict) else data
        return [Template.from_docuseal(dict(t, submitters=[])) for t in records]

    def get_template_details(self, template_id: str) -> Template:
        """
        Fetch a template with its submitter roles.

        Raises:
            NotFoundError: if the template does not exist
        """
        if self.is_mock_mode():
            return self._mock_template(template_id)

        data = self._get(f'/templates/{template_id}', f'fetch template {template_id}')
        if not data:
            raise NotFoundError(f"Template {template_id} not found", service=SERVICE_NAME, resource='template')
        return Template.from_docuseal(data)

    def get_preview_url(self, template_id: str) -> str:
        """
        URL of the template's PDF for previewing.

        Prefers the first document URL DocuSeal reports for the template.
        """
        if self.is_mock_mode():
            return DUMMY_PDF_URL

        template = self.get_template_details(template_id)
        for document in template.documents:
            if document.get('url'):
                return document['url']
        return f"{self.api_url}/templates/{template_id}/preview.pdf"

    def create_submission(self, request: SubmissionRequest) -> SubmissionResult:
        """
        Create a submission to send the document for signature.

        Args:
            request: Built by SubmissionBuilder from a complete assignment

        Returns:
            SubmissionResult with ID, status and submitter details
        """
        if self.is_mock_mode():
            return self._mock_submission(request)

        payload = request.to_payload()
        logger.info(
            f"Creating DocuSeal submission for template {request.template_id} "
            f"with {len(request.submitters)} submitter(s)"
        )

        try:
            response = requests.post(
                f"{self.api_url}/submissions",
                headers=self._get_headers(),
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self._log_failure(e, 'create submission')
            raise from_request_exception(e, SERVICE_NAME, 'create the submission')

        return SubmissionResult.from_docuseal(response.json())

    def get_submission(self, submission_id: str) -> SubmissionResult:
        """Fetch the current state of a submission."""
        if self.is_mock_mode():
            return SubmissionResult(submission_id=str(submission_id), status='awaiting_signature')

        data = self._get(f'/submissions/{submission_id}', f'fetch submission {submission_id}')
        return SubmissionResult.from_docuseal(data)

    def new_template_url(self, name: str, pdf_url: Optional[str], contacts: Sequence[Contact]) -> str:
        """
        URL opening DocuSeal's "new template" page with the document and signers prefilled.

        Submitters are numbered from 0 in contact order, as
        submitter_<n>_name / submitter_<n>_email query parameters.
        """
        params = []
        if name:
            params.append(('name', name))
        if pdf_url:
            params.append(('document_url', pdf_url))
        for index, contact in enumerate(contacts):
            params.append((f'submitter_{index}_name', contact.display_name or contact.email))
            params.append((f'submitter_{index}_email', contact.email))

        url = f"{self.base_url}/templates/new"
        return f"{url}?{urlencode(params)}" if params else url

    def _mock_template(self, template_id: str) -> Template:
        """Return mock template data for development."""
        data = MOCK_TEMPLATES.get(template_id) or {
            'id': template_id,
            'name': 'Plantilla de Prueba',
            'description': 'Plantilla mock para desarrollo',
            'submitters': [
                {'uuid': 'submitter-1', 'name': 'Firmante 1'},
                {'uuid': 'submitter-2', 'name': 'Firmante 2'}
            ]
        }
        return Template.from_docuseal(data)

    def _mock_submission(self, request: SubmissionRequest) -> SubmissionResult:
        """Return mock submission data for development."""
        now = datetime.now(timezone.utc)
        stamp = uuid.uuid4().hex[:8]

        submitter_results = []
        for i, sub in enumerate(request.submitters):
            submitter_results.append({
                'id': f'submitter-{i + 1}',
                'name': sub.name,
                'email': sub.email,
                'role': sub.role,
                'status': 'awaiting_signature'
            })

        logger.info(f"Mock mode: simulated submission for template {request.template_id}")
        return SubmissionResult(
            submission_id=f'mock-submission-{stamp}',
            status='awaiting_signature',
            submitters=tuple(submitter_results),
            expires_at=(now + MOCK_SUBMISSION_LIFETIME).isoformat(),
            slug=f'mock-slug-{stamp}',
            created_at=now.isoformat()
        )
