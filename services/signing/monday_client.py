"""
monday.com Client

Thin wrapper around the monday.com GraphQL API for the calls the
signing integration needs: item data, board listings, asset lookup
and credential validation.

Runs in mock mode (synthetic board data) when no API token is configured.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from .exceptions import AuthenticationError, NotFoundError, RemoteServiceError, from_request_exception
from .types import AssetInfo, RawItem

logger = logging.getLogger(__name__)

SERVICE_NAME = 'monday.com'
DEFAULT_API_URL = 'https://api.monday.com/v2'
API_VERSION = '2024-10'
DEFAULT_TIMEOUT = 30

DUMMY_PDF_URL = 'https://www.w3.org/WAI/ER/tests/xhtml/testfiles/resources/pdf/dummy.pdf'

COLUMN_VALUES_FRAGMENT = """
    column_values {
        id
        type
        text
        value
        column {
            id
            title
            type
        }
    }
"""

ITEM_QUERY = """
query($itemId: [ID!]) {
    items(ids: $itemId) {
        id
        name
        board {
            id
            name
        }
        %s
    }
}
""" % COLUMN_VALUES_FRAGMENT

BOARD_ITEMS_QUERY = """
query($boardId: [ID!], $limit: Int!) {
    boards(ids: $boardId) {
        items_page(limit: $limit) {
            items {
                id
                name
                %s
            }
        }
    }
}
""" % COLUMN_VALUES_FRAGMENT

ASSET_QUERY = """
query($assetId: [ID!]!) {
    assets(ids: $assetId) {
        id
        name
        url
        public_url
        file_extension
        file_size
    }
}
"""

ME_QUERY = """
query {
    me {
        id
        name
        email
    }
}
"""

MOCK_USER = {'name': 'Usuario de Prueba', 'email': 'test@example.com'}


def mock_item(item_id: str = 'mock_item_123') -> RawItem:
    """Synthetic item used in mock mode: four email columns and one PDF column."""
    columns = [
        {'id': 'email1', 'title': 'Solicitado Por-correo', 'type': 'email',
         'text': 'solicitante@fundacion.org', 'value': None},
        {'id': 'email2', 'title': 'Autorizado Por (Líder Proceso)-correo', 'type': 'email',
         'text': 'lider@fundacion.org', 'value': None},
        {'id': 'email3', 'title': 'Aprobado por (económica)-correo', 'type': 'email',
         'text': 'economica@fundacion.org', 'value': None},
        {'id': 'email4', 'title': 'Aprobado Por (Gerencia)-correo', 'type': 'email',
         'text': 'gerencia@fundacion.org', 'value': None},
        {'id': 'pdf', 'title': 'PDF', 'type': 'file', 'text': 'convenio.pdf',
         'value': json.dumps({'files': [{'name': 'convenio.pdf', 'url': DUMMY_PDF_URL}]})},
    ]
    return RawItem.from_dict({
        'id': item_id,
        'name': 'Convenio de Prueba - Proveedor XYZ',
        'board_id': 'mock_board_456',
        'column_values': columns
    })


def mock_board_items() -> List[Dict[str, str]]:
    return [
        {'id': 'mock_item_123', 'name': 'Convenio Proveedor A'},
        {'id': 'mock_item_124', 'name': 'Convenio Proveedor B'},
        {'id': 'mock_item_125', 'name': 'Convenio Proveedor C'},
    ]


class MondayClient:
    """
    Client for monday.com API operations.

    Provides methods for:
        - Fetching an item with its column values
        - Listing and searching board items
        - Resolving file assets to download URLs
        - Validating the configured token
    """

    def __init__(self, api_token: str = '', api_url: str = DEFAULT_API_URL, timeout: int = DEFAULT_TIMEOUT):
        self.api_token = api_token or ''
        self.api_url = api_url
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> 'MondayClient':
        return cls(
            api_token=config['MONDAY_API_TOKEN'],
            api_url=config['MONDAY_API_URL'],
            timeout=config['REQUEST_TIMEOUT']
        )

    def is_mock_mode(self) -> bool:
        """Check if running in mock mode (no API token)."""
        return not self.api_token

    def _get_headers(self) -> Dict[str, str]:
        return {
            'Authorization': self.api_token,
            'Content-Type': 'application/json',
            'API-Version': API_VERSION
        }

    def execute_query(self, query: str, variables: Optional[Dict[str, Any]] = None, action: str = 'run query') -> Dict[str, Any]:
        """
        Run a GraphQL query and return its `data` object.

        Raises:
            AuthenticationError: token missing or rejected
            ConnectivityError: API unreachable
            RemoteServiceError: GraphQL errors or an unexpected response
        """
        if self.is_mock_mode():
            raise AuthenticationError(f"No {SERVICE_NAME} API token configured", service=SERVICE_NAME)

        try:
            response = requests.post(
                self.api_url,
                headers=self._get_headers(),
                json={'query': query, 'variables': variables or {}},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"{SERVICE_NAME} request failed ({action}): {e}")
            raise from_request_exception(e, SERVICE_NAME, action)

        try:
            body = response.json()
        except ValueError:
            raise RemoteServiceError(
                f"{SERVICE_NAME} returned a non-JSON response while trying to {action}",
                service=SERVICE_NAME,
                status_code=response.status_code,
                response_body=response.text
            )

        message = None
        if body.get('errors'):
            message = body['errors'][0].get('message') or 'Unknown GraphQL error'
        elif body.get('error_message'):
            message = body['error_message']

        if message:
            logger.error(f"{SERVICE_NAME} GraphQL error ({action}): {message}")
            if 'not authenticated' in message.lower() or 'unauthorized' in message.lower():
                raise AuthenticationError(f"{SERVICE_NAME} rejected the token: {message}", service=SERVICE_NAME)
            raise RemoteServiceError(
                f"{SERVICE_NAME} error while trying to {action}: {message}",
                service=SERVICE_NAME,
                status_code=response.status_code,
                response_body=json.dumps(body)
            )

        return body.get('data') or {}

    def validate_credential(self) -> Dict[str, Any]:
        """
        Check the configured token.

        Returns:
            {'valid': True, 'user': {...}} or {'valid': False, 'error': message}
        """
        if self.is_mock_mode():
            return {'valid': False, 'error': f"No {SERVICE_NAME} API token configured"}

        try:
            data = self.execute_query(ME_QUERY, action='validate the API token')
        except (AuthenticationError, RemoteServiceError) as e:
            return {'valid': False, 'error': str(e)}

        user = data.get('me')
        if not user:
            return {'valid': False, 'error': 'Token accepted but no user was returned'}
        return {'valid': True, 'user': user}

    def get_item(self, item_id: str) -> RawItem:
        """
        Fetch an item with all its column values.

        Raises:
            NotFoundError: if the item does not exist
        """
        if self.is_mock_mode():
            return mock_item(item_id)

        data = self.execute_query(ITEM_QUERY, {'itemId': [str(item_id)]}, action=f'fetch item {item_id}')
        items = data.get('items') or []
        if not items:
            raise NotFoundError(f"Item {item_id} not found", service=SERVICE_NAME, resource='item')

        return RawItem.from_dict(items[0])

    def _board_items(self, board_id: str, limit: int) -> List[Dict[str, Any]]:
        data = self.execute_query(
            BOARD_ITEMS_QUERY,
            {'boardId': [str(board_id)], 'limit': limit},
            action=f'list items of board {board_id}'
        )
        boards = data.get('boards') or []
        if not boards:
            raise NotFoundError(f"Board {board_id} not found", service=SERVICE_NAME, resource='board')
        return (boards[0].get('items_page') or {}).get('items') or []

    def list_board_items(self, board_id: str, limit: int = 10) -> List[Dict[str, str]]:
        """List up to `limit` items of a board as {'id', 'name'}."""
        if self.is_mock_mode():
            return mock_board_items()[:limit]

        items = self._board_items(board_id, limit)
        return [{'id': str(item['id']), 'name': item.get('name') or ''} for item in items]

    def find_item(self, board_id: str, needle: str, limit: int = 100) -> Optional[RawItem]:
        """
        First board item whose name or any column text contains `needle`.

        Used to look up an item by its request code (e.g. "25-17-ul").
        """
        if self.is_mock_mode():
            match = next((i for i in mock_board_items() if needle in i['name']), None)
            return mock_item(match['id']) if match else None

        for raw in self._board_items(board_id, limit):
            if needle in (raw.get('name') or ''):
                return RawItem.from_dict(dict(raw, board_id=board_id))
            for column in raw.get('column_values') or []:
                if needle in (column.get('text') or ''):
                    return RawItem.from_dict(dict(raw, board_id=board_id))

        logger.info(f"No item containing '{needle}' on board {board_id}")
        return None

    def resolve_asset(self, asset_id: str) -> AssetInfo:
        """
        Look up the download URL of a file asset.

        Raises:
            NotFoundError: if the asset does not exist
        """
        if self.is_mock_mode():
            return AssetInfo(asset_id=str(asset_id), url=DUMMY_PDF_URL, name=f'{asset_id}.pdf')

        data = self.execute_query(ASSET_QUERY, {'assetId': [str(asset_id)]}, action=f'resolve asset {asset_id}')
        assets = data.get('assets') or []
        if not assets:
            raise NotFoundError(f"Asset {asset_id} not found", service=SERVICE_NAME, resource='asset')

        asset = assets[0]
        size = asset.get('file_size')
        return AssetInfo(
            asset_id=str(asset.get('id', asset_id)),
            url=asset.get('public_url') or asset.get('url') or '',
            name=asset.get('name') or '',
            size_bytes=int(size) if size is not None else None
        )

    def download_file(self, url: str) -> Tuple[bytes, str]:
        """
        Download a file, sending the token for protected asset URLs.

        Returns:
            (content, content_type)
        """
        headers = {'Authorization': self.api_token} if self.api_token else {}
        try:
            response = requests.get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Download from {url} failed: {e}")
            raise from_request_exception(e, SERVICE_NAME, 'download the file')

        content_type = response.headers.get('Content-Type', 'application/octet-stream')
        return response.content, content_type
