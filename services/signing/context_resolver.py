"""
Context Resolver

Decides which work item the session is about and how it was found.

Detection order:
    1. embedded: the host platform supplied its session context
    2. live test data: MONDAY_USE_REAL is on; validate the token, then
       use the first item of the configured test board
    3. mock: synthetic identifiers for local development

A failure in 1 or 2 never fails the session: it degrades to the mock
context and keeps the error message for display.
"""

import logging
from typing import Any, Dict, List, Optional

from .exceptions import AuthenticationError, ConfigurationError, NotFoundError, ValidationError
from .monday_client import MOCK_USER, MondayClient, mock_board_items
from .types import ContextMode, ResolvedContext

logger = logging.getLogger(__name__)

MOCK_ITEM_ID = 'mock_item_123'
MOCK_BOARD_ID = 'mock_board_456'


def mock_context(error: Optional[str] = None) -> ResolvedContext:
    """The fixed development context."""
    return ResolvedContext(
        item_id=MOCK_ITEM_ID,
        board_id=MOCK_BOARD_ID,
        mode=ContextMode.TEST_MOCK,
        user=dict(MOCK_USER),
        error=error
    )


class ContextResolver:
    """
    Resolves the execution context for a signing session.

    Usage:
        resolver = ContextResolver(MondayClient.from_config(app.config), use_live_test_data=True,
                                   test_board_id='8837207020')
        context = resolver.resolve(host_context=request_json.get('host_context'))
    """

    def __init__(self, client: MondayClient, use_live_test_data: bool = False, test_board_id: Optional[str] = None):
        self.client = client
        self.use_live_test_data = use_live_test_data
        self.test_board_id = test_board_id

    @classmethod
    def from_config(cls, config, client: MondayClient) -> 'ContextResolver':
        return cls(
            client=client,
            use_live_test_data=config['MONDAY_USE_REAL'],
            test_board_id=config['MONDAY_TEST_BOARD_ID']
        )

    def resolve(self, host_context: Optional[Dict[str, Any]] = None) -> ResolvedContext:
        """Resolve the context; never raises."""
        try:
            if host_context:
                return self._embedded_context(host_context)

            if self.use_live_test_data:
                logger.info('Using monday.com API with token for testing')
                return self._live_test_context()
        except Exception as e:
            logger.warning(f"Context resolution failed, falling back to mock data: {e}")
            return mock_context(error=str(e))

        logger.info('Using mock data for development')
        return mock_context()

    def _embedded_context(self, host_context: Dict[str, Any]) -> ResolvedContext:
        item_id = host_context.get('itemId') or host_context.get('item_id')
        board_id = host_context.get('boardId') or host_context.get('board_id')

        if not item_id:
            raise ValidationError(
                'The host context has no item id. Open the app from an item.',
                field='itemId'
            )

        return ResolvedContext(
            item_id=str(item_id),
            board_id=str(board_id) if board_id else None,
            mode=ContextMode.EMBEDDED,
            user=host_context.get('user') or {}
        )

    def _live_test_context(self) -> ResolvedContext:
        if not self.test_board_id:
            raise ConfigurationError('MONDAY_TEST_BOARD_ID must be set to use live test data')

        validation = self.client.validate_credential()
        if not validation.get('valid'):
            raise AuthenticationError(
                f"Authentication error with monday.com: {validation.get('error')}",
                service='monday.com'
            )

        items = self.client.list_board_items(self.test_board_id, limit=1)
        if not items:
            raise NotFoundError(
                f"No items found on test board {self.test_board_id}",
                service='monday.com',
                resource='item'
            )

        return ResolvedContext(
            item_id=items[0]['id'],
            board_id=str(self.test_board_id),
            mode=ContextMode.TEST_LIVE,
            user=validation.get('user') or {}
        )

    def list_test_items(self, context: ResolvedContext, limit: int = 10) -> List[Dict[str, str]]:
        """
        Items selectable in test mode.

        Embedded sessions have no selector. A failed listing falls back
        to a single synthetic item.
        """
        if context.mode == ContextMode.EMBEDDED:
            return []

        if context.mode == ContextMode.TEST_MOCK:
            return mock_board_items()[:limit]

        try:
            return self.client.list_board_items(context.board_id, limit=limit)
        except Exception as e:
            logger.error(f"Error listing test items: {e}")
            return [{'id': MOCK_ITEM_ID, 'name': 'Convenio Proveedor A (Mock)'}]
