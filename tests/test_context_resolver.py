"""
Context resolution tests.

Run with: python -m pytest tests/test_context_resolver.py -v
"""

from unittest.mock import Mock

import pytest

from services.signing import ContextMode, ContextResolver, MondayClient, RemoteServiceError
from services.signing.context_resolver import MOCK_BOARD_ID, MOCK_ITEM_ID


@pytest.fixture
def client():
    return Mock(spec=MondayClient)


class TestResolve:

    def test_embedded_context(self, client):
        resolver = ContextResolver(client)
        context = resolver.resolve({'itemId': 1234, 'boardId': 55, 'user': {'id': 9}})

        assert context.mode == ContextMode.EMBEDDED
        assert context.item_id == '1234'
        assert context.board_id == '55'
        assert not context.is_test_mode
        client.validate_credential.assert_not_called()

    def test_embedded_without_item_degrades_to_mock(self, client):
        context = ContextResolver(client).resolve({'boardId': 55})

        assert context.mode == ContextMode.TEST_MOCK
        assert 'item id' in context.error

    def test_mock_by_default(self, client):
        context = ContextResolver(client).resolve()

        assert context.is_mock_mode
        assert context.item_id == MOCK_ITEM_ID
        assert context.board_id == MOCK_BOARD_ID
        assert context.error is None

    def test_live_test_data_uses_first_board_item(self, client):
        client.validate_credential.return_value = {'valid': True, 'user': {'name': 'Ana'}}
        client.list_board_items.return_value = [{'id': '777', 'name': 'RQ 25-17-ul'}]

        context = ContextResolver(client, use_live_test_data=True, test_board_id='8837').resolve()

        assert context.mode == ContextMode.TEST_LIVE
        assert context.item_id == '777'
        assert context.board_id == '8837'
        assert context.user == {'name': 'Ana'}
        client.list_board_items.assert_called_once_with('8837', limit=1)

    def test_invalid_credential_falls_back_with_message(self, client):
        client.validate_credential.return_value = {'valid': False, 'error': 'Not Authenticated'}

        context = ContextResolver(client, use_live_test_data=True, test_board_id='8837').resolve()

        assert context.mode == ContextMode.TEST_MOCK
        assert context.item_id == MOCK_ITEM_ID
        assert context.error == 'Authentication error with monday.com: Not Authenticated'

    def test_live_mode_without_board(self, client):
        context = ContextResolver(client, use_live_test_data=True).resolve()
        assert context.is_mock_mode
        assert 'MONDAY_TEST_BOARD_ID' in context.error

    def test_empty_board(self, client):
        client.validate_credential.return_value = {'valid': True, 'user': {}}
        client.list_board_items.return_value = []

        context = ContextResolver(client, use_live_test_data=True, test_board_id='8837').resolve()
        assert context.is_mock_mode
        assert 'No items' in context.error

    def test_remote_failure_never_raises(self, client):
        client.validate_credential.side_effect = RemoteServiceError('boom', service='monday.com')
        context = ContextResolver(client, use_live_test_data=True, test_board_id='8837').resolve()
        assert context.error == 'boom'

    def test_from_config(self, client):
        resolver = ContextResolver.from_config({'MONDAY_USE_REAL': True, 'MONDAY_TEST_BOARD_ID': '1'}, client)
        assert resolver.use_live_test_data
        assert resolver.test_board_id == '1'


class TestListTestItems:

    def test_embedded_has_no_selector(self, client):
        resolver = ContextResolver(client)
        context = resolver.resolve({'itemId': 1})
        assert resolver.list_test_items(context) == []

    def test_mock_items(self, client):
        resolver = ContextResolver(client)
        items = resolver.list_test_items(resolver.resolve())
        assert len(items) == 3
        client.list_board_items.assert_not_called()

    def test_live_listing_failure_falls_back(self, client):
        client.validate_credential.return_value = {'valid': True, 'user': {}}
        client.list_board_items.side_effect = [[{'id': '777', 'name': 'A'}], RemoteServiceError('down')]

        resolver = ContextResolver(client, use_live_test_data=True, test_board_id='8837')
        context = resolver.resolve()
        items = resolver.list_test_items(context)

        assert items == [{'id': MOCK_ITEM_ID, 'name': 'Convenio Proveedor A (Mock)'}]
