"""
Signing session and workflow tests.

Covers the strict step order, last-request-wins loads and the
mock-mode end-to-end path (context → item → template → mapping → submit).

Run with: python -m pytest tests/test_session_workflow.py -v
"""

from datetime import datetime, timedelta
from unittest.mock import Mock
from urllib.parse import parse_qs, urlsplit

import pytest

from services.signing import (
    AssetResolver,
    ColumnExtractor,
    ContextMode,
    ContextResolver,
    DocuSealClient,
    MondayClient,
    NotFoundError,
    PreviewFileManager,
    SessionStore,
    SigningSession,
    Template,
    SignerRole,
    ValidationError,
    workflow
)

from services.signing.monday_client import DUMMY_PDF_URL

from conftest import column, make_item


@pytest.fixture
def monday():
    return MondayClient()


@pytest.fixture
def docuseal():
    return DocuSealClient()


@pytest.fixture
def session(monday):
    session = SigningSession()
    workflow.start_session(session, ContextResolver(monday))
    return session


class TestStepOrder:

    def test_item_before_context(self, monday, extractor):
        with pytest.raises(ValidationError):
            workflow.load_item(SigningSession(), monday, extractor)

    def test_template_before_item(self, monday, docuseal):
        session = SigningSession()
        workflow.start_session(session, ContextResolver(monday))
        with pytest.raises(ValidationError):
            workflow.select_template(session, docuseal, 'mock-template-1')

    def test_mapping_before_template(self, session, monday, extractor):
        workflow.load_item(session, monday, extractor)
        with pytest.raises(ValidationError):
            workflow.assign_role(session, 'submitter-1', 'solicitante@fundacion.org')

    def test_submit_before_template(self, session, monday, extractor, docuseal):
        workflow.load_item(session, monday, extractor)
        with pytest.raises(ValidationError):
            workflow.submit(session, docuseal)


class TestMockFlow:

    def test_end_to_end(self, session, monday, extractor, docuseal):
        assert session.context.mode == ContextMode.TEST_MOCK
        assert workflow.load_item(session, monday, extractor)
        assert len(session.contacts) == 4
        assert [f.file_name for f in session.files] == ['convenio.pdf']

        template = workflow.select_template(session, docuseal, 'mock-template-1')
        assert template.get_role_ids() == ['submitter-1', 'submitter-2']

        workflow.assign_role(session, 'submitter-1', 'solicitante@fundacion.org')
        with pytest.raises(ValidationError) as exc_info:
            workflow.submit(session, docuseal)
        assert 'Voluntario' in str(exc_info.value)

        workflow.assign_role(session, 'submitter-2', 'lider@fundacion.org')
        result = workflow.submit(session, docuseal)

        assert result.status == 'awaiting_signature'
        assert session.last_submission is result

    def test_request_metadata(self, session, monday, extractor, docuseal):
        workflow.load_item(session, monday, extractor)
        workflow.select_template(session, docuseal, 'mock-template-1')
        workflow.assign_role(session, 'submitter-1', 'solicitante@fundacion.org')
        workflow.assign_role(session, 'submitter-2', 'lider@fundacion.org')

        request = workflow.build_request(session, send_email=False)
        metadata = request.to_payload()['metadata']

        assert metadata['monday_item_id'] == 'mock_item_123'
        assert metadata['monday_board_id'] == 'mock_board_456'
        assert metadata['template_name'] == 'Convenio de Voluntariado'
        assert request.send_email is False

    def test_unknown_email(self, session, monday, extractor, docuseal):
        workflow.load_item(session, monday, extractor)
        workflow.select_template(session, docuseal, 'mock-template-1')
        with pytest.raises(NotFoundError):
            workflow.assign_role(session, 'submitter-1', 'nadie@fundacion.org')

    def test_empty_template_id_clears_selection(self, session, monday, extractor, docuseal):
        workflow.load_item(session, monday, extractor)
        workflow.select_template(session, docuseal, 'mock-template-1')

        assert workflow.select_template(session, docuseal, '') is None
        assert session.template is None
        assert session.mapper is None

    def test_changing_template_resets_mapping(self, session, monday, extractor, docuseal):
        workflow.load_item(session, monday, extractor)
        workflow.select_template(session, docuseal, 'mock-template-1')
        workflow.assign_role(session, 'submitter-1', 'solicitante@fundacion.org')

        workflow.select_template(session, docuseal, 'mock-template-3')
        assert session.mapper.assigned_count == 0
        assert len(session.mapper.roles) == 3

    def test_changing_item_drops_template(self, session, monday, extractor, docuseal):
        workflow.load_item(session, monday, extractor)
        workflow.select_template(session, docuseal, 'mock-template-1')

        workflow.load_item(session, monday, extractor, item_id='mock_item_124')
        assert session.context.item_id == 'mock_item_124'
        assert session.template is None
        assert session.mapper is None

    def test_new_context_drops_item(self, session, monday, extractor):
        workflow.load_item(session, monday, extractor)
        workflow.start_session(session, ContextResolver(monday))
        assert session.item is None
        assert session.contacts == ()

    def test_context_error_is_recorded(self, monday):
        session = SigningSession()
        resolver = ContextResolver(monday, use_live_test_data=True, test_board_id='8837')
        context = workflow.start_session(session, resolver)

        assert context.is_mock_mode
        assert session.last_error['error'] == context.error
        assert session.last_error['retryable'] is True

    def test_search_item(self, session, monday):
        assert workflow.search_item(session, monday, 'Proveedor C').item_id == 'mock_item_125'
        assert workflow.search_item(session, monday, 'mock_item_124').item_id == 'mock_item_124'
        with pytest.raises(NotFoundError):
            workflow.search_item(session, monday, 'RQ 99')
        with pytest.raises(ValidationError):
            workflow.search_item(session, monday, '  ')


class TestLastRequestWins:

    def test_stale_item_load_is_discarded(self, session, extractor, monday):
        first = session.begin_item_load()
        second = session.begin_item_load()

        newer = extractor.extract(make_item(column('e', 'Correo', text='b@x.org'), item_id='2'))
        older = extractor.extract(make_item(column('e', 'Correo', text='a@x.org'), item_id='1'))

        assert session.apply_item(second, newer, AssetResolver(monday))
        assert not session.apply_item(first, older, AssetResolver(monday))
        assert session.item.item_id == '2'
        assert [c.email for c in session.contacts] == ['b@x.org']

    def test_new_context_invalidates_pending_load(self, session, extractor, monday):
        token = session.begin_item_load()
        workflow.start_session(session, ContextResolver(monday))

        assert not session.apply_item(token, extractor.extract(make_item()), AssetResolver(monday))
        assert session.item is None

    def test_stale_template_is_discarded(self, session, monday, extractor):
        workflow.load_item(session, monday, extractor)
        first = session.begin_template_load()
        second = session.begin_template_load()

        newer = Template('2', 'Nuevo', roles=(SignerRole('a', 'A'),))
        older = Template('1', 'Viejo', roles=(SignerRole('b', 'B'),))

        assert session.apply_template(second, newer)
        assert not session.apply_template(first, older)
        assert session.template.template_id == '2'

    def test_clear_template_invalidates_pending_load(self, session, monday, extractor):
        workflow.load_item(session, monday, extractor)
        token = session.begin_template_load()
        session.clear_template()

        assert not session.apply_template(token, Template('1', 'Viejo', roles=(SignerRole('b'),)))
        assert session.template is None

    def test_switching_item_invalidates_pending_template(self, session, monday, extractor):
        workflow.load_item(session, monday, extractor)
        token = session.begin_template_load()
        workflow.load_item(session, monday, extractor, item_id='mock_item_124')

        assert not session.apply_template(token, Template('1', 'Viejo', roles=(SignerRole('b'),)))
        assert session.template is None
        assert session.mapper is None

    def test_new_context_invalidates_pending_template(self, session, monday, extractor):
        workflow.load_item(session, monday, extractor)
        token = session.begin_template_load()
        workflow.start_session(session, ContextResolver(monday))

        assert not session.apply_template(token, Template('1', 'Viejo', roles=(SignerRole('b'),)))
        assert session.template is None


class TestFiles:

    def test_resolve_deferred_file(self, session, extractor):
        client = Mock(spec=MondayClient)
        client.resolve_asset.return_value = Mock(url='https://files.example/acta.pdf', size_bytes=10)

        item = make_item(column('pdf', 'PDF', 'file', value={'files': [{'name': 'acta.pdf', 'assetId': 9}]}))
        session.apply_item(session.begin_item_load(), extractor.extract(item), AssetResolver(client))

        resolved = workflow.resolve_file(session, 0)
        assert resolved.resolved_url == 'https://files.example/acta.pdf'
        assert session.files[0] is resolved

    def test_unknown_file_index(self, session, monday, extractor):
        workflow.load_item(session, monday, extractor)
        with pytest.raises(NotFoundError):
            workflow.resolve_file(session, 5)

    def test_resolved_file_of_previous_item_is_not_stored(self, session, extractor, monday):
        first = make_item(
            column('pdf', 'PDF', 'file', value={'files': [{'name': 'a.pdf', 'assetId': 1}]}),
            item_id='A'
        )
        second = make_item(
            column('pdf', 'PDF', 'file', value={'files': [{'name': 'b.pdf', 'assetId': 2}]}),
            item_id='B'
        )

        def switch_item_then_answer(asset_id):
            session.apply_item(session.begin_item_load(), extractor.extract(second), AssetResolver(monday))
            return Mock(url='https://files.example/a.pdf', size_bytes=10)

        client = Mock(spec=MondayClient)
        client.resolve_asset.side_effect = switch_item_then_answer
        session.apply_item(session.begin_item_load(), extractor.extract(first), AssetResolver(client))

        resolved = workflow.resolve_file(session, 0)

        assert resolved.file_name == 'a.pdf'
        assert session.item.item_id == 'B'
        assert session.files[0].file_name == 'b.pdf'
        assert not session.files[0].is_resolved

    def test_replace_file_requires_original_reference(self, session, monday, extractor):
        workflow.load_item(session, monday, extractor)
        original = session.get_file(0)
        workflow.load_item(session, monday, extractor)

        assert not session.replace_file(0, original, original.with_url('https://files.example/old.pdf'))
        assert session.files[0].resolved_url != 'https://files.example/old.pdf'

    def test_docuseal_template_url(self, session, monday, extractor, docuseal):
        workflow.load_item(session, monday, extractor)
        url = workflow.docuseal_template_url(session, docuseal, 0)

        parsed = urlsplit(url)
        query = parse_qs(parsed.query)
        assert parsed.path == '/templates/new'
        assert query['name'] == ['Convenio de Prueba - Proveedor XYZ']
        assert query['document_url'] == [DUMMY_PDF_URL]
        assert query['submitter_0_email'] == ['solicitante@fundacion.org']
        assert query['submitter_3_email'] == ['gerencia@fundacion.org']
        assert 'submitter_4_email' not in query

    def test_docuseal_template_url_needs_item(self, session, docuseal):
        with pytest.raises(ValidationError):
            workflow.docuseal_template_url(session, docuseal, 0)

    def test_open_preview(self, session, extractor, tmp_path):
        client = Mock(spec=MondayClient)
        client.download_file.return_value = (b'%PDF-1.4', 'application/pdf; charset=binary')
        previews = PreviewFileManager(directory=str(tmp_path))

        workflow.load_item(session, client, extractor)
        handle = workflow.open_preview(session, client, previews, 0)

        assert handle.file_name == 'convenio.pdf'
        assert handle.mime_type == 'application/pdf'
        assert previews.get(handle.handle_id).size_bytes == 8
        previews.shutdown()


class TestSessionStore:

    def test_get_or_create(self):
        store = SessionStore()
        session = store.get_or_create(None)

        assert store.get_or_create(session.session_id) is session
        assert len(store) == 1

        store.discard(session.session_id)
        assert store.get(session.session_id) is None

    def test_unknown_id_creates_session_with_that_id(self):
        store = SessionStore()
        assert store.get_or_create('abc').session_id == 'abc'

    def test_idle_sessions_expire(self):
        store = SessionStore(idle_seconds=60)
        start = datetime(2026, 10, 19, 9, 0)
        store.get_or_create('idle', now=start)
        active = store.get_or_create('active', now=start)

        store.get_or_create('active', now=start + timedelta(seconds=50))

        assert store.expire_idle(now=start + timedelta(seconds=90)) == 1
        assert store.get('idle') is None
        assert store.get('active') is active
        assert len(store) == 1

    def test_expired_session_is_recreated_empty(self, monday, extractor):
        store = SessionStore(idle_seconds=60)
        start = datetime(2026, 10, 19, 9, 0)
        session = store.get_or_create('abc', now=start)
        workflow.start_session(session, ContextResolver(monday))
        workflow.load_item(session, monday, extractor)

        store.expire_idle(now=start + timedelta(minutes=5))
        fresh = store.get_or_create('abc')

        assert fresh is not session
        assert fresh.item is None
