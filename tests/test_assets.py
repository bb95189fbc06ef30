"""
Asset resolution tests.

Run with: python -m pytest tests/test_assets.py -v
"""

from unittest.mock import Mock

import pytest

from services.signing import AssetInfo, AssetResolver, FileReference, NotFoundError


@pytest.fixture
def client():
    client = Mock()
    client.resolve_asset.return_value = AssetInfo(
        asset_id='123', url='https://files.example/convenio.pdf', name='convenio.pdf', size_bytes=2048
    )
    return client


def deferred(asset_id='123', name='convenio.pdf'):
    return FileReference(file_name=name, source_column_id='pdf', remote_asset_id=asset_id)


class TestAssetResolver:

    def test_resolves_deferred_reference(self, client):
        resolved = AssetResolver(client).resolve(deferred())

        assert resolved.is_resolved
        assert resolved.resolved_url == 'https://files.example/convenio.pdf'
        assert resolved.size_bytes == 2048
        assert resolved.remote_asset_id == '123'

    def test_original_reference_unchanged(self, client):
        original = deferred()
        AssetResolver(client).resolve(original)
        assert original.resolved_url is None

    def test_lookup_is_cached_per_asset(self, client):
        resolver = AssetResolver(client)
        resolver.resolve(deferred())
        resolver.resolve(deferred(name='copia.pdf'))
        client.resolve_asset.assert_called_once_with('123')

    def test_already_resolved_skips_lookup(self, client):
        ref = FileReference('a.pdf', 'pdf', resolved_url='https://x/a.pdf')
        assert AssetResolver(client).resolve(ref) is ref
        client.resolve_asset.assert_not_called()

    def test_failure_propagates_and_is_not_cached(self, client):
        client.resolve_asset.side_effect = [NotFoundError('gone'), client.resolve_asset.return_value]
        resolver = AssetResolver(client)

        with pytest.raises(NotFoundError):
            resolver.resolve(deferred())
        assert resolver.resolve(deferred()).is_resolved
        assert client.resolve_asset.call_count == 2

    def test_resolve_all_keeps_order(self, client):
        files = [deferred(name='b.pdf'), FileReference('a.pdf', 'pdf', resolved_url='https://x/a.pdf')]
        resolved = AssetResolver(client).resolve_all(files)
        assert [f.file_name for f in resolved] == ['b.pdf', 'a.pdf']
        assert all(f.is_resolved for f in resolved)

    def test_clear_drops_cache(self, client):
        resolver = AssetResolver(client)
        resolver.resolve(deferred())
        resolver.clear()
        resolver.resolve(deferred())
        assert client.resolve_asset.call_count == 2
