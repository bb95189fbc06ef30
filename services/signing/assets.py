"""
Asset Resolver

Second phase of a FileReference: looks up the download URL of a
file known only by its asset id. Lookups are cached per asset id,
so resolving the same reference twice hits the remote once.
"""

import logging
from typing import Dict, Iterable, List

from .types import AssetInfo, FileReference

logger = logging.getLogger(__name__)


class AssetResolver:
    """
    Resolves deferred file references through the work-item client.

    Failed lookups propagate and are not cached.
    """

    def __init__(self, client):
        self.client = client
        self._cache: Dict[str, AssetInfo] = {}

    def resolve(self, file_ref: FileReference) -> FileReference:
        """Return the reference with its URL filled in."""
        if file_ref.is_resolved:
            return file_ref

        if not file_ref.remote_asset_id:
            logger.warning(f"File '{file_ref.file_name}' has neither URL nor asset id")
            return file_ref

        asset_id = file_ref.remote_asset_id
        info = self._cache.get(asset_id)
        if info is None:
            info = self.client.resolve_asset(asset_id)
            self._cache[asset_id] = info
            logger.debug(f"Resolved asset {asset_id} ({info.name})")

        return file_ref.with_url(info.url, size_bytes=info.size_bytes)

    def resolve_all(self, files: Iterable[FileReference]) -> List[FileReference]:
        return [self.resolve(f) for f in files]

    def clear(self) -> None:
        self._cache.clear()
