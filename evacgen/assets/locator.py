"""Local asset discovery for facility and crowd collections.

Collections live under `<images_root>/facility` and `<images_root>/crowd`.
Listing keeps supported image extensions only, skips placeholder dot-files,
and sorts by name so the default pick is stable across platforms.
"""

import logging
import os

from evacgen.core.errors import NoFacilityAssetError
from evacgen.core.types import AssetCategory, ResolvedAssets


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".avif"}


def is_supported_image(filename: str) -> bool:
    """Return whether a directory entry counts as a selectable asset."""
    if not filename or filename.startswith("."):
        return False
    return os.path.splitext(filename)[1].lower() in SUPPORTED_EXTENSIONS


class AssetLocator:
    """Resolve which facility and crowd images an orchestration should use."""

    def __init__(self, images_root: str) -> None:
        self.images_root = images_root

    def collection_dir(self, category: AssetCategory) -> str:
        return os.path.join(self.images_root, AssetCategory(category).value)

    def ensure_collections(self) -> None:
        """Create missing collection directories."""
        for category in AssetCategory:
            os.makedirs(self.collection_dir(category), exist_ok=True)

    def list_assets(self, category: AssetCategory) -> list[str]:
        """List selectable filenames in a collection; missing directory -> `[]`."""
        directory = self.collection_dir(category)
        if not os.path.isdir(directory):
            return []

        return sorted(
            name
            for name in os.listdir(directory)
            if is_supported_image(name) and os.path.isfile(os.path.join(directory, name))
        )

    def resolve(
        self,
        explicit_facility: str | None = None,
        explicit_crowd: str | None = None,
    ) -> ResolvedAssets:
        """Pick the facility (required) and crowd (optional) filenames.

        Explicit names are used verbatim; a missing file surfaces later as an
        upload error.

        Raises:
            NoFacilityAssetError: No explicit facility and an empty collection.
        """
        facility = explicit_facility
        if not facility:
            candidates = self.list_assets(AssetCategory.FACILITY)
            if not candidates:
                raise NoFacilityAssetError()
            facility = candidates[0]

        crowd = explicit_crowd
        if not crowd:
            candidates = self.list_assets(AssetCategory.CROWD)
            crowd = candidates[0] if candidates else None

        logger.info("Using facility=%r crowd=%r", facility, crowd or "none")
        return ResolvedAssets(facility=facility, crowd=crowd)
