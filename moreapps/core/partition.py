"""Partitioning of a catalog into the current app and the other apps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from moreapps.core.data_models import CatalogConfig, CatalogRecord


@dataclass(frozen=True)
class Partition:
    """The current app (if shown) and the ordered list of other apps."""

    current: Optional[CatalogRecord] = None
    others: List[CatalogRecord] = field(default_factory=list)

    @property
    def all_records(self) -> List[CatalogRecord]:
        """Current app first, followed by the other apps."""
        if self.current is not None:
            return [self.current, *self.others]
        return list(self.others)


def partition(
    records: Sequence[CatalogRecord],
    config: CatalogConfig,
    current_bundle_id: Optional[str] = None,
) -> Partition:
    """Split ``records`` according to ``config``.

    Records are filtered by platform first.  The running app (matched on
    ``current_bundle_id``) is never part of ``others``; it fills the
    ``current`` slot only when ``config.show_current_app`` is set.  Excluded
    bundle ids are then dropped.  Input order is preserved.
    """
    filtered = [r for r in records if config.platform_filter.matches(r.platform)]

    current = None
    if config.show_current_app:
        current = next((r for r in filtered if r.is_current(current_bundle_id)), None)

    others = [
        r
        for r in filtered
        if not r.is_current(current_bundle_id) and r.bundle_id not in config.exclude_bundle_ids
    ]
    return Partition(current=current, others=others)
