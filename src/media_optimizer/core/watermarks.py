"""Watermark catalog and best-fit selection."""

import os
from typing import Iterable, Iterator, List, Optional

from .models import WatermarkEntry, WatermarkSpec


class WatermarkCatalog:
    """Ordered, read-only set of candidate watermarks."""

    def __init__(self, specs: Iterable[WatermarkSpec]):
        self._specs = tuple(specs)

    @classmethod
    def from_entries(
        cls, entries: Iterable[WatermarkEntry], base_path: str
    ) -> "WatermarkCatalog":
        """Resolve configured entries against ``base_path``."""
        return cls(
            WatermarkSpec(
                filename=entry.filename,
                width=entry.width,
                height=entry.height,
                path=os.path.join(base_path, entry.filename),
            )
            for entry in entries
        )

    def __iter__(self) -> Iterator[WatermarkSpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def specs(self) -> List[WatermarkSpec]:
        return list(self._specs)


class WatermarkSelector:
    """Chooses the largest watermark that fits inside a target size."""

    def __init__(self, catalog: WatermarkCatalog):
        self._catalog = catalog

    def select(self, target_width: int, target_height: int) -> Optional[WatermarkSpec]:
        """
        Return the fitting catalog entry with the largest area.

        Ties go to the entry listed first. None means no entry fits, which
        callers treat as "optimize without a watermark".
        """
        best: Optional[WatermarkSpec] = None
        for spec in self._catalog:
            if spec.width > target_width or spec.height > target_height:
                continue
            if best is None or spec.area > best.area:
                best = spec
        return best
