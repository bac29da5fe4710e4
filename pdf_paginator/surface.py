"""
Layout surface interface.

A LayoutSurface is the engine's only view of the document: it measures
blocks relative to the fixed container origin and performs the few
mutations pagination needs. Implementations exist for a live Chromium
page (browser_surface.py) and for an in-memory block tree (block_tree.py).

Block identity is the pass-local document-order index handed out by
select_blocks(); indices stay valid across insertions until the next
select_blocks() call replaces them.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import BlockMetrics, CandidateQuery, SpacerKind


class LayoutSurface(ABC):
    """Abstract layout metrics provider and mutation target."""

    @abstractmethod
    async def select_blocks(self, query: CandidateQuery) -> List[BlockMetrics]:
        """
        Select and measure blocks at the configured granularity.

        Spacers are never returned. Assigns fresh pass-local indices.

        Raises:
            InputError: If the content root cannot be found
        """

    @abstractmethod
    async def measure(self, index: int) -> BlockMetrics:
        """Measure a selected block now (no caching)."""

    @abstractmethod
    async def preceding_spacer(self, index: int) -> Optional[SpacerKind]:
        """Kind of spacer immediately preceding the block, if any."""

    @abstractmethod
    async def insert_spacers_before(
        self,
        index: int,
        filler_px: float,
        gap_px: float,
        background: str,
    ) -> None:
        """Insert a bottom-filler spacer and a top-gap spacer before the block."""

    @abstractmethod
    async def content_height(self) -> float:
        """
        Current height of the fixed container.

        Raises:
            InputError: If the container cannot be measured
        """

    @abstractmethod
    async def resolve_background(self) -> Optional[str]:
        """Effective document background colour, or None if transparent."""

    @abstractmethod
    async def apply_final_height(self, min_height_px: float, background: str) -> float:
        """
        Force the container's minimum height and paint the background.

        Returns:
            Container height after the change
        """
