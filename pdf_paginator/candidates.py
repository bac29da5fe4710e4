"""
Break Candidate Selector.

Candidates are derived data: they are selected and measured again at the
start of every pass because each spacer insertion shifts the indices and
offsets of everything after it.
"""

from dataclasses import dataclass, field
from typing import List

from .analyzer import is_fresh, is_oversized
from .models import BlockMetrics, CandidateQuery, PageGeometry
from .surface import LayoutSurface


@dataclass
class CandidateSelection:
    """Candidates of one pass plus the blocks excluded as freshly relocated."""
    candidates: List[BlockMetrics] = field(default_factory=list)
    fresh: List[BlockMetrics] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.candidates) + len(self.fresh)


async def select_candidates(
    surface: LayoutSurface,
    query: CandidateQuery,
    geometry: PageGeometry,
) -> CandidateSelection:
    """
    Select the blocks eligible for relocation, in document order.

    Spacers are filtered by the surface. Blocks already sitting at a page
    head below the top gap are excluded to prevent oscillation; oversized
    blocks are kept so the analyzer can report them.

    Raises:
        InputError: If the surface cannot find the content root
    """
    selection = CandidateSelection()
    for block in await surface.select_blocks(query):
        if is_fresh(block, geometry) and not is_oversized(block, geometry):
            selection.fresh.append(block)
        else:
            selection.candidates.append(block)
    return selection
