"""
Shared fixtures for pagination engine tests.

Documents are built as in-memory block trees with the usual structure:
container -> content root -> column wrapper(s) -> section blocks.
"""

from typing import List, Optional

import pytest

from pdf_paginator.block_tree import CONTENT_ROOT_MARKER, Block, BlockTree
from pdf_paginator.config import PaginationOptions
from pdf_paginator.models import PageGeometry

# A4 at 96 dpi
PAGE_HEIGHT = 1123.0
SAFE_MARGIN = 80.0
TOP_GAP = 60.0


def make_sections(heights: List[float], prefix: str = "section") -> List[Block]:
    return [Block(label=f"{prefix}{i + 1}", height=h) for i, h in enumerate(heights)]


def column_document(heights: List[float], background: Optional[str] = None) -> BlockTree:
    """Single-column document whose sections stack from top=0."""
    column = Block(label="column", children=make_sections(heights))
    root = Block(label="root", markers={CONTENT_ROOT_MARKER}, children=[column], background=background)
    container = Block(label="container", children=[root])
    return BlockTree(container)


def two_column_document(left: List[float], right: List[float]) -> BlockTree:
    """Two side-by-side column wrappers, as in a sidebar CV layout."""
    left_column = Block(label="left", children=make_sections(left, prefix="left"))
    right_column = Block(label="right", children=make_sections(right, prefix="right"))
    root = Block(
        label="root",
        markers={CONTENT_ROOT_MARKER},
        direction="row",
        children=[left_column, right_column],
    )
    return BlockTree(Block(label="container", children=[root]))


@pytest.fixture
def geometry() -> PageGeometry:
    return PageGeometry(
        page_height_px=PAGE_HEIGHT,
        render_width_px=794,
        bottom_safe_margin_px=SAFE_MARGIN,
        top_gap_px=TOP_GAP,
        freshness_epsilon_px=2.0,
        final_height_buffer_px=1.0,
    )


@pytest.fixture
def options() -> PaginationOptions:
    return PaginationOptions(
        page_height_px=PAGE_HEIGHT,
        bottom_safe_margin_px=SAFE_MARGIN,
        top_gap_px=TOP_GAP,
    )


@pytest.fixture
def build_column():
    """Factory for single-column documents."""
    return column_document


@pytest.fixture
def build_two_columns():
    """Factory for two-column documents."""
    return two_column_document
