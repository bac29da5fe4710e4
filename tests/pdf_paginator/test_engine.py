"""
Integration tests for the pagination engine on in-memory documents.

Scenarios use A4 at 96 dpi (H=1123) with an 80px safe margin and a 60px
top gap, so the first safe boundary sits at 1043 and a relocated block
lands at 1183.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pdf_paginator.analyzer import crosses_boundary, crosses_safe_boundary, is_oversized
from pdf_paginator.block_tree import CONTENT_ROOT_MARKER, Block, BlockTree
from pdf_paginator.config import PaginationOptions
from pdf_paginator.engine import PaginationEngine, paginate
from pdf_paginator.errors import NOT_CONVERGED, OVERSIZED_BLOCK, InputError
from pdf_paginator.models import CandidateQuery, PassState, SpacerKind
from pdf_paginator.trace import PaginationTracer


async def tops(tree: BlockTree):
    return [block.top for block in await tree.select_blocks(CandidateQuery())]


class TestReferenceScenario:
    """Three sections of 200, 700 and 250px."""

    @pytest.mark.asyncio
    async def test_converges_with_one_break(self, build_column, options):
        tree = build_column([200, 700, 250])
        result = await paginate(tree, options)

        assert result.state == PassState.CONVERGED
        assert result.converged is True
        assert result.page_count == 2
        assert result.breaks_applied == 1
        assert result.direct_passes == 2
        assert result.sweep_passes == 1
        assert result.warnings == []
        assert result.initial_content_height == 1150
        assert result.final_content_height == pytest.approx(2247)

    @pytest.mark.asyncio
    async def test_block_moves_to_top_gap_of_next_page(self, build_column, options):
        tree = build_column([200, 700, 250])
        await paginate(tree, options)

        assert await tops(tree) == [0, 200, 1183]
        filler, gap = tree.spacers()
        assert filler.spacer_kind == SpacerKind.FILLER
        assert filler.height == pytest.approx(223)
        assert gap.spacer_kind == SpacerKind.TOP_GAP
        assert gap.height == 60

    @pytest.mark.asyncio
    async def test_background_fallback_and_propagation(self, build_column, options):
        tree = build_column([200, 700, 250])
        result = await paginate(tree, options)
        assert result.background == "#ffffff"
        assert tree.container.background == "#ffffff"
        assert tree.page_background == "#ffffff"

    @pytest.mark.asyncio
    async def test_document_background_paints_spacers(self, build_column, options):
        tree = build_column([200, 700, 250], background="#f5f0e8")
        result = await paginate(tree, options)
        assert result.background == "#f5f0e8"
        assert {s.background for s in tree.spacers()} == {"#f5f0e8"}
        assert tree.page_background == "#f5f0e8"


class TestSinglePage:
    """Documents that already fit."""

    @pytest.mark.asyncio
    async def test_short_document_is_left_untouched(self, build_column, options):
        tree = build_column([100, 200, 300])
        result = await paginate(tree, options)

        assert result.converged
        assert result.page_count == 1
        assert result.breaks_applied == 0
        assert result.direct_passes == 1
        assert tree.spacers() == []
        assert result.final_content_height == pytest.approx(1124)

    @pytest.mark.asyncio
    async def test_sweeps_disabled(self, build_column):
        options = PaginationOptions(max_boundary_sweep_passes=0)
        result = await paginate(build_column([100]), options)
        assert result.sweep_passes == 0
        assert result.converged


class TestOversized:
    """Blocks taller than the usable page height."""

    @pytest.mark.asyncio
    async def test_single_oversized_block(self, build_column, options):
        tree = build_column([1200])
        result = await paginate(tree, options)

        assert result.state == PassState.CONVERGED
        assert result.page_count == 2
        assert result.final_content_height == pytest.approx(2247)
        assert result.breaks_applied == 0
        assert result.oversized_blocks == ["0/0"]
        assert [w["code"] for w in result.warnings] == [OVERSIZED_BLOCK]
        assert tree.spacers() == []

    @pytest.mark.asyncio
    async def test_oversized_block_reported_once(self, build_column, options):
        tree = build_column([200, 1500, 300])
        result = await paginate(tree, options)
        codes = [w["code"] for w in result.warnings]
        assert codes.count(OVERSIZED_BLOCK) == 1


class TestExhaustion:
    """Violations the engine cannot resolve."""

    @staticmethod
    def guarded_document() -> BlockTree:
        column = Block(children=[
            Block(label="b1", height=900),
            Block(label="stale", height=10, spacer_kind=SpacerKind.FILLER),
            Block(label="b2", height=250),
        ])
        root = Block(markers={CONTENT_ROOT_MARKER}, children=[column])
        return BlockTree(Block(children=[root]))

    @pytest.mark.asyncio
    async def test_guarded_violation_exhausts(self, options):
        tree = self.guarded_document()
        result = await paginate(tree, options)

        assert result.state == PassState.EXHAUSTED
        assert result.unresolved_violations == 1
        assert result.direct_passes == 1
        assert result.sweep_passes == 1
        assert result.page_count == 2
        assert [w["code"] for w in result.warnings] == [NOT_CONVERGED]
        assert result.warnings[0]["details"]["blocks"] == ["0/2"]
        assert len(tree.spacers()) == 1

    @pytest.mark.asyncio
    async def test_pass_budget_bounds_termination(self):
        """Content that grows on every insertion still terminates."""

        class GrowingTree(BlockTree):
            async def insert_spacers_before(self, index, filler_px, gap_px, background):
                await super().insert_spacers_before(index, filler_px, gap_px, background)
                column = self.container.children[0].children[0]
                column.insert(0, Block(label="late", height=400))

        column = Block(children=[Block(label=f"s{i}", height=h) for i, h in enumerate([200, 700, 250, 600, 600])])
        tree = GrowingTree(Block(children=[Block(markers={CONTENT_ROOT_MARKER}, children=[column])]))
        options = PaginationOptions(max_direct_passes=3, max_boundary_sweep_passes=1)

        result = await paginate(tree, options)

        assert result.state.is_terminal
        assert result.direct_passes <= 3
        assert result.sweep_passes <= 1


class TestCascade:
    """Breaks shift later blocks, which are re-judged within the same pass."""

    @pytest.mark.asyncio
    async def test_equal_sections_cascade(self, build_column, options):
        tree = build_column([500] * 5)
        result = await paginate(tree, options)

        assert result.converged
        assert result.breaks_applied == 3
        assert result.direct_passes == 2
        assert await tops(tree) == [0, 500, 1183, 2306, 3429]
        assert result.page_count == 4
        assert result.final_content_height == pytest.approx(4493)

    @pytest.mark.asyncio
    async def test_blocks_before_first_break_keep_their_offsets(self, build_column, options):
        heights = [150, 300, 250, 400, 350, 200, 500]
        tree = build_column(heights)
        before = await tops(tree)

        await paginate(tree, options)

        after = await tops(tree)
        # [0, 150, 450, 700) all end before the first safe boundary
        assert after[:3] == before[:3]

    @pytest.mark.asyncio
    async def test_no_block_is_split(self, build_column, geometry):
        heights = [300, 450, 600, 200, 800, 150, 400, 500, 120, 960, 330]
        tree = build_column(heights)
        options = PaginationOptions(max_direct_passes=20)

        result = await paginate(tree, options)

        assert result.converged
        for block in await tree.select_blocks(CandidateQuery()):
            assert not crosses_safe_boundary(block, geometry) or is_oversized(block, geometry)
            for k in range(1, result.page_count):
                assert not crosses_boundary(block, k * geometry.page_height_px)


class TestIdempotence:
    """Repeated runs do not pile up spacers."""

    @pytest.mark.asyncio
    async def test_rerun_adds_no_spacers(self, build_column, options):
        tree = build_column([200, 700, 250])
        await paginate(tree, options)
        spacer_count = len(tree.spacers())
        positions = await tops(tree)

        result = await paginate(tree, options)

        assert result.breaks_applied == 0
        assert len(tree.spacers()) == spacer_count
        assert await tops(tree) == positions

    @pytest.mark.asyncio
    async def test_rerun_keeps_page_count(self, build_column, options):
        """The previous run's final height is not counted as content."""
        tree = build_column([200, 700, 250])
        first = await paginate(tree, options)
        second = await paginate(tree, options)

        assert first.page_count == second.page_count == 2
        assert second.final_content_height == pytest.approx(2247)
        assert tree.container.min_height == pytest.approx(2247)


class TestTwoColumns:
    """Side-by-side column wrappers share the same page boundaries."""

    @pytest.mark.asyncio
    async def test_each_column_breaks_independently(self, build_two_columns, options):
        tree = build_two_columns([300, 900], [500, 500, 500])
        result = await paginate(tree, options)

        assert result.converged
        assert result.breaks_applied == 2
        assert result.page_count == 2
        by_label = {b.label: b.top for b in await tree.select_blocks(CandidateQuery())}
        assert by_label["left2"] == 1183
        assert by_label["right3"] == 1183
        assert by_label["right2"] == 500


class TestConcurrency:
    """Independent documents paginate concurrently."""

    @pytest.mark.asyncio
    async def test_gather_independent_runs(self, build_column, options):
        first = build_column([200, 700, 250])
        second = build_column([500] * 5)

        results = await asyncio.gather(paginate(first, options), paginate(second, options))

        assert [r.page_count for r in results] == [2, 4]
        assert len(first.spacers()) == 2
        assert len(second.spacers()) == 6


class TestInputErrors:
    """Structural problems abort before any mutation."""

    @pytest.mark.asyncio
    async def test_missing_container(self, options):
        with pytest.raises(InputError) as exc_info:
            await paginate(BlockTree(None), options)
        assert exc_info.value.precondition == "container"

    @pytest.mark.asyncio
    async def test_missing_content_root(self, options):
        with pytest.raises(InputError) as exc_info:
            await paginate(BlockTree(Block(label="empty")), options)
        assert exc_info.value.precondition == "content_root"

    @pytest.mark.asyncio
    async def test_unmeasurable_container(self, options):
        surface = MagicMock()
        surface.content_height = AsyncMock(return_value=float("nan"))

        with pytest.raises(InputError) as exc_info:
            await paginate(surface, options)

        assert exc_info.value.precondition == "container"
        surface.insert_spacers_before.assert_not_called()


class TestTracing:
    """Trace events mirror the run."""

    @pytest.mark.asyncio
    async def test_event_sequence(self, build_column, options):
        tracer = PaginationTracer(run_id="run-1")
        result = await PaginationEngine(options, tracer=tracer).run(build_column([200, 700, 250]))

        names = [event["event"] for event in result.events]
        assert names[0] == "engine_start"
        assert names[-1] == "engine_complete"
        assert names.count("break_applied") == 1
        assert "sweep_start" in names
        assert result.events[-1]["metadata"]["state"] == "converged"
        assert result.events[-1]["page_count"] == 2
        assert all(event["run_id"] == "run-1" for event in result.events)
        assert result.events[-1]["metadata"]["warnings"] == {}

    @pytest.mark.asyncio
    async def test_completion_event_counts_warnings(self, build_column, options):
        tracer = PaginationTracer(run_id="run-2")
        result = await PaginationEngine(options, tracer=tracer).run(build_column([1200]))

        assert result.events[-1]["metadata"]["warnings"] == {OVERSIZED_BLOCK: 1}

    @pytest.mark.asyncio
    async def test_disabled_tracer_does_not_change_outcome(self, build_column, options):
        traced = await paginate(build_column([500] * 5), options)
        silent = await paginate(
            build_column([500] * 5), options, tracer=PaginationTracer(run_id="quiet", enabled=False)
        )
        assert silent.events == []
        assert silent.to_dict() == traced.to_dict()


class TestZeroTopGap:
    """Pages without a leading margin."""

    @pytest.mark.asyncio
    async def test_block_just_above_boundary_is_relocated(self):
        section = Block(label="s0", height=100)
        column = Block(label="column", padding_top=1122, children=[section])
        tree = BlockTree(Block(children=[Block(markers={CONTENT_ROOT_MARKER}, children=[column])]))
        options = PaginationOptions(page_height_px=1123, bottom_safe_margin_px=80, top_gap_px=0)

        result = await paginate(tree, options)

        assert result.converged
        assert result.breaks_applied == 1
        assert result.page_count == 2
        assert tree.offset_top(section) == pytest.approx(1123)
        [block] = await tree.select_blocks(CandidateQuery())
        assert not crosses_boundary(block, 1123)


class TestGranularities:
    """Non-default relocation granularities, end to end."""

    @pytest.mark.asyncio
    async def test_children_granularity(self):
        sections = [Block(label=f"s{i}", height=h) for i, h in enumerate([200, 700, 250])]
        tree = BlockTree(Block(children=[Block(markers={CONTENT_ROOT_MARKER}, children=sections)]))
        options = PaginationOptions(page_height_px=1123, relocation_granularity="children")

        result = await paginate(tree, options)

        assert result.converged
        assert result.breaks_applied == 1
        assert result.page_count == 2
        assert [tree.offset_top(s) for s in sections] == [0, 200, 1183]

    @pytest.mark.asyncio
    async def test_marked_group_moves_as_a_unit(self):
        first = Block(label="job1", height=400)
        second = Block(label="job2", height=400)
        group = Block(label="experience", markers={"no-split"}, children=[first, second])
        column = Block(children=[Block(label="intro", height=300), group, Block(label="footer", height=200)])
        tree = BlockTree(Block(children=[Block(markers={CONTENT_ROOT_MARKER}, children=[column])]))
        options = PaginationOptions(page_height_px=1123, relocation_granularity="marked")

        result = await paginate(tree, options)

        assert result.converged
        assert result.breaks_applied == 1
        assert result.page_count == 2
        assert tree.offset_top(group) == pytest.approx(1183)
        assert tree.offset_top(first) == pytest.approx(1183)
        assert tree.offset_top(second) == pytest.approx(1583)
        assert [s.spacer_kind for s in tree.spacers()] == [SpacerKind.FILLER, SpacerKind.TOP_GAP]
