"""
Browser layout surface.

Measures and mutates a live Chromium page through Playwright. Every
query or mutation is one page.evaluate() call running a self-contained
script, so the page never changes between a read and the write based on it.

Offsets are accumulated through the offsetParent chain up to the fixed
container (which is position: relative); viewport coordinates are never
used because the container may lie outside the visible viewport.
"""

from typing import Any, Dict, List, Optional

from .document import CONTAINER_ID, NON_CONTENT_TAGS
from .errors import InputError
from .models import BlockMetrics, CandidateQuery, RelocationGranularity, SpacerKind
from .surface import LayoutSurface

# Shared helpers, inlined into every script
_PRELUDE = """
    const container = document.getElementById(args.containerId);
    const SKIP = new Set(args.skipTags);
    const isSpacer = (el) => el.hasAttribute('data-pagination-spacer');
    const isContent = (el) => !SKIP.has(el.tagName.toLowerCase()) && !isSpacer(el);

    const findRoot = () => {
        let root = null;
        try {
            root = container.querySelector(args.rootSelector);
        } catch (e) {
            root = null;
        }
        if (root) return root;
        for (const child of container.children) {
            if (isContent(child)) return child;
        }
        return null;
    };

    const offsetTopWithin = (el) => {
        let top = 0;
        let node = el;
        while (node && node !== container) {
            top += node.offsetTop;
            node = node.offsetParent;
        }
        return top;
    };

    const pathOf = (el, root) => {
        const parts = [];
        let node = el;
        while (node && node !== root && node.parentElement) {
            parts.push(Array.prototype.indexOf.call(node.parentElement.children, node));
            node = node.parentElement;
        }
        return parts.reverse().join('/');
    };

    const labelOf = (el) => {
        let label = el.tagName.toLowerCase();
        if (el.id) label += '#' + el.id;
        if (el.classList.length) label += '.' + el.classList[0];
        return label;
    };

    const metricsOf = (el, index, root) => ({
        index: index,
        path: pathOf(el, root),
        top: offsetTopWithin(el),
        height: el.getBoundingClientRect().height,
        label: labelOf(el),
    });

    const candidate = (index) => container.querySelector('[data-pagination-candidate="' + index + '"]');
"""

_SELECT_SCRIPT = """(args) => {
""" + _PRELUDE + """
    if (!container) return { error: 'container' };
    const root = findRoot();
    if (!root) return { error: 'content_root' };

    const out = [];
    const atDepth = (el, depth) => {
        for (const child of el.children) {
            if (!isContent(child)) continue;
            if (depth === 1) out.push(child);
            else atDepth(child, depth - 1);
        }
    };
    const marked = (el) => {
        for (const child of el.children) {
            if (!isContent(child)) continue;
            if (child.classList.contains(args.marker) || child.hasAttribute('data-' + args.marker)) {
                out.push(child);
            } else {
                marked(child);
            }
        }
    };
    if (args.depth === null) marked(root);
    else atDepth(root, args.depth);

    for (const el of container.querySelectorAll('[data-pagination-candidate]')) {
        el.removeAttribute('data-pagination-candidate');
    }
    return {
        blocks: out.map((el, index) => {
            el.setAttribute('data-pagination-candidate', String(index));
            return metricsOf(el, index, root);
        }),
    };
}"""

_MEASURE_SCRIPT = """(args) => {
""" + _PRELUDE + """
    if (!container) return { error: 'container' };
    const el = candidate(args.index);
    if (!el) return { error: 'missing' };
    return { block: metricsOf(el, args.index, findRoot()) };
}"""

_PRECEDING_SPACER_SCRIPT = """(args) => {
""" + _PRELUDE + """
    if (!container) return { error: 'container' };
    const el = candidate(args.index);
    if (!el) return { error: 'missing' };
    const prev = el.previousElementSibling;
    return { kind: prev ? prev.getAttribute('data-pagination-spacer') : null };
}"""

_INSERT_SCRIPT = """(args) => {
""" + _PRELUDE + """
    if (!container) return { error: 'container' };
    const el = candidate(args.index);
    if (!el || !el.parentNode) return { error: 'missing' };

    const makeSpacer = (kind, height) => {
        const spacer = document.createElement('div');
        spacer.setAttribute('data-pagination-spacer', kind);
        spacer.setAttribute('aria-hidden', 'true');
        spacer.style.cssText = [
            'display:block', 'width:100%', 'margin:0', 'padding:0', 'border:0', 'flex:none',
            'height:' + height + 'px', 'min-height:' + height + 'px', 'max-height:' + height + 'px',
            'background:' + args.background,
        ].join(';');
        return spacer;
    };

    const originalTop = offsetTopWithin(el);
    const expectedTop = originalTop + args.filler + args.gap;
    const filler = makeSpacer(args.fillerKind, args.filler);
    const gap = makeSpacer(args.gapKind, args.gap);
    el.parentNode.insertBefore(filler, el);
    el.parentNode.insertBefore(gap, el);

    // Margin collapsing around the new spacers can shift the block; correct once
    const delta = expectedTop - offsetTopWithin(el);
    const corrected = args.filler + delta;
    if (Math.abs(delta) > 0.5 && corrected >= 0) {
        filler.style.height = corrected + 'px';
        filler.style.minHeight = corrected + 'px';
        filler.style.maxHeight = corrected + 'px';
    }
    return { top: offsetTopWithin(el) };
}"""

_CONTENT_HEIGHT_SCRIPT = """(args) => {
""" + _PRELUDE + """
    if (!container) return { error: 'container' };
    return { height: Math.max(container.scrollHeight, container.getBoundingClientRect().height) };
}"""

_BACKGROUND_SCRIPT = """(args) => {
""" + _PRELUDE + """
    if (!container) return { error: 'container' };
    const transparent = (value) => !value || value === 'transparent' || /rgba\\([^)]*,\\s*0\\)$/.test(value);
    const chain = [];
    const root = findRoot();
    if (root) chain.push(root);
    chain.push(container, document.body, document.documentElement);
    for (const el of chain) {
        const value = getComputedStyle(el).backgroundColor;
        if (!transparent(value)) return { background: value };
    }
    return { background: null };
}"""

_FINAL_HEIGHT_SCRIPT = """(args) => {
""" + _PRELUDE + """
    if (!container) return { error: 'container' };
    container.style.minHeight = args.minHeight + 'px';
    container.style.background = args.background;
    document.body.style.background = args.background;
    document.documentElement.style.background = args.background;
    return { height: Math.max(container.scrollHeight, container.getBoundingClientRect().height) };
}"""


class BrowserLayoutSurface(LayoutSurface):
    """
    LayoutSurface backed by a Playwright page.

    Args:
        page: playwright.async_api.Page with the render document loaded
        container_id: id of the fixed container element
        root_selector: Selector of the content root (overridden by queries)
    """

    def __init__(self, page, container_id: str = CONTAINER_ID, root_selector: str = "[data-content-root]"):
        self.page = page
        self.container_id = container_id
        self.root_selector = root_selector

    def _args(self, **extra) -> Dict[str, Any]:
        args = {
            "containerId": self.container_id,
            "rootSelector": self.root_selector,
            "skipTags": sorted(NON_CONTENT_TAGS),
        }
        args.update(extra)
        return args

    async def _evaluate(self, script: str, **extra) -> Dict[str, Any]:
        result = await self.page.evaluate(script, self._args(**extra))
        error = result.get("error") if isinstance(result, dict) else "invalid"
        if error == "container":
            raise InputError("container", f"Pagination container #{self.container_id} not found")
        if error == "content_root":
            raise InputError("content_root", f"No content root found for selector {self.root_selector!r}")
        if error == "missing":
            raise IndexError(f"No selected block at index {extra.get('index')}")
        if error:
            raise InputError("container", f"Unexpected layout query result: {result!r}")
        return result

    @staticmethod
    def _to_metrics(data: Dict[str, Any]) -> BlockMetrics:
        return BlockMetrics(
            index=int(data["index"]),
            path=str(data.get("path", "")),
            top=float(data["top"]),
            height=float(data["height"]),
            label=str(data.get("label", "")),
        )

    async def select_blocks(self, query: CandidateQuery) -> List[BlockMetrics]:
        self.root_selector = query.root_selector
        depth = None if query.granularity == RelocationGranularity.MARKED else query.effective_depth
        result = await self._evaluate(_SELECT_SCRIPT, depth=depth, marker=query.marker)
        return [self._to_metrics(block) for block in result["blocks"]]

    async def measure(self, index: int) -> BlockMetrics:
        result = await self._evaluate(_MEASURE_SCRIPT, index=index)
        return self._to_metrics(result["block"])

    async def preceding_spacer(self, index: int) -> Optional[SpacerKind]:
        result = await self._evaluate(_PRECEDING_SPACER_SCRIPT, index=index)
        kind = result.get("kind")
        if not kind:
            return None
        # Any marked spacer counts; unknown kinds come from hand-written markup
        if kind in {k.value for k in SpacerKind}:
            return SpacerKind(kind)
        return SpacerKind.FILLER

    async def insert_spacers_before(
        self,
        index: int,
        filler_px: float,
        gap_px: float,
        background: str,
    ) -> None:
        await self._evaluate(
            _INSERT_SCRIPT,
            index=index,
            filler=filler_px,
            gap=gap_px,
            background=background,
            fillerKind=SpacerKind.FILLER.value,
            gapKind=SpacerKind.TOP_GAP.value,
        )

    async def content_height(self) -> float:
        result = await self._evaluate(_CONTENT_HEIGHT_SCRIPT)
        return float(result["height"])

    async def resolve_background(self) -> Optional[str]:
        result = await self._evaluate(_BACKGROUND_SCRIPT)
        return result.get("background")

    async def apply_final_height(self, min_height_px: float, background: str) -> float:
        result = await self._evaluate(_FINAL_HEIGHT_SCRIPT, minHeight=min_height_px, background=background)
        return float(result["height"])
