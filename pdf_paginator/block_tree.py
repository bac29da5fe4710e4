"""
In-memory document tree.

A pure-Python layout model that honours the LayoutSurface contract:
blocks stack vertically inside their parent (or sit side by side for
"row" wrappers such as multi-column layouts), and every offset is derived
from the current tree on each query. Nothing is cached, so a mutation is
visible to the very next measurement.

Used for offline pagination of block-tree JSON and by the test suite.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set

from .errors import InputError
from .models import BlockMetrics, CandidateQuery, RelocationGranularity, SpacerKind
from .surface import LayoutSurface

# Marker equivalent of the [data-content-root] attribute
CONTENT_ROOT_MARKER = "content-root"


@dataclass(eq=False)
class Block:
    """
    A node of the document tree.

    Attributes:
        label: Name used in traces (e.g. "section.experience")
        height: Intrinsic content height, used when the block has no children
        padding_top: Space above the children
        padding_bottom: Space below the children
        direction: "column" stacks children, "row" lays them side by side
        markers: Class/attribute markers such as "no-split" or "content-root"
        children: Child blocks in document order
        spacer_kind: Set only on synthetic spacers
        background: Background colour, if the block paints one
        min_height: Minimum extent (used by the final-page sizer)
    """
    label: str = ""
    height: float = 0.0
    padding_top: float = 0.0
    padding_bottom: float = 0.0
    direction: str = "column"
    markers: Set[str] = field(default_factory=set)
    children: List["Block"] = field(default_factory=list)
    spacer_kind: Optional[SpacerKind] = None
    background: Optional[str] = None
    min_height: float = 0.0
    parent: Optional["Block"] = field(default=None, repr=False)

    def __post_init__(self):
        if self.direction not in ("column", "row"):
            raise ValueError(f"direction must be 'column' or 'row', got {self.direction!r}")
        self.markers = set(self.markers)
        for child in self.children:
            child.parent = self

    @property
    def is_spacer(self) -> bool:
        return self.spacer_kind is not None

    def append(self, child: "Block") -> "Block":
        child.parent = self
        self.children.append(child)
        return child

    def insert(self, position: int, child: "Block") -> "Block":
        child.parent = self
        self.children.insert(position, child)
        return child

    def position(self) -> int:
        """Index of this block among its parent's children."""
        if self.parent is None:
            return 0
        for i, sibling in enumerate(self.parent.children):
            if sibling is self:
                return i
        raise ValueError(f"Block {self.label!r} is not a child of its parent")

    def outer_height(self) -> float:
        if self.children:
            heights = [child.outer_height() for child in self.children]
            if self.direction == "row":
                content = max(heights)
            else:
                content = sum(heights)
        else:
            content = self.height
        return max(self.padding_top + content + self.padding_bottom, self.min_height)

    def child_offset(self, child: "Block") -> float:
        """Top of ``child`` relative to this block's top edge."""
        offset = self.padding_top
        if self.direction == "row":
            return offset
        for sibling in self.children:
            if sibling is child:
                return offset
            offset += sibling.outer_height()
        raise ValueError(f"Block {child.label!r} is not a child of {self.label!r}")

    def iter_tree(self) -> Iterator["Block"]:
        """Depth-first, document-order traversal including self."""
        yield self
        for child in self.children:
            yield from child.iter_tree()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Block":
        """
        Build a tree from plain data.

        Example:
            >>> Block.from_dict({"label": "root", "children": [{"height": 120}]})
        """
        spacer = data.get("spacer_kind")
        return cls(
            label=data.get("label", ""),
            height=float(data.get("height", 0.0)),
            padding_top=float(data.get("padding_top", 0.0)),
            padding_bottom=float(data.get("padding_bottom", 0.0)),
            direction=data.get("direction", "column"),
            markers=set(data.get("markers", [])),
            children=[cls.from_dict(child) for child in data.get("children", [])],
            spacer_kind=SpacerKind(spacer) if spacer else None,
            background=data.get("background"),
            min_height=float(data.get("min_height", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"label": self.label}
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        else:
            data["height"] = self.height
        if self.padding_top:
            data["padding_top"] = self.padding_top
        if self.padding_bottom:
            data["padding_bottom"] = self.padding_bottom
        if self.direction != "column":
            data["direction"] = self.direction
        if self.markers:
            data["markers"] = sorted(self.markers)
        if self.spacer_kind:
            data["spacer_kind"] = self.spacer_kind.value
        if self.background:
            data["background"] = self.background
        if self.min_height:
            data["min_height"] = self.min_height
        return data


def make_spacer(kind: SpacerKind, height: float, background: str) -> Block:
    return Block(label=f"spacer:{kind.value}", height=height, spacer_kind=kind, background=background)


class BlockTree(LayoutSurface):
    """
    LayoutSurface over an in-memory Block tree.

    ``container`` plays the fixed container whose top edge is the origin
    of every measurement; ``page_background`` plays the wrapping surface
    (the page body) behind it.
    """

    def __init__(self, container: Optional[Block], page_background: Optional[str] = None):
        self.container = container
        self.page_background = page_background
        self._selected: List[Block] = []
        self._root: Optional[Block] = None

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def offset_top(self, block: Block) -> float:
        """Accumulate each ancestor's layout offset up to the container."""
        top = 0.0
        node = block
        while node is not self.container:
            if node.parent is None:
                raise ValueError(f"Block {block.label!r} is not inside the container")
            top += node.parent.child_offset(node)
            node = node.parent
        return top

    def _path(self, block: Block) -> str:
        parts = []
        node = block
        while node is not self._root and node.parent is not None:
            parts.append(str(node.position()))
            node = node.parent
        return "/".join(reversed(parts))

    def _metrics(self, index: int, block: Block) -> BlockMetrics:
        return BlockMetrics(
            index=index,
            path=self._path(block),
            top=self.offset_top(block),
            height=block.outer_height(),
            label=block.label,
        )

    def _require_container(self) -> Block:
        if self.container is None:
            raise InputError("container", "Pagination container is missing")
        return self.container

    def find_content_root(self) -> Block:
        """Marked content root, else the container's first child."""
        container = self._require_container()
        for block in container.iter_tree():
            if block is not container and CONTENT_ROOT_MARKER in block.markers:
                return block
        for child in container.children:
            if not child.is_spacer:
                return child
        raise InputError("content_root", "No content root found in the document")

    # ------------------------------------------------------------------
    # Candidate selection
    # ------------------------------------------------------------------

    def _at_depth(self, block: Block, depth: int) -> Iterator[Block]:
        for child in block.children:
            if child.is_spacer:
                continue
            if depth == 1:
                yield child
            else:
                yield from self._at_depth(child, depth - 1)

    def _marked(self, block: Block, marker: str) -> Iterator[Block]:
        for child in block.children:
            if child.is_spacer:
                continue
            if marker in child.markers:
                # Outermost marked block only; nested markers move with it
                yield child
            else:
                yield from self._marked(child, marker)

    async def select_blocks(self, query: CandidateQuery) -> List[BlockMetrics]:
        self._root = self.find_content_root()
        if query.granularity == RelocationGranularity.MARKED:
            blocks = list(self._marked(self._root, query.marker))
        else:
            blocks = list(self._at_depth(self._root, query.effective_depth))
        self._selected = blocks
        return [self._metrics(i, block) for i, block in enumerate(blocks)]

    def _selected_block(self, index: int) -> Block:
        if index < 0 or index >= len(self._selected):
            raise IndexError(f"No selected block at index {index}")
        return self._selected[index]

    # ------------------------------------------------------------------
    # LayoutSurface
    # ------------------------------------------------------------------

    async def measure(self, index: int) -> BlockMetrics:
        return self._metrics(index, self._selected_block(index))

    async def preceding_spacer(self, index: int) -> Optional[SpacerKind]:
        block = self._selected_block(index)
        position = block.position()
        if block.parent is None or position == 0:
            return None
        return block.parent.children[position - 1].spacer_kind

    async def insert_spacers_before(
        self,
        index: int,
        filler_px: float,
        gap_px: float,
        background: str,
    ) -> None:
        block = self._selected_block(index)
        parent = block.parent
        if parent is None:
            raise ValueError(f"Cannot insert spacers before detached block {block.label!r}")
        position = block.position()
        parent.insert(position, make_spacer(SpacerKind.FILLER, filler_px, background))
        parent.insert(position + 1, make_spacer(SpacerKind.TOP_GAP, gap_px, background))

    async def content_height(self) -> float:
        return self._require_container().outer_height()

    async def resolve_background(self) -> Optional[str]:
        container = self._require_container()
        for block in container.iter_tree():
            if block.background and not block.is_spacer:
                return block.background
        return self.page_background

    async def apply_final_height(self, min_height_px: float, background: str) -> float:
        container = self._require_container()
        container.min_height = min_height_px
        container.background = background
        self.page_background = background
        return container.outer_height()

    def spacers(self) -> List[Block]:
        """All spacers currently in the tree, in document order."""
        if self.container is None:
            return []
        return [block for block in self.container.iter_tree() if block.is_spacer]
