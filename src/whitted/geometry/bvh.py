"""Bounding volume hierarchy construction over axis-aligned boxes.

The hierarchy is built on the host from one bounding box per primitive and
then flattened into arrays that a Taichi kernel can walk without a stack:

- nodes are stored in depth-first pre-order, so an internal node's left
  child is always the next array slot;
- ``next`` is the skip link: the node to visit when the current subtree is
  finished or pruned (the right sibling, or an ancestor's right sibling,
  or -1 at the end of the walk).

Two split strategies are supported:
    "order": split the index range at its midpoint in array order
    "centroid": sort by box centroid along the widest centroid axis, then
        split at the median

Both produce leaves holding exactly one primitive.

Example:
    >>> import numpy as np
    >>> boxes = [(np.zeros(3), np.ones(3)), (np.full(3, 2.0), np.full(3, 3.0))]
    >>> root = build_bvh(boxes)
    >>> root.n_nodes
    3
    >>> flat = flatten_bvh(root)
    >>> flat["primitive_index"].tolist()
    [-1, 0, 1]
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Literal

import numpy as np
import numpy.typing as npt

SplitStrategy = Literal["order", "centroid"]

Box = tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]


@dataclass
class AABB:
    """Axis-aligned bounding box.

    Attributes:
        min: Per-axis minimum corner.
        max: Per-axis maximum corner.
    """

    min: npt.NDArray[np.float64]
    max: npt.NDArray[np.float64]

    @property
    def centroid(self) -> npt.NDArray[np.float64]:
        """Center point of the box."""
        return (self.min + self.max) / 2.0

    @classmethod
    def from_box(cls, box: Box) -> AABB:
        box_min, box_max = box
        return cls(
            np.asarray(box_min, dtype=np.float64),
            np.asarray(box_max, dtype=np.float64),
        )

    def contains(self, other: AABB) -> bool:
        """Whether other lies entirely inside this box."""
        return bool(np.all(self.min <= other.min) and np.all(self.max >= other.max))


def surrounding_box(a: AABB, b: AABB) -> AABB:
    """Smallest box enclosing both a and b."""
    return AABB(np.minimum(a.min, b.min), np.maximum(a.max, b.max))


class BVHNode:
    """A node of the bounding volume hierarchy.

    A leaf holds exactly one primitive index and that primitive's box; an
    internal node holds two children and the union of their boxes.
    """

    def __init__(
        self,
        primitive_indices: list[int],
        boxes: list[AABB],
        strategy: SplitStrategy = "centroid",
        parent: BVHNode | None = None,
    ) -> None:
        n_prims = len(primitive_indices)
        if n_prims < 1:
            raise ValueError("A BVH node needs at least one primitive")

        self.parent = parent
        self.left: BVHNode | None = None
        self.right: BVHNode | None = None
        self.primitive_index = -1
        self.index = -1

        if n_prims == 1:
            self.primitive_index = primitive_indices[0]
            self.box = boxes[0]
            self.n_nodes = 1
            self.height = 1
            return

        if strategy == "centroid":
            centroids = np.array([box.centroid for box in boxes])
            span = centroids.max(axis=0) - centroids.min(axis=0)
            axis = int(np.argmax(span))
            order = sorted(range(n_prims), key=lambda k: centroids[k][axis])
            primitive_indices = [primitive_indices[k] for k in order]
            boxes = [boxes[k] for k in order]
        elif strategy != "order":
            raise ValueError(f"Unknown BVH split strategy: {strategy}")

        mid = n_prims // 2
        self.left = BVHNode(primitive_indices[:mid], boxes[:mid], strategy, parent=self)
        self.right = BVHNode(primitive_indices[mid:], boxes[mid:], strategy, parent=self)
        self.box = surrounding_box(self.left.box, self.right.box)
        self.n_nodes = self.left.n_nodes + self.right.n_nodes + 1
        self.height = max(self.left.height, self.right.height) + 1

    @property
    def is_leaf(self) -> bool:
        return self.primitive_index != -1

    def next(self) -> BVHNode | None:
        """The node visited after this subtree in a pre-order walk."""
        node = self
        while node.parent is not None:
            parent = node.parent
            if parent.right is not node:
                return parent.right
            node = parent
        return None

    def walk(self) -> Iterator[BVHNode]:
        """Yield this node and its descendants in depth-first pre-order."""
        yield self
        if not self.is_leaf:
            assert self.left is not None and self.right is not None
            yield from self.left.walk()
            yield from self.right.walk()


def build_bvh(boxes: Sequence[Box], strategy: SplitStrategy = "centroid") -> BVHNode:
    """Build a hierarchy over one bounding box per primitive.

    Args:
        boxes: Sequence of (box_min, box_max) pairs; the position in the
            sequence is the primitive index stored in the leaves.
        strategy: Split strategy, "order" or "centroid".

    Returns:
        The root node.

    Raises:
        ValueError: If boxes is empty or the strategy is unknown.
    """
    if len(boxes) == 0:
        raise ValueError("Cannot build a BVH over zero primitives")
    aabbs = [AABB.from_box(box) for box in boxes]
    return BVHNode(list(range(len(aabbs))), aabbs, strategy)


def flatten_bvh(root: BVHNode) -> dict[str, npt.NDArray]:
    """Flatten a hierarchy into pre-order arrays with skip links.

    Returns:
        Dictionary with keys ``min`` and ``max`` (float32, shape (n, 3)),
        ``primitive_index`` (int32, -1 for internal nodes) and ``next``
        (int32, -1 when the walk is over).
    """
    nodes = list(root.walk())
    for i, node in enumerate(nodes):
        node.index = i

    n = len(nodes)
    min_arr = np.empty((n, 3), np.float32)
    max_arr = np.empty((n, 3), np.float32)
    primitive_index_arr = np.empty(n, np.int32)
    next_arr = np.full(n, -1, np.int32)

    for i, node in enumerate(nodes):
        min_arr[i] = node.box.min
        max_arr[i] = node.box.max
        primitive_index_arr[i] = node.primitive_index
        following = node.next()
        if following is not None:
            next_arr[i] = following.index

    return {
        "min": min_arr,
        "max": max_arr,
        "primitive_index": primitive_index_arr,
        "next": next_arr,
    }
