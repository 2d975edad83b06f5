from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ca_reco.errors import EmptyState, InvalidArity
from ca_reco.hits import Hit


class SegmentState:
    r"""
    Cellular-automaton rating of a segment, one integer slot per hit position.

    Slots are indexed from the **inner** end of the hit chain: slot ``0``
    belongs to the innermost hit, the last slot to the outermost one.

    - :attr:`inner` is slot ``0``; it is the slot the automaton raises.
    - :attr:`outer` is the last slot; it is what a parent compares against.

    Raising moves every slot by one so that offsets written through
    :meth:`set` (e.g. to credit layers skipped inside the chain) survive
    relaxation. With a fresh state all slots are equal and
    ``inner == outer``.
    """

    __slots__ = ("_slots",)

    def __init__(self, size: int) -> None:
        self._slots: List[int] = [0] * int(size)

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self):
        return iter(self._slots)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SegmentState):
            return self._slots == other._slots
        return NotImplemented

    def __repr__(self) -> str:
        return f"SegmentState({self._slots})"

    @property
    def inner(self) -> int:
        if not self._slots:
            raise EmptyState("inner state requested but the state holds no slot")
        return self._slots[0]

    @property
    def outer(self) -> int:
        if not self._slots:
            raise EmptyState("outer state requested but the state holds no slot")
        return self._slots[-1]

    @property
    def per_hit(self) -> Tuple[int, ...]:
        return tuple(self._slots)

    def raise_(self) -> None:
        if not self._slots:
            raise EmptyState("cannot raise an empty state")
        self._slots = [s + 1 for s in self._slots]

    def reset(self, size: Optional[int] = None) -> None:
        n = len(self._slots) if size is None else int(size)
        self._slots = [0] * n

    def set(self, values: Sequence[int]) -> None:
        if len(values) != len(self._slots):
            raise ValueError(
                f"state needs {len(self._slots)} slots (one per hit), got {len(values)}"
            )
        self._slots = [int(v) for v in values]


class Segment:
    r"""
    Node of the segment network: a connected chain of one or more hits.

    A *k-segment* holds :math:`k` hits ordered from the outer to the inner
    layer. Parents sit on higher (outer) layers, children on lower (inner)
    layers. Links are stored as arena indices of the owning
    :class:`~ca_reco.network.SegmentNetwork`, so a segment never keeps another
    segment alive.

    Parameters
    ----------
    hits : sequence of Hit
        Hit chain, outer → inner. Must be non-empty.
    index : int, optional
        Position in the owning network. Assigned by
        :meth:`SegmentNetwork.add <ca_reco.network.SegmentNetwork.add>`.

    Raises
    ------
    InvalidArity
        If ``hits`` is empty.

    Notes
    -----
    :meth:`add_child` and :meth:`add_parent` only write one side of an edge;
    the network's ``link`` always writes both. :meth:`delete_child` and
    :meth:`delete_parent` remove both sides at once.
    """

    __slots__ = ("index", "hits", "layer", "state", "children", "parents", "skipped_layers")

    def __init__(self, hits: Sequence[Hit], index: int = -1) -> None:
        hits = tuple(hits)
        if not hits:
            raise InvalidArity("a segment needs at least one hit")
        self.index = int(index)
        self.hits: Tuple[Hit, ...] = hits
        self.layer: int = hits[0].layer
        self.state = SegmentState(len(hits))
        self.children: Set[int] = set()
        self.parents: Set[int] = set()
        self.skipped_layers: int = 0

    @classmethod
    def create(cls, hits: Iterable[Hit], index: int = -1) -> "Segment":
        return cls(tuple(hits), index=index)

    def __repr__(self) -> str:
        ids = ",".join(str(h.hit_id) for h in self.hits)
        return f"Segment(#{self.index}, layer={self.layer}, hits=[{ids}], state={list(self.state)})"

    @property
    def arity(self) -> int:
        return len(self.hits)

    @property
    def inner_layer(self) -> int:
        return self.hits[-1].layer

    @property
    def hit_ids(self) -> Tuple[int, ...]:
        return tuple(h.hit_id for h in self.hits)

    # --- edges -------------------------------------------------------------
    def add_child(self, child: "Segment") -> None:
        self.children.add(child.index)

    def add_parent(self, parent: "Segment") -> None:
        self.parents.add(parent.index)

    def delete_child(self, child: "Segment") -> bool:
        existed = child.index in self.children
        self.children.discard(child.index)
        child.parents.discard(self.index)
        return existed

    def delete_parent(self, parent: "Segment") -> bool:
        existed = parent.index in self.parents
        self.parents.discard(parent.index)
        parent.children.discard(self.index)
        return existed

    # --- state -------------------------------------------------------------
    @property
    def inner_state(self) -> int:
        return self.state.inner

    @property
    def outer_state(self) -> int:
        return self.state.outer

    def get_inner_state(self) -> int:
        return self.state.inner

    def get_outer_state(self) -> int:
        return self.state.outer

    def raise_state(self) -> None:
        self.state.raise_()

    def reset_state(self) -> None:
        self.state.reset(len(self.hits))

    def set_state(self, values: Sequence[int]) -> None:
        self.state.set(values)

    def set_skipped_layers(self, n: int) -> None:
        """Record how many detector layers this segment's chain skips."""
        if n < 0:
            raise ValueError(f"skipped layers must be >= 0, got {n}")
        self.skipped_layers = int(n)
