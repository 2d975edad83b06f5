from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import networkx as nx

from ca_reco.hits import Hit
from ca_reco.segment import Segment

logger = logging.getLogger(__name__)


class SegmentNetwork:
    r"""
    Arena of segments of a single arity plus their parent/child links.

    Segments are addressed by stable integer indices (their position in the
    arena); links are index sets on both endpoints. The network owns every
    segment for the lifetime of one event and releases them in bulk with
    :meth:`clear`.

    Invariants
    ----------
    - every segment has ``len(hits) == arity``;
    - ``c in s.children`` iff ``s in c.parents``;
    - for every link ``parent.layer > child.layer`` (layers strictly decrease
      along parent → child walks, so the graph is acyclic).

    Parameters
    ----------
    arity : int
        Number of hits per segment (``>= 1``).
    """

    __slots__ = ("arity", "_segments", "_by_layer")

    def __init__(self, arity: int) -> None:
        if arity < 1:
            raise ValueError(f"arity must be >= 1, got {arity}")
        self.arity = int(arity)
        self._segments: List[Segment] = []
        self._by_layer: Dict[int, List[int]] = {}

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments)

    def __getitem__(self, index: int) -> Segment:
        return self._segments[index]

    def __contains__(self, seg: object) -> bool:
        return (
            isinstance(seg, Segment)
            and 0 <= seg.index < len(self._segments)
            and self._segments[seg.index] is seg
        )

    def __repr__(self) -> str:
        return f"SegmentNetwork(arity={self.arity}, segments={len(self)}, links={self.n_links})"

    # --- construction ------------------------------------------------------
    def add(self, hits: Sequence[Hit]) -> Segment:
        """Create a segment from ``hits`` and append it to the arena."""
        seg = Segment(hits, index=len(self._segments))
        if seg.arity != self.arity:
            raise ValueError(f"network of arity {self.arity} cannot hold a {seg.arity}-segment")
        self._segments.append(seg)
        self._by_layer.setdefault(seg.layer, []).append(seg.index)
        return seg

    def link(self, parent: Segment, child: Segment) -> None:
        r"""
        Record ``parent → child`` on both endpoints.

        Raises
        ------
        ValueError
            If ``parent.layer <= child.layer`` (the link would not descend) or if
            either segment does not belong to this network.
        """
        self._check_member(parent)
        self._check_member(child)
        if parent.layer <= child.layer:
            raise ValueError(
                f"link must descend in layer: parent layer {parent.layer}, child layer {child.layer}"
            )
        parent.add_child(child)
        child.add_parent(parent)

    def unlink(self, parent: Segment, child: Segment) -> bool:
        """Remove ``parent → child`` from both endpoints; return whether it existed."""
        return parent.delete_child(child)

    def _check_member(self, seg: Segment) -> None:
        if seg not in self:
            raise ValueError(f"{seg!r} does not belong to this network")

    # --- queries -----------------------------------------------------------
    @property
    def layers(self) -> List[int]:
        """Occupied layers, outermost first."""
        return sorted((k for k, v in self._by_layer.items() if v), reverse=True)

    def on_layer(self, layer: int) -> List[Segment]:
        return [self._segments[i] for i in self._by_layer.get(layer, ())]

    def children_of(self, seg: Segment) -> List[Segment]:
        return [self._segments[i] for i in sorted(seg.children)]

    def parents_of(self, seg: Segment) -> List[Segment]:
        return [self._segments[i] for i in sorted(seg.parents)]

    def links(self) -> Iterator[Tuple[Segment, Segment]]:
        """Yield every ``(parent, child)`` pair, parents in arena order."""
        for seg in self._segments:
            for ci in sorted(seg.children):
                yield seg, self._segments[ci]

    @property
    def n_links(self) -> int:
        return sum(len(s.children) for s in self._segments)

    def reset_states(self) -> None:
        for seg in self._segments:
            seg.reset_state()

    # --- consistency -------------------------------------------------------
    def check_links(self) -> List[str]:
        r"""
        Return a list of invariant violations (empty when consistent).

        Checks the bidirectional bookkeeping and the strict layer descent of
        every link.
        """
        problems: List[str] = []
        for seg in self._segments:
            for ci in seg.children:
                child = self._segments[ci]
                if seg.index not in child.parents:
                    problems.append(f"#{seg.index} lists child #{ci} which does not list it as parent")
                if seg.layer <= child.layer:
                    problems.append(f"link #{seg.index} -> #{ci} does not descend in layer")
            for pi in seg.parents:
                if seg.index not in self._segments[pi].children:
                    problems.append(f"#{seg.index} lists parent #{pi} which does not list it as child")
        return problems

    def to_networkx(self) -> nx.DiGraph:
        r"""
        Export as a :class:`networkx.DiGraph` (edges parent → child).

        Node attributes: ``layer``, ``hit_ids``, ``state`` (inner state, or
        ``None`` if the state is empty).
        """
        G = nx.DiGraph()
        for seg in self._segments:
            G.add_node(
                seg.index,
                layer=seg.layer,
                hit_ids=seg.hit_ids,
                state=seg.state.inner if len(seg.state) else None,
            )
        G.add_edges_from((p.index, c.index) for p, c in self.links())
        return G

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self.to_networkx())

    # --- bulk mutation -----------------------------------------------------
    def remove_segments(self, doomed: Iterable[int]) -> int:
        r"""
        Drop segments by index, detach their links and re-index the arena.

        Surviving segments keep their relative order; their indices and link
        sets are rewritten to the compacted arena.

        Returns
        -------
        int
            Number of segments removed.
        """
        doomed_set = set(int(i) for i in doomed)
        if not doomed_set:
            return 0
        survivors = [s for s in self._segments if s.index not in doomed_set]
        removed = len(self._segments) - len(survivors)
        remap = {s.index: new for new, s in enumerate(survivors)}
        for s in survivors:
            s.children = {remap[i] for i in s.children if i in remap}
            s.parents = {remap[i] for i in s.parents if i in remap}
        for s in survivors:
            s.index = remap[s.index]
        self._segments = survivors
        self._by_layer = {}
        for s in survivors:
            self._by_layer.setdefault(s.layer, []).append(s.index)
        logger.debug("Removed %d segments (arity %d), %d left", removed, self.arity, len(survivors))
        return removed

    def clear(self) -> None:
        """Release every segment and link."""
        for s in self._segments:
            s.children.clear()
            s.parents.clear()
        self._segments = []
        self._by_layer = {}

    def find(self, hit_ids: Sequence[int]) -> Optional[Segment]:
        """Return the segment whose hit ids equal ``hit_ids``, if any."""
        target = tuple(int(h) for h in hit_ids)
        for seg in self._segments:
            if seg.hit_ids == target:
                return seg
        return None
