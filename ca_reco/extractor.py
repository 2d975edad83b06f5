from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

import pandas as pd

from ca_reco.hits import Hit
from ca_reco.network import SegmentNetwork
from ca_reco.segment import Segment

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TrackCandidate:
    r"""
    One reconstructed path through the segment network.

    Attributes
    ----------
    id : int
        Order of extraction (``0`` = best).
    segments : list of int
        Arena indices of the walked segments, outer → inner.
    hits : list of Hit
        Flattened hit chain, outer → inner (overlapping hits appear once).
    state : int
        Outer state of the starting segment (the ranking key).
    """
    id: int
    segments: List[int]
    hits: List[Hit]
    state: int
    fit: Optional[object] = field(default=None)

    def __len__(self) -> int:
        return len(self.hits)

    @property
    def hit_ids(self) -> List[int]:
        return [h.hit_id for h in self.hits]

    @property
    def layers(self) -> List[int]:
        return [h.layer for h in self.hits]


def _rank(seg: Segment) -> Tuple[int, int, int]:
    # highest state first, then lowest layer, then insertion order
    return (-seg.outer_state, seg.layer, seg.index)


class TrackExtractor:
    r"""
    Greedy, state-ranked, mutually exclusive extraction of track candidates.

    Algorithm
    ---------
    1. Rank all segments by descending outer state; ties go to the lower
       layer, then to the earlier arena index.
    2. Take the best segment that is not yet consumed and whose hits are all
       unused. Stop once the best remaining state is below ``min_state``; a
       start whose outer state equals ``min_state`` is still extracted.
    3. Follow the links the automaton rated: from the current segment move to
       the best-ranked child (same ordering) that is not consumed and whose new
       hit is unused. Continue until no such child remains.
    4. If the chain has at least ``min_hits`` hits it becomes a candidate and
       all its segments and hits are consumed; otherwise only the starting
       segment is consumed.

    Because a child of an ``n``-segment shares ``n-1`` hits with it, each step
    adds exactly one hit (``child.hits[-1]``). Candidates from one pass are
    pairwise hit-disjoint.

    Parameters
    ----------
    min_state : int, optional
        Lowest starting outer state worth extracting (inclusive: a segment
        with exactly this state is used). Default ``0``.
    min_hits : int, optional
        Shortest candidate kept. Default ``0`` (keep all).
    max_candidates : int, optional
        Stop after this many candidates.
    """

    def __init__(self, min_state: int = 0, min_hits: int = 0, max_candidates: Optional[int] = None) -> None:
        self.min_state = int(min_state)
        self.min_hits = int(min_hits)
        self.max_candidates = None if max_candidates is None else int(max_candidates)

    def extract(self, network: SegmentNetwork) -> List[TrackCandidate]:
        ranked = sorted(network, key=_rank)
        consumed: Set[int] = set()
        used_hits: Set[int] = set()
        out: List[TrackCandidate] = []

        for start in ranked:
            if start.outer_state < self.min_state:
                break
            if self.max_candidates is not None and len(out) >= self.max_candidates:
                break
            if start.index in consumed or any(hid in used_hits for hid in start.hit_ids):
                continue

            path, hits = self._walk(network, start, consumed, used_hits)
            if len(hits) < self.min_hits:
                consumed.add(start.index)
                logger.debug("Discarded chain from #%d with %d hits (< %d)", start.index, len(hits), self.min_hits)
                continue

            consumed.update(path)
            used_hits.update(h.hit_id for h in hits)
            out.append(TrackCandidate(id=len(out), segments=path, hits=hits, state=start.outer_state))

        logger.info("Extracted %d track candidates from %d segments", len(out), len(network))
        return out

    @staticmethod
    def _walk(
        network: SegmentNetwork,
        start: Segment,
        consumed: Set[int],
        used_hits: Set[int],
    ) -> Tuple[List[int], List[Hit]]:
        path = [start.index]
        hits = list(start.hits)
        chain_ids = {h.hit_id for h in hits}
        cur = start
        while True:
            options = [
                c for c in network.children_of(cur)
                if c.index not in consumed
                and c.hits[-1].hit_id not in used_hits
                and c.hits[-1].hit_id not in chain_ids
            ]
            if not options:
                return path, hits
            nxt = min(options, key=_rank)
            path.append(nxt.index)
            hits.append(nxt.hits[-1])
            chain_ids.add(nxt.hits[-1].hit_id)
            cur = nxt


def candidates_to_frame(candidates: List[TrackCandidate]) -> pd.DataFrame:
    r"""
    Long table ``hit_id, track_id, position`` (position = index along the chain).

    This is the hit-id form consumed by :mod:`ca_reco.feedback`.
    """
    rows = [
        (h.hit_id, tc.id, k)
        for tc in candidates
        for k, h in enumerate(tc.hits)
    ]
    return pd.DataFrame(rows, columns=["hit_id", "track_id", "position"]).astype("int64")
