from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from ca_reco.automaton import CellularAutomaton, RelaxationResult
from ca_reco.config import CAConfig
from ca_reco.extractor import TrackCandidate, TrackExtractor
from ca_reco.hits import Hit, hits_from_frame
from ca_reco.network import SegmentNetwork
from ca_reco.segment_builder import SegmentBuilder

logger = logging.getLogger(__name__)

HitsLike = Union[pd.DataFrame, Sequence[Hit]]


class TrackFinder:
    r"""
    Per-event pipeline: **hits → segment network → automaton → candidates**.

    Pipeline
    --------
    1. 1-segments from hits, linked under the arity-1 criteria.
    2. For each higher arity up to the target: optionally relax and clean the
       current level (``clean_between_levels``), lengthen, link under that
       arity's criteria.
    3. Relax the final network; optionally drop links that do not carry
       their parent's state (``clean_connections``).
    4. Extract hit-disjoint candidates.

    Parameters
    ----------
    config : CAConfig
        Validated configuration. The criteria registry is built once here, so
        a bad configuration fails before any event is processed.

    Attributes
    ----------
    network : SegmentNetwork or None
        Final network of the last :meth:`run` (kept for inspection/plots).
    builder : SegmentBuilder or None
        Builder of the last run (counters, diagnostics).
    relaxation : RelaxationResult or None
        Outcome of the last final relaxation.
    """

    def __init__(self, config: CAConfig) -> None:
        self.config = config
        self.registry = config.registry()
        self.target_arity = (
            config.target_arity if config.target_arity is not None else max(1, self.registry.max_arity)
        )
        self.network: Optional[SegmentNetwork] = None
        self.builder: Optional[SegmentBuilder] = None
        self.relaxation: Optional[RelaxationResult] = None
        self.timing: Dict[str, float] = {}

    def _new_automaton(self) -> CellularAutomaton:
        return CellularAutomaton(
            max_rounds=self.config.max_rounds,
            count_skipped_layers=self.config.count_skipped_layers,
        )

    def run(self, hits: HitsLike) -> List[TrackCandidate]:
        if isinstance(hits, pd.DataFrame):
            hits = hits_from_frame(hits)
        cfg = self.config
        if self.network is not None:
            self.network.clear()

        builder = SegmentBuilder(
            self.registry,
            max_skipped_layers=cfg.max_skipped_layers,
            max_link_distance=cfg.max_link_distance,
            collect_diagnostics=cfg.diagnostics,
        )
        automaton = self._new_automaton()

        t0 = time.perf_counter()
        net = builder.build_one_segments(hits)
        builder.connect(net)
        while net.arity < self.target_arity:
            if cfg.clean_between_levels:
                automaton.relax(net)
                automaton.clean_connections(net)
            previous = net
            net = builder.lengthen(previous)
            previous.clear()
            builder.connect(net)
        t1 = time.perf_counter()

        self.relaxation = automaton.relax(net)
        if cfg.clean_connections:
            automaton.clean_connections(net)
        t2 = time.perf_counter()

        extractor = TrackExtractor(
            min_state=cfg.min_state, min_hits=cfg.min_hits, max_candidates=cfg.max_candidates,
        )
        candidates = extractor.extract(net)
        t3 = time.perf_counter()

        self.network = net
        self.builder = builder
        self.timing = {"build": t1 - t0, "relax": t2 - t1, "extract": t3 - t2}
        logger.info(
            "Event: %d hits -> %d %d-segments, %d links, %d rounds -> %d candidates",
            len(hits), len(net), net.arity, net.n_links, self.relaxation.rounds, len(candidates),
        )
        return candidates

    def get_statistics(self) -> Dict[str, float]:
        """Counters of the last run (empty before the first run)."""
        if self.network is None or self.builder is None or self.relaxation is None:
            return {}
        return {
            "segments": len(self.network),
            "arity": self.network.arity,
            "links": self.network.n_links,
            "pairings_tested": self.builder.n_tested,
            "pairings_linked": self.builder.n_linked,
            "pairings_abandoned": self.builder.n_bad_pairings,
            "automaton_rounds": self.relaxation.rounds,
            "automaton_converged": self.relaxation.converged,
            **{f"time_{k}_s": v for k, v in self.timing.items()},
        }

    def run_events(
        self,
        events: Sequence[HitsLike],
        max_workers: Optional[int] = None,
    ) -> List[List[TrackCandidate]]:
        r"""
        Process independent events, optionally in a thread pool.

        Each event gets its own :class:`TrackFinder` (and hence its own
        network), so no segment is shared between threads. Results keep the
        input order.
        """
        if not max_workers or max_workers <= 1:
            return [self.run(ev) for ev in events]

        def _one(ev: HitsLike) -> List[TrackCandidate]:
            return TrackFinder(self.config).run(ev)

        with ThreadPoolExecutor(max_workers=int(max_workers)) as pool:
            return list(pool.map(_one, events))
