from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ca_reco.criteria.base import CriteriaRegistry
from ca_reco.errors import BadSegmentLength, CriteriaConfigError
from ca_reco.hits import Hit, build_layer_trees, group_by_layer
from ca_reco.network import SegmentNetwork
from ca_reco.segment import Segment

logger = logging.getLogger(__name__)


class SegmentBuilder:
    r"""
    Build and link the segment network level by level.

    Pipeline
    --------
    1. :meth:`build_one_segments`: one 1-segment per hit.
    2. :meth:`connect`: for each layer from the outermost inward, pair every
       segment with the candidate children below it and keep the link only if
       **all** criteria registered for the arity accept.
    3. :meth:`lengthen`: turn every link ``p → c`` of an ``n``-segment
       network into the ``(n+1)``-segment ``p.hits + c.hits[-1:]``; repeat 2.

    For 1-segments, candidate children live on the next layer and, with
    ``max_skipped_layers = s``, on up to :math:`s` further inner layers
    (tolerating missing hits). For :math:`n\ge 2` the candidates of a parent
    are the segments whose first :math:`n-1` hits equal the parent's last
    :math:`n-1` hits, so layer skips are inherited from level 1.

    Acceptance is not exclusive: a segment may collect several parents and
    children; disambiguation is left to the extractor.

    Parameters
    ----------
    registry : CriteriaRegistry
        Criteria per arity. An arity with no criteria accepts every pair.
    max_skipped_layers : int, optional
        Number of empty layers a 1-segment link may jump. Default ``0``.
    max_link_distance : float, optional
        If set, 1-segment candidate children are preselected with a per-layer
        :class:`scipy.spatial.cKDTree` ball query of this radius around the
        parent hit.
    collect_diagnostics : bool, optional
        Record every criterion value evaluated during :meth:`connect`
        (see :meth:`diagnostics_frame`). Does not change any verdict.

    Attributes
    ----------
    n_tested : int
        Pairings evaluated by the criteria.
    n_linked : int
        Pairings accepted and linked.
    n_bad_pairings : int
        Pairings abandoned because a criterion raised
        :class:`~ca_reco.errors.BadSegmentLength`.
    """

    def __init__(
        self,
        registry: CriteriaRegistry,
        *,
        max_skipped_layers: int = 0,
        max_link_distance: Optional[float] = None,
        collect_diagnostics: bool = False,
    ) -> None:
        if max_skipped_layers < 0:
            raise CriteriaConfigError(f"max_skipped_layers must be >= 0, got {max_skipped_layers}")
        if max_link_distance is not None and max_link_distance <= 0:
            raise CriteriaConfigError(f"max_link_distance must be > 0, got {max_link_distance}")
        self.registry = registry
        self.max_skipped_layers = int(max_skipped_layers)
        self.max_link_distance = None if max_link_distance is None else float(max_link_distance)
        self.collect_diagnostics = bool(collect_diagnostics)

        self.n_tested = 0
        self.n_linked = 0
        self.n_bad_pairings = 0
        self._diagnostics: List[dict] = []

    # --- level 1 -----------------------------------------------------------
    @staticmethod
    def build_one_segments(hits: Iterable[Hit]) -> SegmentNetwork:
        r"""
        Wrap every hit in a 1-segment.

        Segments are appended layer by layer, outermost layer first, keeping the
        input order within a layer, so arena indices follow that order.
        """
        net = SegmentNetwork(1)
        for layer_hits in group_by_layer(list(hits)).values():
            for h in layer_hits:
                net.add((h,))
        logger.debug("Built %d 1-segments on %d layers", len(net), len(net.layers))
        return net

    # --- linking -----------------------------------------------------------
    def connect(self, network: SegmentNetwork) -> int:
        r"""
        Link compatible parent/child pairs of ``network`` in place.

        Returns
        -------
        int
            Number of links created.
        """
        before = self.n_linked
        if network.arity == 1:
            self._connect_one_segments(network)
        else:
            self._connect_overlapping(network)
        made = self.n_linked - before
        logger.info(
            "Arity %d: %d segments, %d links (%d pairings tested so far, %d abandoned)",
            network.arity, len(network), made, self.n_tested, self.n_bad_pairings,
        )
        return made

    def _connect_one_segments(self, network: SegmentNetwork) -> None:
        layers = network.layers
        trees = None
        if self.max_link_distance is not None:
            hits_by_layer = {L: [s.hits[0] for s in network.on_layer(L)] for L in layers}
            trees = build_layer_trees(hits_by_layer)

        for layer in layers:
            targets = [t for t in range(layer - 1, layer - 2 - self.max_skipped_layers, -1) if t >= 0]
            for parent in network.on_layer(layer):
                for t in targets:
                    candidates = network.on_layer(t)
                    if not candidates:
                        continue
                    if trees is not None:
                        tree, _ = trees[t]
                        idx = tree.query_ball_point(parent.hits[0].position, r=self.max_link_distance)
                        candidates = [candidates[j] for j in sorted(idx)]
                    for child in candidates:
                        self.link_if_compatible(network, parent, child)

    def _connect_overlapping(self, network: SegmentNetwork) -> None:
        by_head: Dict[Tuple[int, ...], List[Segment]] = {}
        for seg in network:
            by_head.setdefault(seg.hit_ids[:-1], []).append(seg)
        for layer in network.layers:
            for parent in network.on_layer(layer):
                for child in by_head.get(parent.hit_ids[1:], ()):
                    self.link_if_compatible(network, parent, child)

    def link_if_compatible(self, network: SegmentNetwork, parent: Segment, child: Segment) -> bool:
        r"""
        Evaluate the criteria on one pairing and link it on unanimous acceptance.

        A segment outside ``network`` or a
        :class:`~ca_reco.errors.BadSegmentLength` raised by the criteria abandons
        this pairing only: it is logged, counted in :attr:`n_bad_pairings`, and
        no link is made.
        """
        diag: Optional[Dict[str, float]] = {} if self.collect_diagnostics else None
        self.n_tested += 1
        if parent not in network or child not in network:
            self.n_bad_pairings += 1
            logger.warning(
                "Skipping pairing #%d -> #%d: segment not in the arity-%d network",
                parent.index, child.index, network.arity,
            )
            return False
        try:
            ok = self.registry.are_compatible(parent, child, diag)
        except BadSegmentLength as e:
            self.n_bad_pairings += 1
            logger.warning("Skipping pairing #%d -> #%d: %s", parent.index, child.index, e)
            return False
        if diag is not None:
            row = {"arity": network.arity, "parent": parent.index, "child": child.index, "accepted": ok}
            row.update(diag)
            self._diagnostics.append(row)
        if ok:
            network.link(parent, child)
            self.n_linked += 1
        return ok

    # --- lengthening -------------------------------------------------------
    @staticmethod
    def lengthen(network: SegmentNetwork) -> SegmentNetwork:
        r"""
        Build the ``(n+1)``-segment network from the links of ``network``.

        Each link ``p → c`` yields ``p.hits + c.hits[-1:]``. The number of
        layers skipped inside the new chain,

        .. math:: \ell(h_0) - \ell(h_n) - n,

        is recorded with :meth:`Segment.set_skipped_layers`. The new network
        has no links yet; call :meth:`connect` on it.
        """
        out = SegmentNetwork(network.arity + 1)
        for parent, child in network.links():
            hits = parent.hits + child.hits[-1:]
            seg = out.add(hits)
            seg.set_skipped_layers(hits[0].layer - hits[-1].layer - (len(hits) - 1))
        logger.debug("Lengthened %d-segments into %d %d-segments", network.arity, len(out), out.arity)
        return out

    def build(self, hits: Sequence[Hit], target_arity: Optional[int] = None) -> SegmentNetwork:
        r"""
        Run levels 1 .. ``target_arity`` without intermediate cleaning.

        ``target_arity`` defaults to the highest arity with registered criteria
        (at least ``1``).
        """
        target = max(1, self.registry.max_arity) if target_arity is None else int(target_arity)
        if target < 1:
            raise CriteriaConfigError(f"target arity must be >= 1, got {target}")
        net = self.build_one_segments(hits)
        self.connect(net)
        while net.arity < target:
            net = self.lengthen(net)
            self.connect(net)
        return net

    def diagnostics_frame(self) -> pd.DataFrame:
        r"""
        Criterion values recorded while linking, one row per evaluated pairing.

        Columns: ``arity, parent, child, accepted`` plus one column per
        criterion name (``NaN`` where a criterion does not apply to the row's
        arity). Empty unless ``collect_diagnostics`` was set.
        """
        if not self._diagnostics:
            return pd.DataFrame(columns=["arity", "parent", "child", "accepted"])
        df = pd.DataFrame(self._diagnostics)
        for col in df.columns.difference(["arity", "parent", "child", "accepted"]):
            df[col] = df[col].astype(np.float64)
        return df
