r"""
Truth comparison of reconstructed candidates (hit-id overlap only).

A reconstructed track is **assigned** to the true particle contributing most
of its hits when both rates exceed their thresholds:

.. math::

    \frac{n_\text{matched}}{n_\text{reco}} > r_\text{assigned},\qquad
    \frac{n_\text{matched}}{n_\text{true}} > r_\text{found}.

Assigned tracks are *complete* (every true hit found) or *incomplete*; the
``_plus`` variants carry extra hits from elsewhere. Unassigned tracks are
*ghosts*. A valid true track with no assigned reconstruction is *lost*; every
assigned reconstruction beyond the first is a *clone*.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

TRACK_TYPES = ("complete", "complete_plus", "incomplete", "incomplete_plus", "ghost")


@dataclass(slots=True)
class FeedbackResult:
    """Per-track tables plus summary counters of one event."""
    reco: pd.DataFrame
    true: pd.DataFrame
    summary: Dict[str, float]


def compare_to_truth(
    reco: pd.DataFrame,
    truth: pd.DataFrame,
    *,
    rate_found_min: float = 0.5,
    rate_assigned_min: float = 0.5,
    min_true_hits: int = 4,
    hits_count_once_per_layer: bool = False,
) -> FeedbackResult:
    r"""
    Classify reconstructed tracks and true tracks of one event.

    Parameters
    ----------
    reco : pandas.DataFrame
        Columns ``hit_id, track_id`` (e.g. from
        :func:`ca_reco.extractor.candidates_to_frame`).
    truth : pandas.DataFrame
        Columns ``hit_id, particle_id`` and, with
        ``hits_count_once_per_layer``, ``layer``.
    rate_found_min, rate_assigned_min : float, optional
        Assignment thresholds (strict). Default ``0.5``.
    min_true_hits : int, optional
        True tracks with fewer hits are dismissed (not counted as lost).
    hits_count_once_per_layer : bool, optional
        For the ``min_true_hits`` cut count distinct layers instead of hits.

    Returns
    -------
    FeedbackResult
        ``reco`` has one row per track (``track_id, particle_id, n_hits,
        n_matched, type``; ``particle_id`` is ``-1`` for ghosts); ``true`` one row per valid particle
        (``particle_id, n_hits, n_assigned, n_clones, lost, found_completely``
        plus a count per track type); ``summary`` the event counters.
    """
    for col in ("hit_id", "particle_id"):
        if col not in truth.columns:
            raise KeyError(f"Missing required truth column: {col}")
    for col in ("hit_id", "track_id"):
        if col not in reco.columns:
            raise KeyError(f"Missing required reco column: {col}")

    t = truth[["hit_id", "particle_id"]].drop_duplicates("hit_id")
    n_true = t.groupby("particle_id").size().rename("n_true")
    if hits_count_once_per_layer:
        if "layer" not in truth.columns:
            raise KeyError("hits_count_once_per_layer needs a 'layer' truth column")
        n_for_cut = truth.groupby("particle_id")["layer"].nunique()
    else:
        n_for_cut = n_true
    valid = n_for_cut[n_for_cut >= int(min_true_hits)].index

    r = reco[["hit_id", "track_id"]].drop_duplicates()
    n_reco = r.groupby("track_id").size().rename("n_hits")

    matched = r.merge(t, on="hit_id", how="inner")
    counts = matched.groupby(["track_id", "particle_id"]).size().rename("n_matched").reset_index()
    best = (
        counts.sort_values(["track_id", "n_matched", "particle_id"], ascending=[True, False, True], kind="mergesort")
        .drop_duplicates("track_id")
        .set_index("track_id")
    )

    rt = n_reco.reset_index().merge(
        best.reset_index()[["track_id", "particle_id", "n_matched"]], on="track_id", how="left"
    )
    # -1 marks tracks without a single truth-matched hit
    rt["particle_id"] = rt["particle_id"].fillna(-1).astype(np.int64)
    rt["n_matched"] = rt["n_matched"].fillna(0).astype(np.int64)
    rt = rt.merge(n_true.reset_index(), on="particle_id", how="left")

    rate_assigned = rt["n_matched"] / rt["n_hits"]
    rate_found = (rt["n_matched"] / rt["n_true"]).fillna(0.0)
    assigned = (rate_assigned > rate_assigned_min) & (rate_found > rate_found_min)

    complete = assigned & (rt["n_matched"] >= rt["n_true"])
    plus = rt["n_hits"] > rt["n_matched"]
    rt["type"] = np.select(
        [~assigned, complete & ~plus, complete & plus, ~complete & ~plus],
        ["ghost", "complete", "complete_plus", "incomplete"],
        default="incomplete_plus",
    )
    rt.loc[~assigned, "particle_id"] = -1
    rt = rt.drop(columns="n_true")

    tt = n_true.reindex(valid).rename("n_hits").to_frame()
    tt.index.name = "particle_id"
    linked = rt[rt["type"] != "ghost"]
    per_type = (
        linked.groupby(["particle_id", "type"]).size().unstack(fill_value=0)
        .reindex(columns=list(TRACK_TYPES[:-1]), fill_value=0)
    )
    tt = tt.join(per_type, how="left").fillna(0)
    for col in TRACK_TYPES[:-1]:
        tt[col] = tt[col].astype(np.int64)
    tt["n_assigned"] = tt[list(TRACK_TYPES[:-1])].sum(axis=1)
    tt["n_clones"] = (tt["n_assigned"] - 1).clip(lower=0)
    tt["lost"] = tt["n_assigned"] == 0
    tt["found_completely"] = (tt["complete"] + tt["complete_plus"]) > 0
    tt = tt.reset_index()

    n_valid = int(len(tt))
    n_lost = int(tt["lost"].sum())
    n_reco_tracks = int(len(rt))
    type_counts = rt["type"].value_counts()
    summary: Dict[str, float] = {f"n_{k}": int(type_counts.get(k, 0)) for k in TRACK_TYPES}
    summary.update(
        n_reco_tracks=n_reco_tracks,
        n_valid_true_tracks=n_valid,
        n_dismissed_true_tracks=int(len(n_true) - n_valid),
        n_lost=n_lost,
        n_clones=int(tt["n_clones"].sum()),
        n_found_completely=int(tt["found_completely"].sum()),
        efficiency=(n_valid - n_lost) / n_valid if n_valid else 0.0,
        ghost_rate=summary["n_ghost"] / n_reco_tracks if n_reco_tracks else 0.0,
    )
    logger.info(
        "Feedback: %d reco tracks, %d/%d true tracks found, %d ghosts, %d clones",
        n_reco_tracks, n_valid - n_lost, n_valid, summary["n_ghost"], summary["n_clones"],
    )
    return FeedbackResult(reco=rt, true=tt, summary=summary)
