from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.spatial import cKDTree

logger = logging.getLogger(__name__)

HIT_COLUMNS: Tuple[str, ...] = ("hit_id", "layer", "x", "y", "z")


@dataclass(frozen=True, slots=True)
class Hit:
    r"""
    Immutable detector measurement on a numbered layer.

    Layers are counted outward: layer ``0`` is the innermost (closest to the
    interaction point) and larger numbers lie further out. Segments order
    their hits from the **outer** to the **inner** layer.

    Attributes
    ----------
    hit_id : int
        Identifier assigned by the event source (used by feedback).
    layer : int
        Non-negative layer index.
    x, y, z : float
        Cartesian position. Units are passed through unchanged.
    """
    hit_id: int
    layer: int
    x: float
    y: float
    z: float

    def __post_init__(self) -> None:
        if self.layer < 0:
            raise ValueError(f"Hit {self.hit_id}: layer must be >= 0, got {self.layer}")

    @property
    def position(self) -> np.ndarray:
        """``(3,)`` float64 array ``(x, y, z)``."""
        return np.array((self.x, self.y, self.z), dtype=np.float64)

    @property
    def rho(self) -> float:
        r"""Transverse radius :math:`\rho=\sqrt{x^2+y^2}`."""
        return float(np.hypot(self.x, self.y))

    @property
    def phi(self) -> float:
        r"""Azimuth :math:`\phi=\operatorname{atan2}(y,x)` in radians."""
        return float(np.arctan2(self.y, self.x))


def hits_from_frame(hits: pd.DataFrame) -> List[Hit]:
    r"""
    Convert a hit table into :class:`Hit` objects without mutating ``hits``.

    Parameters
    ----------
    hits : pandas.DataFrame
        Must contain the columns ``hit_id, layer, x, y, z``.

    Returns
    -------
    list[Hit]
        Hits in a stable order: descending layer (outer first), then the
        original row order within a layer.

    Raises
    ------
    KeyError
        If a required column is missing.
    """
    try:
        hid = hits["hit_id"].to_numpy(dtype=np.int64, copy=False)
        lay = hits["layer"].to_numpy(dtype=np.int64, copy=False)
        x = hits["x"].to_numpy(dtype=np.float64, copy=False)
        y = hits["y"].to_numpy(dtype=np.float64, copy=False)
        z = hits["z"].to_numpy(dtype=np.float64, copy=False)
    except KeyError as e:
        raise KeyError(f"Missing required column: {e.args[0]}") from e

    # stable sort: outer layers first, row order kept inside a layer
    order = np.argsort(-lay, kind="stable")
    out = [
        Hit(int(hid[i]), int(lay[i]), float(x[i]), float(y[i]), float(z[i]))
        for i in order
    ]
    logger.debug("Converted %d hits on %d layers", len(out), len(np.unique(lay)))
    return out


def hits_to_frame(hits: Iterable[Hit]) -> pd.DataFrame:
    """Inverse of :func:`hits_from_frame` (one row per hit, columns ``HIT_COLUMNS``)."""
    rows = [(h.hit_id, h.layer, h.x, h.y, h.z) for h in hits]
    df = pd.DataFrame(rows, columns=list(HIT_COLUMNS))
    return df.astype({"hit_id": np.int64, "layer": np.int64})


def group_by_layer(hits: Sequence[Hit]) -> Dict[int, List[Hit]]:
    """
    Bucket hits per layer, keeping input order inside each bucket.

    Keys are returned in descending order (outermost layer first).
    """
    buckets: Dict[int, List[Hit]] = {}
    for h in hits:
        buckets.setdefault(h.layer, []).append(h)
    return {k: buckets[k] for k in sorted(buckets, reverse=True)}


def build_layer_trees(
    hits_by_layer: Dict[int, Sequence[Hit]],
) -> Dict[int, Tuple[cKDTree, np.ndarray]]:
    r"""
    Build one KD-tree per layer over hit positions.

    Used to preselect arity-1 link candidates by Euclidean distance before the
    criteria run. For a layer with hits :math:`\{q_j\}` the tree answers ball
    queries :math:`\{j : \|q_j-p\|_2\le r\}`.

    Parameters
    ----------
    hits_by_layer : dict[int, sequence of Hit]
        Output of :func:`group_by_layer`.

    Returns
    -------
    dict[int, (cKDTree, ndarray)]
        ``layer -> (tree, points)`` where ``points`` is ``(N,3)`` float64 and
        row ``j`` corresponds to ``hits_by_layer[layer][j]``. Empty layers are
        skipped.
    """
    trees: Dict[int, Tuple[cKDTree, np.ndarray]] = {}
    for layer, layer_hits in hits_by_layer.items():
        if not layer_hits:
            continue
        pts = np.empty((len(layer_hits), 3), dtype=np.float64)
        for j, h in enumerate(layer_hits):
            pts[j, 0] = h.x
            pts[j, 1] = h.y
            pts[j, 2] = h.z
        tree = cKDTree(pts, copy_data=False, balanced_tree=True, compact_nodes=True)
        trees[layer] = (tree, pts)
    return trees
