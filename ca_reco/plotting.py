from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt
from matplotlib import cm
from matplotlib.colors import Normalize

from ca_reco.extractor import TrackCandidate
from ca_reco.network import SegmentNetwork

logger = logging.getLogger(__name__)


def _show_and_close(fig, *, do_show: bool = True) -> None:
    r"""
    Show a figure (optionally) and always close it.

    Safe in headless mode where ``plt.show()`` is a no-op.
    """
    fig.tight_layout()
    if do_show:
        plt.show()
    plt.close(fig)


def plot_network_rz(
    network: SegmentNetwork,
    candidates: Optional[Sequence[TrackCandidate]] = None,
    *,
    title: Optional[str] = None,
    show: bool = True,
    save_path: Optional[str] = None,
) -> None:
    r"""
    Draw the segment network in the :math:`(z, \rho)` plane.

    Every link is drawn between the outer hits of its parent and child
    segments, coloured by the parent's inner state; extracted candidates are
    overlaid as thick polylines.

    Parameters
    ----------
    network : SegmentNetwork
        Relaxed (or unrelaxed) network.
    candidates : sequence of TrackCandidate, optional
        Overlay, e.g. the output of :class:`~ca_reco.extractor.TrackExtractor`.
    title : str, optional
        Axes title.
    show : bool, optional
        Call ``plt.show()``. Default ``True``.
    save_path : str, optional
        If set, save the figure there before showing.
    """
    if len(network) == 0:
        logger.info("Empty network, nothing to plot.")
        return

    fig, ax = plt.subplots(figsize=(9, 6))
    states = np.array([s.inner_state for s in network], dtype=np.int64)
    norm = Normalize(vmin=0, vmax=max(1, int(states.max())))
    cmap = plt.get_cmap("viridis")

    for parent, child in network.links():
        a, b = parent.hits[0], child.hits[0]
        ax.plot((a.z, b.z), (a.rho, b.rho), color=cmap(norm(parent.inner_state)), lw=0.8, alpha=0.6)

    hz = [s.hits[0].z for s in network]
    hr = [s.hits[0].rho for s in network]
    ax.scatter(hz, hr, s=8, c="k", zorder=3)

    for tc in candidates or ():
        ax.plot([h.z for h in tc.hits], [h.rho for h in tc.hits], lw=2.2, zorder=4, label=f"cand {tc.id} (s={tc.state})")

    sm = cm.ScalarMappable(norm=norm, cmap=cmap)
    sm.set_array([])
    fig.colorbar(sm, ax=ax, label="parent inner state")
    ax.set_xlabel("z")
    ax.set_ylabel(r"$\rho$")
    ax.set_title(title or f"{network.arity}-segment network ({len(network)} segments, {network.n_links} links)")
    if candidates:
        ax.legend(loc="best", fontsize="small")
    if save_path:
        fig.savefig(save_path, dpi=120)
    _show_and_close(fig, do_show=show)


def plot_state_histogram(network: SegmentNetwork, *, show: bool = True, save_path: Optional[str] = None) -> None:
    """Histogram of inner states after relaxation."""
    if len(network) == 0:
        return
    states = np.array([s.inner_state for s in network], dtype=np.int64)
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.hist(states, bins=np.arange(states.max() + 2) - 0.5, color="steelblue", edgecolor="k")
    ax.set_xlabel("inner state")
    ax.set_ylabel("segments")
    if save_path:
        fig.savefig(save_path, dpi=120)
    _show_and_close(fig, do_show=show)
