from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import List

from ca_reco.errors import NonConvergence
from ca_reco.network import SegmentNetwork
from ca_reco.segment import Segment

logger = logging.getLogger(__name__)


class AutomatonStatus(Enum):
    """Relaxation progress over a whole network."""
    UNRATED = "unrated"
    RELAXING = "relaxing"
    CONVERGED = "converged"


@dataclass(slots=True)
class RelaxationResult:
    """Outcome of :meth:`CellularAutomaton.relax`."""
    rounds: int
    raised: int
    converged: bool


class CellularAutomaton:
    r"""
    Cellular-automaton relaxation of segment states.

    Update rule
    -----------
    All segments are judged against the states of the **previous** round
    (synchronous update). A segment :math:`s` is raised by one iff it has a
    child :math:`c` with

    .. math::

        \operatorname{credit}(s,c) \;=\; \text{outer}(c) + g(s,c)
        \;\ge\; \text{inner}(s),

    where :math:`g(s,c)=\ell(s)-\ell(c)-1` is the number of layers the link
    jumps (counted only when ``count_skipped_layers``; otherwise ``0``).
    Segments without children stay at ``0``. The fixed point is

    .. math::

        \text{inner}(s) = 1 + \max_{c\in\text{children}(s)} \operatorname{credit}(s,c),

    i.e. the length (in layers) of the longest compatible chain hanging below
    :math:`s`. Rounds stop when nothing is raised (converged) or after
    ``max_rounds`` rounds, in which case a
    :class:`~ca_reco.errors.NonConvergence` warning is issued and the current
    states are kept.

    Parameters
    ----------
    max_rounds : int, optional
        Fail-safe cap on the number of rounds. Default ``100``.
    count_skipped_layers : bool, optional
        Credit jumped layers as if they held a segment. Default ``True``.

    Notes
    -----
    Relaxation never deletes segments or links; only states change. Rounds
    must not be interleaved: each one reads a fully settled previous round.
    """

    def __init__(self, max_rounds: int = 100, count_skipped_layers: bool = True) -> None:
        if max_rounds < 1:
            raise ValueError(f"max_rounds must be >= 1, got {max_rounds}")
        self.max_rounds = int(max_rounds)
        self.count_skipped_layers = bool(count_skipped_layers)
        self.status = AutomatonStatus.UNRATED

    def credit(self, parent: Segment, child: Segment) -> int:
        gap = parent.layer - child.layer - 1 if self.count_skipped_layers else 0
        return child.outer_state + gap

    def step(self, network: SegmentNetwork) -> List[int]:
        r"""
        Run one synchronous round and return the indices of raised segments.
        """
        to_raise = [
            seg for seg in network
            if any(self.credit(seg, network[ci]) >= seg.inner_state for ci in seg.children)
        ]
        for seg in to_raise:
            seg.raise_state()
        return [seg.index for seg in to_raise]

    def relax(self, network: SegmentNetwork, reset: bool = True) -> RelaxationResult:
        r"""
        Iterate :meth:`step` until steady state or the round cap.

        Parameters
        ----------
        network : SegmentNetwork
            Mutated in place (states only).
        reset : bool, optional
            Zero every state first. Default ``True``.

        Returns
        -------
        RelaxationResult
            Rounds run, total raises, and whether a steady state was reached.
        """
        if reset:
            network.reset_states()
        self.status = AutomatonStatus.RELAXING
        rounds = 0
        raised = 0
        converged = False
        while rounds < self.max_rounds:
            changed = self.step(network)
            rounds += 1
            if not changed:
                converged = True
                break
            raised += len(changed)

        if converged:
            self.status = AutomatonStatus.CONVERGED
            logger.debug("Automaton converged after %d rounds (%d raises)", rounds, raised)
        else:
            logger.warning(
                "Automaton hit the round cap (%d) on %d segments; using current states",
                self.max_rounds, len(network),
            )
            warnings.warn(
                f"cellular automaton did not converge within {self.max_rounds} rounds",
                NonConvergence,
                stacklevel=2,
            )
        return RelaxationResult(rounds=rounds, raised=raised, converged=converged)

    def clean_connections(self, network: SegmentNetwork) -> int:
        r"""
        Delete links that do not carry the parent's rating.

        After relaxation a link ``p → c`` supports ``p`` only if
        :math:`\operatorname{credit}(p,c) = \text{inner}(p)-1`; every other link
        leads into a shorter branch and is removed from both endpoints.

        Returns
        -------
        int
            Number of links deleted.
        """
        doomed = [
            (p, c) for p, c in network.links()
            if self.credit(p, c) != p.inner_state - 1
        ]
        for p, c in doomed:
            network.unlink(p, c)
        if doomed:
            logger.debug("Removed %d links not supporting their parent's state", len(doomed))
        return len(doomed)

    @staticmethod
    def clean_bad_states(network: SegmentNetwork, min_state: int) -> int:
        """Remove segments whose inner state is below ``min_state``; return how many."""
        doomed = [seg.index for seg in network if seg.inner_state < min_state]
        return network.remove_segments(doomed)
