from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

import numpy as np
from scipy.stats import chi2 as _chi2

from ca_reco.extractor import TrackCandidate
from ca_reco.hits import Hit

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FitResult:
    r"""
    Quality summary returned by an external track fit.

    Attributes
    ----------
    chi2 : float
        Fit :math:`\chi^2`.
    ndf : int
        Degrees of freedom.
    probability : float
        :math:`P(\chi^2_\text{ndf} \ge \chi^2)`.
    parameters : ndarray, optional
        Fitted track parameters, fitter-specific layout.
    """
    chi2: float
    ndf: int
    probability: float
    parameters: Optional[np.ndarray] = None

    @classmethod
    def from_chi2(cls, chi2: float, ndf: int, parameters: Optional[np.ndarray] = None) -> "FitResult":
        """Fill :attr:`probability` from :func:`chi2_probability`."""
        return cls(float(chi2), int(ndf), chi2_probability(chi2, ndf), parameters)


class TrackFitter(Protocol):
    """Anything that fits an ordered hit chain (outer → inner)."""

    def fit(self, hits: Sequence[Hit]) -> FitResult:
        ...


def chi2_probability(chi2: float, ndf: int) -> float:
    r"""
    Upper-tail probability of the :math:`\chi^2` distribution.

    Returns ``0`` for ``ndf <= 0`` or a non-finite :math:`\chi^2`.
    """
    if ndf <= 0 or not np.isfinite(chi2):
        return 0.0
    return float(_chi2.sf(float(chi2), int(ndf)))


def filter_by_fit(
    candidates: Sequence[TrackCandidate],
    fitter: TrackFitter,
    chi2prob_min: float = 0.0,
    *,
    keep_failed: bool = False,
) -> List[TrackCandidate]:
    r"""
    Fit every candidate and keep those with :math:`P(\chi^2)\ge` ``chi2prob_min``.

    The :class:`FitResult` is attached to ``candidate.fit``. A fitter that
    raises :class:`ValueError` or :class:`ArithmeticError` marks the candidate
    as failed; failed candidates are dropped unless ``keep_failed``.
    """
    kept: List[TrackCandidate] = []
    n_failed = 0
    for tc in candidates:
        try:
            res = fitter.fit(tc.hits)
        except (ValueError, ArithmeticError) as e:
            n_failed += 1
            logger.debug("Fit failed for candidate %d: %s", tc.id, e)
            if keep_failed:
                kept.append(tc)
            continue
        tc.fit = res
        if res.probability >= chi2prob_min:
            kept.append(tc)
    logger.info(
        "Fit filter kept %d/%d candidates (%d fit failures, P(chi2) >= %g)",
        len(kept), len(candidates), n_failed, chi2prob_min,
    )
    return kept
