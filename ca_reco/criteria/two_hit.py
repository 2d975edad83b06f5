r"""
Criteria judging two 1-segments (a single outer hit :math:`a` and a single
inner hit :math:`b`).
"""
from __future__ import annotations

import numpy as np

from ca_reco.criteria.base import Criterion, register_criterion
from ca_reco.geometry import rz_ratio, wrap_angle
from ca_reco.segment import Segment


@register_criterion
class Crit2DeltaPhi(Criterion):
    r"""
    Azimuthal distance between the two hits, in degrees.

    .. math:: v = \left|\,\operatorname{wrap}(\phi_a-\phi_b)\,\right|
    """
    name = "Crit2_DeltaPhi"
    arity = 1
    bound_names = ("deltaPhiMin", "deltaPhiMax")

    def value(self, parent: Segment, child: Segment) -> float:
        a, b = parent.hits[0], child.hits[0]
        return abs(float(np.degrees(wrap_angle(a.phi - b.phi))))


@register_criterion
class Crit2DeltaRho(Criterion):
    r"""Transverse radius gained from the inner to the outer hit, :math:`\rho_a-\rho_b`."""
    name = "Crit2_DeltaRho"
    arity = 1
    bound_names = ("deltaRhoMin", "deltaRhoMax")

    def value(self, parent: Segment, child: Segment) -> float:
        return parent.hits[0].rho - child.hits[0].rho


@register_criterion
class Crit2RZRatio(Criterion):
    r"""
    3D step length over longitudinal step length, :math:`\|b-a\|/|b_z-a_z|`.

    See :func:`ca_reco.geometry.rz_ratio`.
    """
    name = "Crit2_RZRatio"
    arity = 1
    bound_names = ("ratioMin", "ratioMax")

    def value(self, parent: Segment, child: Segment) -> float:
        return rz_ratio(parent.hits[0].position, child.hits[0].position)


@register_criterion
class Crit2StraightTrackRatio(Criterion):
    r"""
    Consistency with a straight line through the origin.

    For a straight track from the interaction point :math:`\rho/z` is the same
    at every hit, so

    .. math:: v = \frac{\rho_a / z_a}{\rho_b / z_b}

    is close to ``1``. Pairs where either hit sits at :math:`z=0` carry no
    information and yield ``1``.
    """
    name = "Crit2_StraightTrackRatio"
    arity = 1
    bound_names = ("ratioMin", "ratioMax")

    def value(self, parent: Segment, child: Segment) -> float:
        a, b = parent.hits[0], child.hits[0]
        if a.z == 0.0 or b.z == 0.0 or b.rho == 0.0:
            return 1.0
        return (a.rho / a.z) / (b.rho / b.z)
