r"""
Criteria judging two 2-segments :math:`(a,b)` and :math:`(b,c)` that share
the middle hit :math:`b`.
"""
from __future__ import annotations

import numpy as np

from ca_reco.criteria.base import Criterion, register_criterion
from ca_reco.geometry import angle_between, rz_ratio
from ca_reco.segment import Segment


def _points(parent: Segment, child: Segment):
    return parent.hits[0].position, parent.hits[1].position, child.hits[1].position


@register_criterion
class Crit33DAngle(Criterion):
    r"""Angle between the steps :math:`b-a` and :math:`c-b`, in degrees."""
    name = "Crit3_3DAngle"
    arity = 2
    bound_names = ("angleMin", "angleMax")

    def value(self, parent: Segment, child: Segment) -> float:
        a, b, c = _points(parent, child)
        return angle_between(b - a, c - b)


@register_criterion
class Crit32DAngle(Criterion):
    r"""Angle between the :math:`xy` projections of :math:`b-a` and :math:`c-b`, in degrees."""
    name = "Crit3_2DAngle"
    arity = 2
    bound_names = ("angleMin", "angleMax")

    def value(self, parent: Segment, child: Segment) -> float:
        a, b, c = _points(parent, child)
        return angle_between((b - a)[:2], (c - b)[:2])


@register_criterion
class Crit3ChangeRZRatio(Criterion):
    r"""
    Change of the RZ ratio along the chain.

    .. math:: v = \frac{R(b,c)}{R(a,b)},\qquad R(p,q)=\frac{\|q-p\|}{|q_z-p_z|}

    A helix with constant dip angle keeps :math:`R` fixed, so :math:`v\approx 1`.
    Infinite ratios (steps with no :math:`z` progress) compare equal to each
    other (``1``); a finite over infinite ratio gives ``0`` and the reverse
    ``inf``.
    """
    name = "Crit3_ChangeRZRatio"
    arity = 2
    bound_names = ("changeMin", "changeMax")

    def value(self, parent: Segment, child: Segment) -> float:
        a, b, c = _points(parent, child)
        outer = rz_ratio(a, b)
        inner = rz_ratio(b, c)
        if np.isinf(outer):
            return 1.0 if np.isinf(inner) else 0.0
        return inner / outer
