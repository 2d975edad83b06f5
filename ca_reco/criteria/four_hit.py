r"""
Criteria judging two 3-segments :math:`(a,b,c)` and :math:`(b,c,d)` that
share the two middle hits.
"""
from __future__ import annotations

from ca_reco.criteria.base import Criterion, register_criterion
from ca_reco.geometry import angle_between, transverse_turn
from ca_reco.segment import Segment


def _steps(parent: Segment, child: Segment):
    a = parent.hits[0].position
    b = parent.hits[1].position
    c = parent.hits[2].position
    d = child.hits[2].position
    return b - a, c - b, d - c


def _ratio(inner: float, outer: float) -> float:
    if outer == 0.0:
        return 1.0 if inner == 0.0 else float("inf")
    return inner / outer


@register_criterion
class Crit4NoZigZag(Criterion):
    r"""
    Reject chains whose transverse curvature flips direction.

    With steps :math:`u=b-a`, :math:`v=c-b`, :math:`w=d-c` the signed turning
    angles in the :math:`xy` plane are

    .. math::

        \alpha_1 = \operatorname{wrap}\big(\phi(u)-\phi(v)\big),\qquad
        \alpha_2 = \operatorname{wrap}\big(\phi(v)-\phi(w)\big),

    wrapped to :math:`(-\pi,\pi]` and converted to degrees. The judged value is
    :math:`\alpha_1\alpha_2`: positive when the particle keeps turning the same
    way (as in a uniform field), negative for a zig-zag, ``0`` when either
    step pair is straight.

    Examples
    --------
    Straight line, product ``0``; S-shape ``(0,0,0),(1,0,0),(2,1,0),(3,0,0)``,
    product :math:`(-45)\cdot 90=-4050`.
    """
    name = "Crit4_NoZigZag"
    arity = 3
    bound_names = ("prodMin", "prodMax")

    def value(self, parent: Segment, child: Segment) -> float:
        u, v, w = _steps(parent, child)
        return transverse_turn(u, v) * transverse_turn(v, w)


@register_criterion
class Crit42DAngleChange(Criterion):
    r"""
    Ratio of consecutive transverse bending angles.

    .. math:: v = \frac{\angle_{xy}(v,w)}{\angle_{xy}(u,v)}

    Constant curvature keeps the ratio near ``1``. Two straight pairs give
    ``1``; a bend after a straight pair gives ``inf``.
    """
    name = "Crit4_2DAngleChange"
    arity = 3
    bound_names = ("changeMin", "changeMax")

    def value(self, parent: Segment, child: Segment) -> float:
        u, v, w = _steps(parent, child)
        return _ratio(angle_between(v[:2], w[:2]), angle_between(u[:2], v[:2]))


@register_criterion
class Crit43DAngleChange(Criterion):
    r"""Like :class:`Crit42DAngleChange` with full 3D angles."""
    name = "Crit4_3DAngleChange"
    arity = 3
    bound_names = ("changeMin", "changeMax")

    def value(self, parent: Segment, child: Segment) -> float:
        u, v, w = _steps(parent, child)
        return _ratio(angle_between(v, w), angle_between(u, v))
