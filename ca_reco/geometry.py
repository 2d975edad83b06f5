r"""
Small geometric kernels shared by the criteria.

All functions take plain ``(3,)`` float64 arrays and return Python floats.
Angles are in **degrees** at the public boundary, matching how criterion
bounds are configured.
"""
from __future__ import annotations

import numpy as np

_TWO_PI = 2.0 * np.pi


def wrap_angle(angle: float) -> float:
    r"""
    Normalise an angle (radians) to :math:`(-\pi,\pi]`.

    .. math::

        a' = a - 2\pi\left\lfloor \frac{a}{2\pi} \right\rfloor
        \in [0, 2\pi), \qquad
        a'' = a' - 2\pi\ \text{ if } a' > \pi.

    Examples
    --------
    >>> round(wrap_angle(3 * np.pi / 2), 6) == round(-np.pi / 2, 6)
    True
    >>> wrap_angle(np.pi) == np.pi
    True
    """
    a = float(angle) - _TWO_PI * np.floor(float(angle) / _TWO_PI)
    if a > np.pi:
        a -= _TWO_PI
    return a


def phi(v: np.ndarray) -> float:
    """Azimuth of a vector in the transverse plane (radians, ``atan2(y, x)``)."""
    return float(np.arctan2(v[1], v[0]))


def transverse_turn(v_outer: np.ndarray, v_inner: np.ndarray) -> float:
    r"""
    Signed turning angle in the :math:`xy` projection, in degrees.

    Computed as :math:`\phi(v_\text{outer})-\phi(v_\text{inner})` wrapped to
    :math:`(-\pi,\pi]` and converted to degrees.
    """
    return float(np.degrees(wrap_angle(phi(v_outer) - phi(v_inner))))


def angle_between(u: np.ndarray, v: np.ndarray) -> float:
    r"""
    Unsigned angle between two vectors in degrees.

    .. math:: \theta = \arccos\frac{u\cdot v}{\|u\|\,\|v\|}

    The cosine is clipped to :math:`[-1,1]`. A zero-length vector yields ``0``.
    """
    nu = float(np.linalg.norm(u))
    nv = float(np.linalg.norm(v))
    if nu == 0.0 or nv == 0.0:
        return 0.0
    c = float(np.dot(u, v)) / (nu * nv)
    return float(np.degrees(np.arccos(np.clip(c, -1.0, 1.0))))


def rz_ratio(a: np.ndarray, b: np.ndarray) -> float:
    r"""
    Ratio of the 3D distance to the longitudinal distance between two points.

    .. math:: R = \frac{\|b-a\|}{|b_z-a_z|}

    Equals ``1`` for a step along :math:`z`; grows as the step tilts into the
    transverse plane. Returns ``inf`` when :math:`b_z=a_z` and the points
    differ, and ``1`` when they coincide.
    """
    d = b - a
    dz = abs(float(d[2]))
    dist = float(np.linalg.norm(d))
    if dz == 0.0:
        return 1.0 if dist == 0.0 else float("inf")
    return dist / dz
