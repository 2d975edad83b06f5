from __future__ import annotations

import abc
import logging
from typing import ClassVar, Dict, Iterable, List, Mapping, MutableMapping, Optional, Tuple, Type

from ca_reco.errors import BadSegmentLength, CriteriaConfigError
from ca_reco.segment import Segment

logger = logging.getLogger(__name__)


class Criterion(abc.ABC):
    r"""
    Abstract geometric compatibility test between a parent and a child segment.

    A criterion computes one scalar :math:`v` from the hit chain spanned by a
    parent segment (outer) and a child segment (inner) that overlap in all but
    one hit, and accepts the pair iff

    .. math:: v_\text{min} \le v \le v_\text{max}.

    Subclasses set :attr:`name`, :attr:`arity` (hits per segment they accept),
    :attr:`bound_names` (configuration keys of the two bounds) and implement
    :meth:`value`.

    Parameters
    ----------
    lower, upper : float
        Acceptance window (inclusive).

    Notes
    -----
    Criteria are immutable after construction. The optional ``diagnostics``
    mapping passed to :meth:`are_compatible` receives ``{name: value}`` and
    never influences the verdict.
    """

    name: ClassVar[str] = "Criterion"
    arity: ClassVar[int] = 0
    bound_names: ClassVar[Tuple[str, str]] = ("min", "max")

    __slots__ = ("_lower", "_upper")

    def __init__(self, lower: float, upper: float) -> None:
        lower, upper = float(lower), float(upper)
        if lower > upper:
            raise CriteriaConfigError(f"{self.name}: lower bound {lower} exceeds upper bound {upper}")
        self._lower = lower
        self._upper = upper

    @property
    def lower(self) -> float:
        return self._lower

    @property
    def upper(self) -> float:
        return self._upper

    def __repr__(self) -> str:
        lo, hi = self.bound_names
        return f"{type(self).__name__}({lo}={self._lower}, {hi}={self._upper})"

    def check_lengths(self, parent: Segment, child: Segment) -> None:
        if parent.arity != self.arity or child.arity != self.arity:
            raise BadSegmentLength(
                f"{self.name} needs 2 segments with {self.arity} hits each, passed was a "
                f"{parent.arity} hit segment (parent) and a {child.arity} hit segment (child)."
            )

    @abc.abstractmethod
    def value(self, parent: Segment, child: Segment) -> float:
        """Geometric quantity judged by this criterion (lengths already checked)."""

    def are_compatible(
        self,
        parent: Segment,
        child: Segment,
        diagnostics: Optional[MutableMapping[str, float]] = None,
    ) -> bool:
        r"""
        Judge a parent/child pair.

        Raises
        ------
        BadSegmentLength
            If either segment does not hold exactly :attr:`arity` hits. Raised
            before any geometry is evaluated.
        """
        self.check_lengths(parent, child)
        v = self.value(parent, child)
        if diagnostics is not None:
            diagnostics[self.name] = v
        return self._lower <= v <= self._upper

    @classmethod
    def from_config(cls, params: Mapping[str, float]) -> "Criterion":
        r"""
        Build from a configuration block.

        Accepts the criterion's own bound names (e.g. ``prodMin``/``prodMax``)
        or the generic ``min``/``max``. Missing bounds default to an open
        window (:math:`\pm\infty`).
        """
        lo_key, hi_key = cls.bound_names
        unknown = set(params) - {lo_key, hi_key, "min", "max", "name"}
        if unknown:
            raise CriteriaConfigError(f"{cls.name}: unknown parameter(s) {sorted(unknown)}")
        lo = params.get(lo_key, params.get("min", float("-inf")))
        hi = params.get(hi_key, params.get("max", float("inf")))
        return cls(lo, hi)


CRITERIA: Dict[str, Type[Criterion]] = {}


def register_criterion(cls: Type[Criterion]) -> Type[Criterion]:
    """Class decorator adding a criterion type to :data:`CRITERIA` by its name."""
    if cls.name in CRITERIA and CRITERIA[cls.name] is not cls:
        raise CriteriaConfigError(f"duplicate criterion name {cls.name!r}")
    CRITERIA[cls.name] = cls
    return cls


def make_criterion(block: Mapping[str, float]) -> Criterion:
    """Instantiate a criterion from ``{"name": ..., <bounds>}``."""
    try:
        name = block["name"]
    except KeyError as e:
        raise CriteriaConfigError(f"criterion block without 'name': {dict(block)}") from e
    cls = CRITERIA.get(str(name))
    if cls is None:
        raise CriteriaConfigError(f"unknown criterion {name!r}; known: {', '.join(sorted(CRITERIA))}")
    return cls.from_config(block)


class CriteriaRegistry:
    r"""
    Criteria grouped by the segment arity they judge.

    The builder asks :meth:`are_compatible` for a pair of ``n``-segments and
    gets ``True`` only if **every** criterion registered for ``n`` accepts.
    Registration is validated: a criterion can only sit in the slot matching
    its own :attr:`Criterion.arity`.

    Parameters
    ----------
    criteria : iterable of Criterion, optional
        Registered in their own arity slot.
    """

    __slots__ = ("_by_arity",)

    def __init__(self, criteria: Iterable[Criterion] = ()) -> None:
        self._by_arity: Dict[int, List[Criterion]] = {}
        for c in criteria:
            self.register(c)

    def register(self, criterion: Criterion, arity: Optional[int] = None) -> None:
        slot = criterion.arity if arity is None else int(arity)
        if slot != criterion.arity:
            raise CriteriaConfigError(
                f"{criterion.name} judges {criterion.arity}-segments but was registered for arity {slot}"
            )
        self._by_arity.setdefault(slot, []).append(criterion)

    def for_arity(self, arity: int) -> Tuple[Criterion, ...]:
        return tuple(self._by_arity.get(int(arity), ()))

    @property
    def arities(self) -> List[int]:
        return sorted(k for k, v in self._by_arity.items() if v)

    @property
    def max_arity(self) -> int:
        return max(self.arities, default=0)

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_arity.values())

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}: {[c.name for c in v]}" for k, v in sorted(self._by_arity.items()))
        return f"CriteriaRegistry({{{inner}}})"

    def are_compatible(
        self,
        parent: Segment,
        child: Segment,
        diagnostics: Optional[MutableMapping[str, float]] = None,
    ) -> bool:
        r"""
        Unanimous verdict of the criteria registered for ``parent.arity``.

        With ``diagnostics`` given, every criterion is evaluated (no short
        circuit) so that each one records its value; otherwise evaluation stops
        at the first rejection. :class:`BadSegmentLength` propagates, and is
        raised here when the two segments differ in length, whether or not any
        criterion is registered for that arity.
        """
        if parent.arity != child.arity:
            raise BadSegmentLength(
                f"cannot pair a {parent.arity} hit segment (parent) with a {child.arity} hit segment (child)"
            )
        ok = True
        for crit in self._by_arity.get(parent.arity, ()):
            if not crit.are_compatible(parent, child, diagnostics):
                ok = False
                if diagnostics is None:
                    break
        return ok

    @classmethod
    def from_config(cls, blocks: Mapping[str, Iterable[Mapping[str, float]]]) -> "CriteriaRegistry":
        r"""
        Build from ``{"<arity>": [ {"name": ..., bounds...}, ... ], ...}``.

        Raises
        ------
        CriteriaConfigError
            On unknown names, bad bounds, or a criterion listed under the wrong
            arity.
        """
        reg = cls()
        for key, items in blocks.items():
            try:
                arity = int(key)
            except (TypeError, ValueError) as e:
                raise CriteriaConfigError(f"arity key must be an integer, got {key!r}") from e
            for block in items:
                reg.register(make_criterion(block), arity)
        logger.debug("Criteria registry: %r", reg)
        return reg
