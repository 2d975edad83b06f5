from __future__ import annotations


class CAError(Exception):
    """Base class for errors raised by the segment network."""


class InvalidArity(CAError, ValueError):
    r"""
    A :class:`~ca_reco.segment.Segment` was requested from an empty hit list.

    Segments are chains of :math:`k\ge 1` hits; a zero-length chain has no
    layer and no state slot, so construction fails instead of producing a
    malformed node.
    """


class BadSegmentLength(CAError, ValueError):
    r"""
    A criterion received segments whose hit count it cannot judge.

    Raised before any geometry is computed. The builder treats it as a failed
    pairing (logged and skipped); it is never counted as an acceptance.
    """


class EmptyState(CAError, RuntimeError):
    """Inner or outer state queried on a segment whose state holds no slot."""


class CriteriaConfigError(CAError, ValueError):
    """Criteria registration or configuration is inconsistent (setup-time, fatal)."""


class NonConvergence(RuntimeWarning):
    r"""
    The automaton reached its round cap while states were still changing.

    Issued through :func:`warnings.warn`; extraction continues on the
    current (best-effort) states.
    """
