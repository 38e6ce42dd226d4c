"""Typed exceptions for the geometry layer.

Both mesh errors subclass ``ValueError`` so callers that already catch bad
input generically keep working.
"""

from __future__ import annotations

__all__ = [
    "WannierPlotsError",
    "InvalidLatticeError",
    "MalformedMeshError",
]


def _format_context(ctx):
    """Return a compact ' | key1=val1, key2=val2' suffix or '' if no context."""
    if not ctx:
        return ""
    parts = []
    for k in sorted(ctx):
        sv = repr(ctx[k])
        if len(sv) > 120:
            sv = sv[:117] + "..."
        parts.append(f"{k}={sv}")
    return " | " + ", ".join(parts)


class WannierPlotsError(Exception):
    """
    Base class for errors raised by wannier_plots.

    Parameters
    ----------
    message : str
        Human-readable error.
    context : dict, optional
        Extra fields appended to the string form, e.g. {"det": 0.0}.
    """

    def __init__(self, message, context=None):
        self.context = dict(context) if context else None
        super().__init__(message)

    def __str__(self):
        return super().__str__() + _format_context(self.context)


class InvalidLatticeError(WannierPlotsError, ValueError):
    """Lattice basis is not a finite, non-degenerate 3x3 matrix."""


class MalformedMeshError(WannierPlotsError, ValueError):
    """
    Vertex/face buffers are inconsistent:
      - vertices not shaped (N, 3) or containing NaN/Inf
      - faces not shaped (M, 3) integers
      - face index outside [0, N)
    """
