from __future__ import annotations


class TectonicGlobeError(Exception):
    """Base class for recoverable engine failures."""


class ConfigurationError(TectonicGlobeError, ValueError):
    """Generation parameters cannot produce a valid world."""


class GeometryError(TectonicGlobeError, ArithmeticError):
    """A geometric query has no well-defined answer (parallel ray, zero direction)."""


class NumericDegeneracyError(TectonicGlobeError, ArithmeticError):
    """A computation would divide by zero or normalize a zero-length vector."""
