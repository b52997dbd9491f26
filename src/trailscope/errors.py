"""
Error Types
===========

Exception taxonomy for Trailscope.

Errors:
    - TrailscopeError: Base class for everything raised by this package
    - ValidationError: Malformed input to a mutating operation
    - SurfaceAcquisitionError: Drawing context unavailable at construction

Propagation Rules:
    - ValidationError is raised synchronously to the caller and never
      leaves the receiving component half-updated
    - SurfaceAcquisitionError is raised once, from a constructor
    - Per-frame failures are NOT raised; they are collected as
      EntityFailure records (see models.report)
"""


class TrailscopeError(Exception):
    """Base class for Trailscope errors."""
    pass


class ValidationError(TrailscopeError, ValueError):
    """Raised when input to a mutating operation is malformed."""
    pass


class SurfaceAcquisitionError(TrailscopeError, RuntimeError):
    """Raised when a drawing context cannot be obtained."""
    pass
