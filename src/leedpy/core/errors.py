"""Exception taxonomy for the LEED matrix engine."""

from __future__ import annotations


class LeedError(Exception):
    """Base class for all leedpy errors."""


class AllocationError(LeedError, MemoryError):
    """Raised when a matrix buffer cannot be allocated."""


class DimensionMismatch(LeedError, ValueError):
    """Raised when matrix operands have incompatible shapes."""


class InvalidInputMatrix(LeedError, ValueError):
    """Raised when a matrix handle passed in for reuse is not a valid matrix."""


class SingularMatrix(LeedError, RuntimeError):
    """Raised when a matrix inversion fails or produces non-finite values."""


class NonConvergence(LeedError, RuntimeError):
    """Raised when an iterative series or recursion does not converge within its iteration limit."""


class FileNotFound(LeedError, FileNotFoundError):
    """Raised when a phase-shift file does not exist."""


class PhaseShiftFormatError(LeedError, ValueError):
    """Raised when a phase-shift file cannot be parsed."""


class MalformedHeader(PhaseShiftFormatError):
    """Raised when the ``neng lmax [unit]`` header line is invalid."""


class UnexpectedEndOfFile(PhaseShiftFormatError):
    """Raised when a phase-shift file ends inside an energy record."""


class EnvironmentVariableError(LeedError, LookupError):
    """Raised when a required environment variable is not set."""


class EnergyBelowRange(LeedError, ValueError):
    """Raised when an energy lies below the phase-shift energy grid."""


class InvalidMatrixKind(LeedError, ValueError):
    """Raised for an unknown scattering-matrix kind."""
