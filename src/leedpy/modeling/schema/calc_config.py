"""Engine configuration for an I(V) calculation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CalcConfig:
    """Config knobs of the scattering engine.

    ``epsilon`` is the amplitude threshold used for the beam cutoff, the
    lattice-sum radius and the angular-momentum cutoff.
    """

    l_max: int = 8
    epsilon: float = 1e-4
    phase_dir: Path | None = None
    reader: str = "cleed"
    bulk_tol: float = 1e-6
    bulk_maxiter: int = 40

    def __post_init__(self) -> None:
        if self.l_max < 1:
            raise ValueError(f"l_max must be at least 1 (got {self.l_max}).")
        if not 0.0 < self.epsilon:
            raise ValueError(f"epsilon must be positive (got {self.epsilon}).")
        if self.bulk_tol <= 0.0:
            raise ValueError(f"bulk_tol must be positive (got {self.bulk_tol}).")
        if self.bulk_maxiter <= 0:
            raise ValueError(f"bulk_maxiter must be positive (got {self.bulk_maxiter}).")
        if self.phase_dir is not None:
            object.__setattr__(self, "phase_dir", Path(self.phase_dir))
