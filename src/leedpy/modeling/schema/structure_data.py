"""Input schema of the surface structure (lengths in Angstrom)."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


Array = np.ndarray


@dataclass(frozen=True)
class PhaseShiftEntry:
    """One atom type: a phase-shift file tag plus its vibration amplitudes.

    ``dr2`` is the isotropic mean-square displacement [A^2]; ``ux``, ``uy``,
    ``uz`` are RMS amplitudes [A] used by the cumulant t-matrix.
    """

    tag: str
    kind: str = "diagonal"
    dr2: float = 0.0
    ux: float = 0.0
    uy: float = 0.0
    uz: float = 0.0


@dataclass(frozen=True)
class AtomEntry:
    type: str
    position: Array


@dataclass(frozen=True)
class LayerEntry:
    """A composite layer. ``periodicity`` is ``"super"`` or ``"1x1"``."""

    atoms: tuple[AtomEntry, ...]
    role: str = "overlayer"
    repeat: Array | None = None
    periodicity: str = "super"


@dataclass(frozen=True)
class StructureData:
    """Unified intermediate representation of the crystal surface.

    Layers are ordered from the bulk (first) to the vacuum side (last).
    """

    a1: Array
    a2: Array
    phase_shifts: tuple[PhaseShiftEntry, ...]
    layers: tuple[LayerEntry, ...]
    superstructure: Array = field(default_factory=lambda: np.eye(2))
