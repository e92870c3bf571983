"""Computation context holding loaded phase shifts and cached operators."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

import numpy as np

from leedpy.io.registry import read_phase_shifts

from .cumulant import DirectionalOperators, directional_operators
from .errors import EnvironmentVariableError
from .harmonics import coupling_tensor
from .types import (
    GEO_TOLERANCE,
    AnisotropicDisplacement,
    Displacement,
    IsotropicDisplacement,
    PhaseShiftSet,
    TMatrixKind,
)


Array = np.ndarray

PHASE_ENV = "CLEED_PHASE"
PHASE_SUFFIX = ".phs"


@dataclass
class LeedContext:
    """Per-computation state shared by the builder calls.

    Holds the loaded phase-shift sets (atom types are indices into
    ``phase_sets``), the cumulant directional operators for the most recent
    angular-momentum cutoff and the lattice-sum coupling tensors. A context
    is not meant to be shared between threads.
    """

    phase_dir: Path | None = None
    reader: str = "cleed"
    phase_sets: list[PhaseShiftSet] = field(default_factory=list)
    _cumulant_ops: DirectionalOperators | None = field(default=None, init=False, repr=False)
    _coupling: dict[int, Array] = field(default_factory=dict, init=False, repr=False)

    @property
    def n_sets(self) -> int:
        return len(self.phase_sets)

    def resolve_phase_path(self, path_or_tag: str | Path) -> Path:
        """Absolute paths are used as given; tags map to ``<dir>/<tag>.phs``."""

        path = Path(path_or_tag)
        if path.is_absolute():
            return path
        if self.phase_dir is not None:
            base = Path(self.phase_dir)
        else:
            env = os.environ.get(PHASE_ENV)
            if not env:
                raise EnvironmentVariableError(
                    f"Environment variable {PHASE_ENV} is not set; cannot resolve phase-shift tag '{path_or_tag}'."
                )
            base = Path(env)
        return base / f"{path_or_tag}{PHASE_SUFFIX}"

    def load_phase_shifts(
        self,
        path_or_tag: str | Path,
        displacement: Displacement | None = None,
        kind: TMatrixKind | str = TMatrixKind.DIAGONAL,
    ) -> int:
        """Load a phase-shift set and return its id.

        Repeated loads of the same file with the same displacement (within
        ``GEO_TOLERANCE``) and kind return the id of the existing set.
        """

        kind = TMatrixKind.resolve(kind)
        if displacement is None:
            displacement = AnisotropicDisplacement() if kind is TMatrixKind.CUMULANT else IsotropicDisplacement()
        path = self.resolve_phase_path(path_or_tag)
        source = path.resolve()
        dr = np.asarray(displacement.as_tuple())

        for idx, pset in enumerate(self.phase_sets):
            if pset.source != source or pset.kind is not kind:
                continue
            if np.all(np.abs(dr - np.asarray(pset.displacement.as_tuple())) < GEO_TOLERANCE):
                return idx

        pset = read_phase_shifts(path, reader=self.reader)
        self.phase_sets.append(replace(pset, displacement=displacement, kind=kind, source=source))
        return len(self.phase_sets) - 1

    def cumulant_operators(self, l_max: int) -> DirectionalOperators:
        """Directional coupling operators, rebuilt only when ``l_max`` changes."""

        if self._cumulant_ops is None or self._cumulant_ops.l_max != l_max:
            self._cumulant_ops = directional_operators(l_max)
        return self._cumulant_ops

    def coupling_tensor(self, l_max: int) -> Array:
        tensor = self._coupling.get(l_max)
        if tensor is None:
            tensor = coupling_tensor(l_max)
            self._coupling[l_max] = tensor
        return tensor
