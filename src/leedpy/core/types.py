"""Core data structures for the LEED multiple-scattering engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import numpy as np

from .errors import InvalidMatrixKind


Array = np.ndarray

GEO_TOLERANCE = 1e-4
K_TOLERANCE = 1e-4


class TMatrixKind(Enum):
    """Atomic scattering-matrix representation."""

    DIAGONAL = "diagonal"
    CUMULANT = "cumulant"

    @classmethod
    def resolve(cls, kind: TMatrixKind | str) -> TMatrixKind:
        if isinstance(kind, cls):
            return kind
        if isinstance(kind, str):
            try:
                return cls(kind.strip().lower())
            except ValueError:
                pass
        raise InvalidMatrixKind(f"Unknown t-matrix kind {kind!r}. Expected 'diagonal' or 'cumulant'.")


@dataclass(frozen=True)
class IsotropicDisplacement:
    """Isotropic vibration given by the mean-square displacement <dr^2> [Bohr^2]."""

    dr2: float = 0.0

    def __post_init__(self) -> None:
        if self.dr2 < 0.0:
            raise ValueError(f"Mean-square displacement must be non-negative (got {self.dr2}).")

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (float(self.dr2), 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class AnisotropicDisplacement:
    """Anisotropic vibration given by RMS amplitudes along x, y, z [Bohr]."""

    ux: float = 0.0
    uy: float = 0.0
    uz: float = 0.0

    def __post_init__(self) -> None:
        if min(self.ux, self.uy, self.uz) < 0.0:
            raise ValueError(f"RMS amplitudes must be non-negative (got {self.ux}, {self.uy}, {self.uz}).")

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (0.0, float(self.ux), float(self.uy), float(self.uz))


Displacement = IsotropicDisplacement | AnisotropicDisplacement


@dataclass(frozen=True)
class PhaseShiftSet:
    """Phase shifts of one atom type on an ascending energy grid."""

    l_max: int
    energies: Array
    phase_shifts: Array
    displacement: Displacement = field(default_factory=IsotropicDisplacement)
    kind: TMatrixKind = TMatrixKind.DIAGONAL
    source: Path | None = None

    def __post_init__(self) -> None:
        if self.l_max < 0:
            raise ValueError(f"l_max must be non-negative (got {self.l_max}).")
        if self.energies.ndim != 1 or self.energies.size < 2:
            raise ValueError("At least two energies are required for interpolation.")
        expected = (self.energies.size, self.l_max + 1)
        if self.phase_shifts.shape != expected:
            raise ValueError(f"phase_shifts must have shape {expected} (got {self.phase_shifts.shape}).")
        if not isinstance(self.kind, TMatrixKind):
            raise InvalidMatrixKind(f"kind must be a TMatrixKind (got {self.kind!r}).")

    @property
    def n_eng(self) -> int:
        return int(self.energies.size)

    @property
    def eng_min(self) -> float:
        return float(self.energies[0])

    @property
    def eng_max(self) -> float:
        return float(self.energies[-1])


@dataclass(frozen=True)
class SurfaceLattice:
    """Two-dimensional surface lattice with an optional superstructure.

    ``a1``/``a2`` are the 1x1 real-space basis vectors [Bohr]. The
    superstructure matrix ``M`` defines the superstructure basis as
    ``b_i = sum_j M_ij a_j``.
    """

    a1: Array
    a2: Array
    superstructure: Array = field(default_factory=lambda: np.eye(2))
    dmin: float = 1.0

    def __post_init__(self) -> None:
        for name in ("a1", "a2"):
            vec = np.asarray(getattr(self, name), dtype=float)
            if vec.shape != (2,):
                raise ValueError(f"{name} must be a 2-vector (got shape {vec.shape}).")
            object.__setattr__(self, name, vec)
        mat = np.asarray(self.superstructure, dtype=float)
        if mat.shape != (2, 2):
            raise ValueError(f"superstructure must be a 2x2 matrix (got shape {mat.shape}).")
        object.__setattr__(self, "superstructure", mat)
        if self.area < GEO_TOLERANCE:
            raise ValueError("Lattice vectors a1 and a2 must not be collinear.")
        if abs(np.linalg.det(mat)) < 0.5:
            raise ValueError("superstructure matrix must be non-singular.")
        if self.dmin <= 0.0:
            raise ValueError(f"dmin must be positive (got {self.dmin}).")

    @property
    def basis(self) -> Array:
        return np.vstack([self.a1, self.a2])

    @property
    def area(self) -> float:
        return float(abs(self.a1[0] * self.a2[1] - self.a1[1] * self.a2[0]))

    @property
    def reciprocal(self) -> Array:
        """Rows ``g1``, ``g2`` of the 1x1 reciprocal lattice."""

        return 2.0 * np.pi * np.linalg.inv(self.basis).T

    @property
    def rel_area_sup(self) -> float:
        return float(abs(np.linalg.det(self.superstructure)))

    @property
    def m_recip(self) -> Array:
        """Superstructure reciprocal vectors in units of ``g1``, ``g2``."""

        return np.linalg.inv(self.superstructure).T

    @property
    def super_basis(self) -> Array:
        return self.superstructure @ self.basis


@dataclass(frozen=True)
class Atom:
    type_id: int
    position: Array

    def __post_init__(self) -> None:
        pos = np.asarray(self.position, dtype=float)
        if pos.shape != (3,):
            raise ValueError(f"Atom position must be a 3-vector (got shape {pos.shape}).")
        if self.type_id < 0:
            raise ValueError(f"Atom type_id must be non-negative (got {self.type_id}).")
        object.__setattr__(self, "position", pos)


@dataclass(frozen=True)
class Layer:
    """Composite layer of atoms sharing one 2D periodicity.

    Atom positions are absolute [Bohr] with ``+z`` pointing towards the
    vacuum. Bulk layers carry the ``repeat`` vector between successive bulk
    copies (the copy below sits at ``r - repeat``).
    """

    atoms: tuple[Atom, ...]
    lattice: SurfaceLattice
    role: str = "overlayer"
    index: int = 0
    repeat: Array | None = None

    def __post_init__(self) -> None:
        if len(self.atoms) == 0:
            raise ValueError("Layer must contain at least one atom.")
        object.__setattr__(self, "atoms", tuple(self.atoms))
        if self.role not in {"bulk", "overlayer"}:
            raise ValueError(f"Layer role must be 'bulk' or 'overlayer' (got '{self.role}').")
        if self.repeat is not None:
            vec = np.asarray(self.repeat, dtype=float)
            if vec.shape != (3,):
                raise ValueError(f"repeat must be a 3-vector (got shape {vec.shape}).")
            object.__setattr__(self, "repeat", vec)
        if self.role == "bulk" and self.repeat is None:
            raise ValueError("Bulk layers require a repeat vector.")

    @property
    def n_atoms(self) -> int:
        return len(self.atoms)

    @property
    def rel_area(self) -> float:
        return self.lattice.rel_area_sup

    @property
    def positions(self) -> Array:
        return np.vstack([atom.position for atom in self.atoms])

    @property
    def z_min(self) -> float:
        return float(np.min(self.positions[:, 2]))

    @property
    def z_max(self) -> float:
        return float(np.max(self.positions[:, 2]))

    @property
    def thickness(self) -> float:
        return self.z_max - self.z_min


@dataclass(frozen=True)
class Beam:
    """One diffracted beam. Energy-dependent fields are set by beam selection."""

    ind1: float
    ind2: float
    set_id: int
    g: Array
    k_par: float
    akz: complex
    kx: float = 0.0
    ky: float = 0.0
    kz: complex = 0.0j
    k: complex = 0.0j
    cos_theta: complex = 0.0j
    phi: float = 0.0
    k_par_total: float = 0.0


@dataclass(frozen=True)
class BeamList:
    """Ordered beam list with vectorised array views."""

    beams: tuple[Beam, ...]
    k_in: Array = field(default_factory=lambda: np.zeros(2))

    def __post_init__(self) -> None:
        object.__setattr__(self, "beams", tuple(self.beams))
        object.__setattr__(self, "k_in", np.asarray(self.k_in, dtype=float))

    def __len__(self) -> int:
        return len(self.beams)

    def __iter__(self):
        return iter(self.beams)

    def __getitem__(self, idx: int) -> Beam:
        return self.beams[idx]

    def _column(self, name: str, dtype: type) -> Array:
        return np.array([getattr(b, name) for b in self.beams], dtype=dtype)

    @property
    def ind1(self) -> Array:
        return self._column("ind1", float)

    @property
    def ind2(self) -> Array:
        return self._column("ind2", float)

    @property
    def indices(self) -> Array:
        return np.column_stack([self.ind1, self.ind2]) if self.beams else np.zeros((0, 2))

    @property
    def set_id(self) -> Array:
        return self._column("set_id", int)

    @property
    def k_par(self) -> Array:
        return self._column("k_par", float)

    @property
    def k_par_total(self) -> Array:
        return self._column("k_par_total", float)

    @property
    def kx(self) -> Array:
        return self._column("kx", float)

    @property
    def ky(self) -> Array:
        return self._column("ky", float)

    @property
    def kz(self) -> Array:
        return self._column("kz", complex)

    @property
    def k(self) -> Array:
        return self._column("k", complex)

    @property
    def cos_theta(self) -> Array:
        return self._column("cos_theta", complex)

    @property
    def phi(self) -> Array:
        return self._column("phi", float)

    @property
    def akz(self) -> Array:
        return self._column("akz", complex)

    @property
    def evanescent(self) -> Array:
        return self.k_par_total > np.real(self.k) ** 2


@dataclass(frozen=True)
class LayerMatrices:
    """Beam-space diffraction matrices of a layer or a stack of layers.

    ``tpp``: k(+) -> k(+), ``tmm``: k(-) -> k(-), ``rpm``: k(-) -> k(+),
    ``rmp``: k(+) -> k(-). The ``+`` direction points along ``+z``.
    """

    tpp: Array
    tmm: Array
    rpm: Array
    rmp: Array

    def __post_init__(self) -> None:
        shape = self.tpp.shape
        if len(shape) != 2 or shape[0] != shape[1]:
            raise ValueError("tpp must be a square 2D array.")
        for name in ("tmm", "rpm", "rmp"):
            if getattr(self, name).shape != shape:
                raise ValueError(f"{name} must have shape {shape} (got {getattr(self, name).shape}).")

    @property
    def n_beams(self) -> int:
        return int(self.tpp.shape[0])
