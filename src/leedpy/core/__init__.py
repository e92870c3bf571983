from .beams import generate_beams, incident_k_parallel, select_beams
from .context import LeedContext
from .cumulant import cumulant_tmatrix, directional_operators
from .doubling import bulk_reflection, combine_layers, combine_rpm
from .errors import (
    AllocationError,
    DimensionMismatch,
    EnergyBelowRange,
    EnvironmentVariableError,
    FileNotFound,
    InvalidInputMatrix,
    InvalidMatrixKind,
    LeedError,
    MalformedHeader,
    NonConvergence,
    PhaseShiftFormatError,
    SingularMatrix,
    UnexpectedEndOfFile,
)
from .lattice_sum import cutoff_radius, lattice_sum_between_layers, lattice_sum_same_layer
from .layer import assemble_composite, working_l_max
from .tmatrix import build_scattering_matrices, debye_waller_tl, interpolate_phase_shifts
from .types import (
    GEO_TOLERANCE,
    K_TOLERANCE,
    AnisotropicDisplacement,
    Atom,
    Beam,
    BeamList,
    IsotropicDisplacement,
    Layer,
    LayerMatrices,
    PhaseShiftSet,
    SurfaceLattice,
    TMatrixKind,
)

__all__ = [
    "GEO_TOLERANCE",
    "K_TOLERANCE",
    "AnisotropicDisplacement",
    "Atom",
    "Beam",
    "BeamList",
    "IsotropicDisplacement",
    "Layer",
    "LayerMatrices",
    "PhaseShiftSet",
    "SurfaceLattice",
    "TMatrixKind",
    "LeedContext",
    "generate_beams",
    "select_beams",
    "incident_k_parallel",
    "cutoff_radius",
    "lattice_sum_same_layer",
    "lattice_sum_between_layers",
    "interpolate_phase_shifts",
    "debye_waller_tl",
    "build_scattering_matrices",
    "cumulant_tmatrix",
    "directional_operators",
    "assemble_composite",
    "working_l_max",
    "combine_rpm",
    "combine_layers",
    "bulk_reflection",
    "LeedError",
    "AllocationError",
    "DimensionMismatch",
    "InvalidInputMatrix",
    "SingularMatrix",
    "NonConvergence",
    "FileNotFound",
    "PhaseShiftFormatError",
    "MalformedHeader",
    "UnexpectedEndOfFile",
    "EnvironmentVariableError",
    "EnergyBelowRange",
    "InvalidMatrixKind",
]
