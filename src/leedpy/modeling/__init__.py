from .builders import build_lattice, build_layers, interlayer_distances, load_phase_shift_types, structure_from_dict
from .schema import AtomEntry, CalcConfig, LayerEntry, PhaseShiftEntry, StructureData
from .units import (
    BOHR,
    HART,
    angstrom_to_bohr,
    bohr_to_angstrom,
    ev_to_hartree,
    hartree_to_ev,
    rydberg_to_hartree,
)
from .validators import validate_layer_stack, validate_structure

__all__ = [
    "CalcConfig",
    "PhaseShiftEntry",
    "AtomEntry",
    "LayerEntry",
    "StructureData",
    "structure_from_dict",
    "build_lattice",
    "build_layers",
    "interlayer_distances",
    "load_phase_shift_types",
    "validate_structure",
    "validate_layer_stack",
    "HART",
    "BOHR",
    "ev_to_hartree",
    "hartree_to_ev",
    "rydberg_to_hartree",
    "angstrom_to_bohr",
    "bohr_to_angstrom",
]
