from .layer_builder import build_lattice, build_layers, interlayer_distances, load_phase_shift_types
from .structure_builder import structure_from_dict

__all__ = [
    "structure_from_dict",
    "build_lattice",
    "build_layers",
    "interlayer_distances",
    "load_phase_shift_types",
]
