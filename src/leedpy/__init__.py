from .core import (
    BeamList,
    Layer,
    LayerMatrices,
    LeedContext,
    SurfaceLattice,
    assemble_composite,
    build_scattering_matrices,
    bulk_reflection,
    combine_layers,
    generate_beams,
    select_beams,
)
from .modeling import CalcConfig, StructureData, structure_from_dict

__all__ = [
    "BeamList",
    "Layer",
    "LayerMatrices",
    "LeedContext",
    "SurfaceLattice",
    "generate_beams",
    "select_beams",
    "build_scattering_matrices",
    "assemble_composite",
    "combine_layers",
    "bulk_reflection",
    "CalcConfig",
    "StructureData",
    "structure_from_dict",
]
