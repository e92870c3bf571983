"""Convert the structure schema into engine layers (Bohr units)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from leedpy.core.types import AnisotropicDisplacement, Atom, IsotropicDisplacement, Layer, SurfaceLattice, TMatrixKind
from leedpy.modeling.schema import StructureData
from leedpy.modeling.units import angstrom_to_bohr
from leedpy.modeling.validators import validate_layer_stack, validate_structure

if TYPE_CHECKING:
    from leedpy.core.context import LeedContext


def interlayer_distances(structure: StructureData) -> list[float]:
    """Vertical gaps [Bohr]: bulk repeat gap first, then each overlayer gap."""

    gaps = []
    prev_top = None
    for i_layer, layer in enumerate(structure.layers):
        z = [float(angstrom_to_bohr(atom.position[2])) for atom in layer.atoms]
        if i_layer == 0:
            repeat_z = float(angstrom_to_bohr(np.asarray(layer.repeat, dtype=float)[2]))
            gaps.append(repeat_z - (max(z) - min(z)))
        else:
            gaps.append(min(z) - prev_top)
        prev_top = max(z)
    return gaps


def build_lattice(structure: StructureData, periodicity: str = "super") -> SurfaceLattice:
    superstructure = np.asarray(structure.superstructure, dtype=float) if periodicity == "super" else np.eye(2)
    return SurfaceLattice(
        a1=np.asarray(angstrom_to_bohr(structure.a1), dtype=float),
        a2=np.asarray(angstrom_to_bohr(structure.a2), dtype=float),
        superstructure=np.round(superstructure),
        dmin=min(interlayer_distances(structure)),
    )


def load_phase_shift_types(ctx: LeedContext, structure: StructureData) -> dict[str, int]:
    """Load every atom type into ``ctx`` and map its tag to the phase-shift id."""

    type_ids: dict[str, int] = {}
    for entry in structure.phase_shifts:
        kind = TMatrixKind.resolve(entry.kind)
        if kind is TMatrixKind.CUMULANT:
            disp = AnisotropicDisplacement(
                ux=float(angstrom_to_bohr(entry.ux)),
                uy=float(angstrom_to_bohr(entry.uy)),
                uz=float(angstrom_to_bohr(entry.uz)),
            )
        else:
            disp = IsotropicDisplacement(dr2=float(angstrom_to_bohr(angstrom_to_bohr(entry.dr2))))
        type_ids[entry.tag] = ctx.load_phase_shifts(entry.tag, displacement=disp, kind=kind)
    return type_ids


def build_layers(structure: StructureData, type_ids: dict[str, int]) -> list[Layer]:
    """Layers ordered from the bulk upwards, positions converted to Bohr."""

    validate_structure(structure)
    lattices = {
        "super": build_lattice(structure, "super"),
        "1x1": build_lattice(structure, "1x1"),
    }
    layers: list[Layer] = []
    for i_layer, entry in enumerate(structure.layers):
        atoms = tuple(
            Atom(type_id=type_ids[atom.type], position=np.asarray(angstrom_to_bohr(atom.position), dtype=float))
            for atom in entry.atoms
        )
        repeat = None if entry.repeat is None else np.asarray(angstrom_to_bohr(entry.repeat), dtype=float)
        layers.append(
            Layer(
                atoms=atoms,
                lattice=lattices[entry.periodicity],
                role=entry.role,
                index=i_layer,
                repeat=repeat,
            )
        )
    validate_layer_stack(layers)
    return layers
