"""Parse the ``structure`` section of a run configuration."""

from __future__ import annotations

from typing import Any

import numpy as np

from leedpy.modeling.schema import AtomEntry, LayerEntry, PhaseShiftEntry, StructureData
from leedpy.modeling.validators import validate_structure


def _vector(value: Any, size: int, name: str) -> np.ndarray:
    vec = np.asarray(value, dtype=float)
    if vec.shape != (size,):
        raise ValueError(f"{name} must be a list of {size} numbers (got {value!r}).")
    return vec


def _phase_shift_entry(raw: dict[str, Any]) -> PhaseShiftEntry:
    if "tag" not in raw:
        raise ValueError("Each structure.phase_shifts entry requires a 'tag'.")
    return PhaseShiftEntry(
        tag=str(raw["tag"]),
        kind=str(raw.get("kind", "diagonal")).lower(),
        dr2=float(raw.get("dr2", 0.0)),
        ux=float(raw.get("ux", 0.0)),
        uy=float(raw.get("uy", 0.0)),
        uz=float(raw.get("uz", 0.0)),
    )


def _layer_entry(raw: dict[str, Any], i_layer: int) -> LayerEntry:
    atoms = tuple(
        AtomEntry(type=str(a["type"]), position=_vector(a["position"], 3, f"layers[{i_layer}].atoms.position"))
        for a in raw.get("atoms", [])
    )
    repeat = raw.get("repeat", None)
    return LayerEntry(
        atoms=atoms,
        role=str(raw.get("role", "bulk" if i_layer == 0 else "overlayer")).lower(),
        repeat=None if repeat is None else _vector(repeat, 3, f"layers[{i_layer}].repeat"),
        periodicity=str(raw.get("periodicity", "super")).lower(),
    )


def structure_from_dict(data: dict[str, Any]) -> StructureData:
    """Build and validate a ``StructureData`` from its JSON representation."""

    if not isinstance(data, dict):
        raise ValueError("structure must be a JSON object.")
    sup = np.asarray(data.get("superstructure", [[1, 0], [0, 1]]), dtype=float)
    structure = StructureData(
        a1=_vector(data.get("a1"), 2, "structure.a1"),
        a2=_vector(data.get("a2"), 2, "structure.a2"),
        phase_shifts=tuple(_phase_shift_entry(p) for p in data.get("phase_shifts", [])),
        layers=tuple(_layer_entry(layer, i) for i, layer in enumerate(data.get("layers", []))),
        superstructure=sup,
    )
    validate_structure(structure)
    return structure
