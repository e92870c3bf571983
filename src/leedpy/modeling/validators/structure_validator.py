"""Validation helpers for the structure schema and built layer stacks."""

from __future__ import annotations

import numpy as np

from leedpy.core.types import GEO_TOLERANCE, Layer, TMatrixKind
from leedpy.modeling.schema import StructureData


def _z_range(positions: list[np.ndarray]) -> tuple[float, float]:
    z = [float(p[2]) for p in positions]
    return min(z), max(z)


def validate_structure(structure: StructureData) -> None:
    a1 = np.asarray(structure.a1, dtype=float)
    a2 = np.asarray(structure.a2, dtype=float)
    if a1.shape != (2,) or a2.shape != (2,):
        raise ValueError("structure.a1 and structure.a2 must be 2-vectors.")
    if abs(a1[0] * a2[1] - a1[1] * a2[0]) < GEO_TOLERANCE:
        raise ValueError("structure.a1 and structure.a2 must not be collinear.")
    sup = np.asarray(structure.superstructure, dtype=float)
    if sup.shape != (2, 2):
        raise ValueError("structure.superstructure must be a 2x2 matrix.")
    if np.any(np.abs(sup - np.round(sup)) > GEO_TOLERANCE):
        raise ValueError("structure.superstructure must contain integer entries.")
    if abs(np.linalg.det(sup)) < 0.5:
        raise ValueError("structure.superstructure must be non-singular.")

    if len(structure.phase_shifts) == 0:
        raise ValueError("structure.phase_shifts must contain at least one entry.")
    tags = [entry.tag for entry in structure.phase_shifts]
    if len(set(tags)) != len(tags):
        raise ValueError("structure.phase_shifts tags must be unique.")
    for entry in structure.phase_shifts:
        TMatrixKind.resolve(entry.kind)
        if min(entry.dr2, entry.ux, entry.uy, entry.uz) < 0.0:
            raise ValueError(f"Vibration amplitudes of '{entry.tag}' must be non-negative.")

    if len(structure.layers) == 0:
        raise ValueError("structure.layers must contain at least one layer.")
    prev_top: float | None = None
    for i_layer, layer in enumerate(structure.layers):
        if len(layer.atoms) == 0:
            raise ValueError(f"Layer {i_layer} must contain at least one atom.")
        if layer.periodicity not in {"super", "1x1"}:
            raise ValueError(f"Layer {i_layer}: periodicity must be 'super' or '1x1' (got '{layer.periodicity}').")
        positions = []
        for atom in layer.atoms:
            if atom.type not in tags:
                raise ValueError(f"Layer {i_layer}: unknown atom type '{atom.type}'. Known types: {', '.join(tags)}")
            pos = np.asarray(atom.position, dtype=float)
            if pos.shape != (3,):
                raise ValueError(f"Layer {i_layer}: atom positions must be 3-vectors.")
            positions.append(pos)
        z_min, z_max = _z_range(positions)

        if i_layer == 0:
            if layer.role != "bulk" or layer.repeat is None:
                raise ValueError("The first layer must be a bulk layer with a repeat vector.")
            repeat = np.asarray(layer.repeat, dtype=float)
            if repeat.shape != (3,):
                raise ValueError("The bulk repeat vector must be a 3-vector.")
            if repeat[2] <= z_max - z_min + GEO_TOLERANCE:
                raise ValueError(
                    f"The bulk repeat vector must exceed the bulk layer thickness "
                    f"(repeat_z={repeat[2]:.4f}, thickness={z_max - z_min:.4f})."
                )
        elif layer.role != "overlayer":
            raise ValueError(f"Layer {i_layer}: only the first layer may be a bulk layer.")

        if prev_top is not None and z_min <= prev_top + GEO_TOLERANCE:
            raise ValueError(
                f"Layer {i_layer} must lie above layer {i_layer - 1} (z_min={z_min:.4f} <= {prev_top:.4f})."
            )
        prev_top = z_max


def validate_layer_stack(layers: list[Layer]) -> None:
    if not layers or layers[0].role != "bulk":
        raise ValueError("Layer stack must start with a bulk layer.")
    for lower, upper in zip(layers[:-1], layers[1:]):
        if upper.z_min <= lower.z_max:
            raise ValueError(f"Layer {upper.index} overlaps layer {lower.index}.")
