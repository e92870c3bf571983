"""Unit conversion helpers between laboratory and Hartree atomic units."""

from __future__ import annotations

import numpy as np


# CODATA 2018 constants.
HART = 27.211386245988
BOHR = 0.529177210903
RYDBERG_IN_HARTREE = 0.5


def ev_to_hartree(energy: np.ndarray | float) -> np.ndarray | float:
    """Convert energies [eV] to Hartree."""

    return np.asarray(energy, dtype=float) / HART


def hartree_to_ev(energy: np.ndarray | float) -> np.ndarray | float:
    """Convert energies [Hartree] to eV."""

    return np.asarray(energy, dtype=float) * HART


def rydberg_to_hartree(energy: np.ndarray | float) -> np.ndarray | float:
    return np.asarray(energy, dtype=float) * RYDBERG_IN_HARTREE


def angstrom_to_bohr(length: np.ndarray | float) -> np.ndarray | float:
    """Convert lengths [Angstrom] to Bohr radii."""

    return np.asarray(length, dtype=float) / BOHR


def bohr_to_angstrom(length: np.ndarray | float) -> np.ndarray | float:
    return np.asarray(length, dtype=float) * BOHR
