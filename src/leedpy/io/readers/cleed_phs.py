"""Reader for CLEED/VHT style phase-shift files (``*.phs``)."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import numpy as np

from leedpy.core.errors import FileNotFound, MalformedHeader, UnexpectedEndOfFile
from leedpy.core.types import PhaseShiftSet
from leedpy.modeling.units import HART, RYDBERG_IN_HARTREE


logger = logging.getLogger(__name__)

# Fortran-formatted files may omit the blank between negative numbers.
_FLOAT_RE = re.compile(r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eEdD][-+]?\d+)?")
_HEADER_RE = re.compile(r"^\s*([-+]?\d+)\s+([-+]?\d+)(?:\s+(\S+))?")


def _energy_scale(unit: str | None) -> float:
    if unit is None:
        return 1.0
    tag = unit[:2].lower()
    if tag == "ev":
        return 1.0 / HART
    if tag == "ry":
        return RYDBERG_IN_HARTREE
    return 1.0


def _floats(line: str) -> list[float]:
    return [float(tok.replace("d", "e").replace("D", "E")) for tok in _FLOAT_RE.findall(line)]


def _next_data_line(lines: list[str], start: int) -> tuple[int, str] | None:
    i = start
    while i < len(lines):
        line = lines[i].strip()
        if line and not line.startswith("#"):
            return i, line
        i += 1
    return None


def read_cleed_phase_shifts(source: Any) -> PhaseShiftSet:
    """Parse a phase-shift file into a ``PhaseShiftSet`` (energies in Hartree).

    Layout: comment lines starting with ``#``, a header ``neng lmax [unit]``
    (unit ``eV``, ``Ry`` or Hartree by default), then ``neng`` pairs of lines
    holding one energy and ``lmax + 1`` phase shifts [rad].
    """

    path = Path(source)
    if not path.is_file():
        raise FileNotFound(f"Phase-shift file not found: '{path}'.")
    with path.open("r", encoding="utf-8", errors="replace") as fh:
        lines = [ln.rstrip("\n") for ln in fh]

    found = _next_data_line(lines, 0)
    if found is None:
        raise UnexpectedEndOfFile(f"No header line found in phase-shift file '{path}'.")
    i, line = found
    m = _HEADER_RE.match(line)
    if m is None:
        raise MalformedHeader(f"Invalid header line in '{path}': expected 'neng lmax [unit]', found '{line}'.")
    neng = int(m.group(1))
    lmax = int(m.group(2))
    if neng < 2 or lmax < 0:
        raise MalformedHeader(
            f"Invalid header values in '{path}': need neng >= 2 and lmax >= 0 (found neng={neng}, lmax={lmax})."
        )
    scale = _energy_scale(m.group(3))
    nl = lmax + 1
    i += 1

    energies: list[float] = []
    shifts: list[list[float]] = []
    for i_eng in range(neng):
        found = _next_data_line(lines, i)
        if found is None:
            break
        i, line = found
        values = _floats(line)
        if not values:
            raise MalformedHeader(f"Expected an energy value in '{path}' line {i + 1}, found '{line}'.")
        energy = values[0] * scale

        found = _next_data_line(lines, i + 1)
        if found is None:
            raise UnexpectedEndOfFile(
                f"Unexpected end of file in '{path}': missing phase shifts for energy No. {i_eng + 1}."
            )
        i, line = found
        values = _floats(line)
        if len(values) < nl:
            raise UnexpectedEndOfFile(
                f"Unexpected end of record in '{path}' line {i + 1}: expected {nl} phase shifts, found {len(values)}."
            )
        energies.append(energy)
        shifts.append(values[:nl])
        i += 1

    if len(energies) < neng:
        logger.warning(
            "Phase-shift file '%s' declares %d energies but only %d were read.", path, neng, len(energies)
        )
    if len(energies) < 2:
        raise UnexpectedEndOfFile(f"Phase-shift file '{path}' contains fewer than two energies.")

    logger.debug("Read %d energies (lmax = %d) from '%s'.", len(energies), lmax, path)
    return PhaseShiftSet(
        l_max=lmax,
        energies=np.asarray(energies, dtype=float),
        phase_shifts=np.asarray(shifts, dtype=float),
        source=path.resolve(),
    )
