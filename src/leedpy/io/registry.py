"""Reader registry for phase-shift file formats."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from leedpy.core.types import PhaseShiftSet


Reader = Callable[[Any], PhaseShiftSet]
_READERS: dict[str, Reader] = {}
_SUFFIXES: dict[str, str] = {}


def _key(name: str) -> str:
    return name.strip().lower()


def register_reader(name: str, reader: Reader, suffixes: tuple[str, ...] = ()) -> None:
    """Register ``reader`` under ``name``; ``suffixes`` (e.g. ``".phs"``) enable auto-detection."""

    key = _key(name)
    if not key:
        raise ValueError("Reader name must be non-empty.")
    _READERS[key] = reader
    for suffix in suffixes:
        _SUFFIXES[suffix.lower()] = key


def get_reader(name: str) -> Reader:
    key = _key(name)
    try:
        return _READERS[key]
    except KeyError as exc:
        available = ", ".join(sorted(_READERS)) or "<none>"
        raise KeyError(f"Unknown phase-shift reader '{name}'. Available readers: {available}") from exc


def list_readers() -> tuple[str, ...]:
    return tuple(sorted(_READERS.keys()))


def reader_for_path(path: str | Path) -> str:
    suffix = Path(path).suffix.lower()
    try:
        return _SUFFIXES[suffix]
    except KeyError as exc:
        known = ", ".join(sorted(_SUFFIXES)) or "<none>"
        raise KeyError(f"No phase-shift reader registered for suffix '{suffix}'. Known suffixes: {known}") from exc


def read_phase_shifts(source: Any, reader: str = "cleed") -> PhaseShiftSet:
    """Read a phase-shift set; ``reader="auto"`` picks the reader from the file suffix."""

    if _key(reader) == "auto":
        reader = reader_for_path(source)
    return get_reader(reader)(source)
