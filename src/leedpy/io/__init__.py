from leedpy.io.readers import read_cleed_phase_shifts
from leedpy.io.registry import get_reader, list_readers, read_phase_shifts, reader_for_path, register_reader


register_reader("cleed", read_cleed_phase_shifts, suffixes=(".phs",))

__all__ = [
    "register_reader",
    "get_reader",
    "list_readers",
    "reader_for_path",
    "read_phase_shifts",
    "read_cleed_phase_shifts",
]
