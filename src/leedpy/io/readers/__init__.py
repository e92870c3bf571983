from .cleed_phs import read_cleed_phase_shifts

__all__ = ["read_cleed_phase_shifts"]
