from .calc_config import CalcConfig
from .structure_data import AtomEntry, LayerEntry, PhaseShiftEntry, StructureData

__all__ = ["CalcConfig", "PhaseShiftEntry", "AtomEntry", "LayerEntry", "StructureData"]
