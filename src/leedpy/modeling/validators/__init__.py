from .structure_validator import validate_layer_stack, validate_structure

__all__ = ["validate_structure", "validate_layer_stack"]
