"""Security utilities -- fix-instruction safety checks and boundary input validation."""
from .safety_validator import SafetyValidator, ValidationResult, is_interactive_selector
from .validators import (
    ValidationError,
    validate_length,
    validate_not_empty,
    validate_in_choices,
    validate_positive_number,
    validate_url,
    validate_list_size,
    parse_json_param,
    parse_bool_param,
)
