"""cbmfile core — shared types, errors, and configuration.

Import the most commonly used types from here for convenience:

    from cbmfile.core import TrialTable, ValidationError, get_config
"""

from cbmfile.core.config import CbmFileConfig, get_config, set_config
from cbmfile.core.errors import (
    CbmFileError,
    DslIOError,
    FormatError,
    GrammarError,
    HierarchyCycleError,
    ResolutionError,
)
from cbmfile.core.types import (
    TRIAL_FIELDS,
    FieldKind,
    Severity,
    TrialField,
    TrialTable,
    ValidationError,
)

__all__ = [
    "TRIAL_FIELDS",
    "CbmFileConfig",
    "CbmFileError",
    "DslIOError",
    "FieldKind",
    "FormatError",
    "GrammarError",
    "HierarchyCycleError",
    "ResolutionError",
    "Severity",
    "TrialField",
    "TrialTable",
    "ValidationError",
    "get_config",
    "set_config",
]
