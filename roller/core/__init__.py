"""
Core system module for the roll engine.

This module contains the shared building blocks of the engine: formula
constants and enumerations, logging setup, the settings and localization
services, and console helpers.
"""

from .constants import (
    DAMAGE_SECTION_PLACEHOLDER,
    VARIABLE_PATTERN,
    RollMode,
)
from .logging import (
    get_logger,
    setup_logging,
)
from .settings import (
    DefaultLocalizer,
    Localizer,
    MemorySettings,
    SettingsStore,
)
from .utils import (
    cprint,
    crule,
    extract_variables,
    has_variables,
    normalize_bonus,
    replace_token,
    substitute_tokens,
)

__all__ = [
    # Import from constants.py
    "DAMAGE_SECTION_PLACEHOLDER",
    "VARIABLE_PATTERN",
    "RollMode",
    # Import from logging.py
    "get_logger",
    "setup_logging",
    # Import from settings.py
    "DefaultLocalizer",
    "Localizer",
    "MemorySettings",
    "SettingsStore",
    # Import from utils.py
    "cprint",
    "crule",
    "extract_variables",
    "has_variables",
    "normalize_bonus",
    "replace_token",
    "substitute_tokens",
]
