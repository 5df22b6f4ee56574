"""
Constants and enumerations for the roll engine.

Defines the formula grammar (variable tokens, the damage-section placeholder),
the roll modes understood by the chat layer, modifier kinds, and the
localization keys the engine asks for.
"""

import re
from enum import Enum

# Variable tokens: '@' followed by letters, digits, dots, dashes or underscores.
VARIABLE_PATTERN = re.compile(r"@([a-zA-Z.0-9_\-]+)")

# Marker spliced into a formula wherever a damage section goes.
DAMAGE_SECTION_PLACEHOLDER = "<damageSection>"

# Value used in place of anything that cannot be resolved.
NEUTRAL_VALUE = "0"

# A bonus starting with one of these is appended as-is.
BONUS_OPERATORS = ("+", "-", "*", "/")

# Nodes deeper than this resolve to the neutral value.
MAX_RESOLVE_DEPTH = 32

# Reserved keys under which modifiers are stored inside a context.
ROLLED_MODS_KEY = "rolledMods"
CALCULATED_MODS_KEY = "calculatedMods"

# Button used when nothing else is configured.
DEFAULT_BUTTON = "roll"

# Callback arguments for a cancelled roll.
CANCEL_BUTTON = "cancel"
CANCEL_ROLL_MODE = "none"

# Localization keys.
I18N_ADDITIONAL_BONUS = "Rolls.Dice.Formula.AdditionalBonus"
I18N_PART_INDEX = "Damage.PartIndex"


class NiceEnum(Enum):
    """An enumeration that provides a nicer string representation."""

    def __str__(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return self.name.lower().capitalize()


class RollMode(NiceEnum):
    """Defines who gets to see the outcome of a roll."""

    PUBLIC = "publicroll"
    GM = "gmroll"
    BLIND = "blindroll"
    SELF = "selfroll"

    @property
    def color(self) -> str:
        """Returns the color string associated with this roll mode."""
        return {
            RollMode.PUBLIC: "bold green",
            RollMode.GM: "bold yellow",
            RollMode.BLIND: "bold red",
            RollMode.SELF: "bold blue",
        }.get(self, "dim white")

    def colorize(self, message: str) -> str:
        """Applies roll mode color formatting to a message."""
        return f"[{self.color}]{message}[/]"

