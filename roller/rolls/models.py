"""
Records exchanged between the roll tree, its dialog and its callers.
"""

from typing import Any

from pydantic import BaseModel, Field

from core.constants import DEFAULT_BUTTON
from rolls.context import RollContexts, RollMod


class DamagePart(BaseModel):
    """One damage instance of a roll, spliced in at the damage placeholder."""

    formula: str = Field(default="0", description="The damage formula of this part")
    name: str = Field(default="", description="Display name of the part")
    is_damage_section: bool = Field(
        default=False,
        description="Whether the part starts a damage section of its own",
    )
    is_primary_section: bool = Field(
        default=False,
        description="Whether the part is spliced into the surrounding formula",
    )
    enabled: bool = Field(default=True, description="Whether the user wants this part")
    part_index: str | None = Field(
        default=None,
        description="Label such as 'Part 1 of 3', set when several parts are rolled",
    )


class DialogButton(BaseModel):
    """A button offered by the selection dialog."""

    id: str | None = Field(default=None, description="Value returned when chosen")
    label: str = Field(description="Text shown on the button")

    @property
    def value(self) -> str:
        return self.id or self.label


class RollTreeOptions(BaseModel):
    """Options scoped to one roll tree."""

    skip_ui: bool = Field(default=False, description="Build the roll without asking")
    debug: bool = Field(default=False, description="Log the intermediate steps")
    parts: list[DamagePart] = Field(
        default_factory=list,
        description="Damage parts of the roll",
    )
    buttons: list[DialogButton] = Field(
        default_factory=list,
        description="Buttons offered by the dialog",
    )
    default_button: str | None = Field(default=None, description="Preferred button")
    title: str = Field(default="", description="Dialog title")
    dialog_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque options passed through to the dialog",
    )
    main_die: str | None = Field(default=None, description="Die shown by the dialog")
    dialog_timeout: float | None = Field(
        default=None,
        description="Seconds to wait for the dialog, None waits forever",
    )

    @property
    def damage_sections(self) -> list[DamagePart]:
        return [part for part in self.parts if part.is_damage_section]

    @property
    def first_button(self) -> str:
        """The button used when the dialog is skipped."""
        if self.default_button:
            return self.default_button
        if self.buttons:
            return self.buttons[0].value
        return DEFAULT_BUTTON


class DialogConfig(BaseModel):
    """What the selection dialog is asked to show."""

    buttons: list[DialogButton] = Field(default_factory=list)
    default_button: str | None = Field(default=None)
    title: str = Field(default="")
    dialog_options: dict[str, Any] = Field(default_factory=dict)
    parts: list[DamagePart] = Field(default_factory=list)


class RollSelection(BaseModel):
    """The answer of the selection dialog."""

    button: str | None = Field(description="Chosen button, None when cancelled")
    roll_mode: str = Field(default="", description="Chosen roll mode")
    bonus: str | None = Field(default=None, description="Flat bonus typed by the user")
    parts: list[DamagePart] | None = Field(
        default=None,
        description="Damage parts with their enabled flags",
    )

    @property
    def cancelled(self) -> bool:
        return self.button is None

    @property
    def enabled_parts(self) -> list[DamagePart]:
        return [part for part in self.parts or [] if part.enabled]


class RollResult(BaseModel):
    """A resolved formula."""

    final_roll: str = Field(default="", description="Formula ready for evaluation")
    formula: str = Field(default="", description="Annotated formula for display")

    def append(self, final_roll: str, formula: str) -> None:
        self.final_roll += final_roll
        self.formula += formula

    def replace(self, old: str, final_roll: str, formula: str) -> None:
        """Replaces the first occurrence of `old` in both formulas."""
        self.final_roll = self.final_roll.replace(old, final_roll, 1)
        self.formula = self.formula.replace(old, formula, 1)


class BuiltRoll(BaseModel):
    """One formula section produced by the roll tree."""

    button: str
    roll_mode: str
    result: RollResult
    part: DamagePart | None = None
    bonus: str | None = None


class PendingRoll(BaseModel):
    """A roll that was prepared and is waiting for its selection."""

    formula: str = Field(description="The formula as requested")
    sanitized_formula: str = Field(description="The formula with bad variables zeroed")
    contexts: RollContexts
    available_modifiers: list[RollMod] = Field(
        default_factory=list,
        description="Toggleable modifiers offered to the user",
    )
    roll_mods: list[RollMod] = Field(
        default_factory=list,
        description="Every modifier involved in the roll",
    )
    dialog_config: DialogConfig
    root_node: Any = Field(default=None, description="Root of the populated tree")
