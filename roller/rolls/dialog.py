"""
The contract between the roll tree and the dialog that lets the user pick
modifiers, a roll mode, a flat bonus and the damage parts to roll.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from catchery import log_debug

from rolls.context import RollContexts, RollMod
from rolls.models import DialogConfig, RollSelection

if TYPE_CHECKING:
    from rolls.roll_tree import RollTree


class SelectionDialog(Protocol):
    """Anything able to ask the user how a roll should be built."""

    async def show_selection_dialog(
        self,
        tree: RollTree,
        formula: str,
        contexts: RollContexts,
        available_modifiers: list[RollMod],
        main_die: str | None,
        config: DialogConfig,
    ) -> RollSelection:
        """Shows the dialog and waits for the answer.

        Args:
            tree (RollTree): The tree asking.
            formula (str): The formula being built.
            contexts (RollContexts): The contexts of the roll.
            available_modifiers (list[RollMod]): The toggleable modifiers. The
                dialog records the user's choice by setting their `enabled`
                flag.
            main_die (str | None): The die to highlight, if any.
            config (DialogConfig): Buttons, title and damage parts to offer.

        Returns:
            RollSelection: The answer, with `button` set to None on cancel.
        """
        ...


class StaticSelectionDialog:
    """
    A dialog that never asks: it answers with the choices it was built with.

    Modifiers named in `disabled_modifiers` are switched off, every other
    offered modifier is left as it is. When `enabled_parts` is given, only
    parts with those names stay enabled.
    """

    def __init__(
        self,
        button: str | None = None,
        roll_mode: str | None = None,
        bonus: str | None = None,
        disabled_modifiers: set[str] | None = None,
        enabled_parts: set[str] | None = None,
    ) -> None:
        self.button = button
        self.roll_mode = roll_mode
        self.bonus = bonus
        self.disabled_modifiers = set(disabled_modifiers or ())
        self.enabled_parts = enabled_parts

    async def show_selection_dialog(
        self,
        tree: RollTree,
        formula: str,
        contexts: RollContexts,
        available_modifiers: list[RollMod],
        main_die: str | None,
        config: DialogConfig,
    ) -> RollSelection:
        for mod in available_modifiers:
            if mod.name in self.disabled_modifiers:
                mod.enabled = False

        parts = [part.model_copy() for part in config.parts]
        if self.enabled_parts is not None:
            for part in parts:
                part.enabled = part.name in self.enabled_parts

        button = self.button or tree.options.first_button
        roll_mode = self.roll_mode or tree.current_roll_mode()
        log_debug(
            f"Answering dialog for '{formula}' with '{button}'",
            {"roll_mode": roll_mode, "bonus": self.bonus},
        )
        return RollSelection(button=button, roll_mode=roll_mode, bonus=self.bonus, parts=parts)


class CancellingDialog:
    """A dialog whose user always cancels."""

    async def show_selection_dialog(
        self,
        tree: RollTree,
        formula: str,
        contexts: RollContexts,
        available_modifiers: list[RollMod],
        main_die: str | None,
        config: DialogConfig,
    ) -> RollSelection:
        return RollSelection(button=None)
