"""
Roll tree module.

The roll tree turns a symbolic roll formula into the final formula(s) handed
to the dice evaluator. Building a roll happens in two phases:

1. `prepare` aliases selected contexts, zeroes variables that resolve to
   nothing, expands the formula into a tree of `RollNode`s and gathers every
   modifier involved.
2. `resolve` applies the user's selection (enabled modifiers, flat bonus,
   damage parts) and flattens the tree into one result per damage section.

`build_roll` chains both phases around the selection dialog. A tree keeps the
nodes of the roll it is building on the instance, so only one `build_roll`
may be in flight per tree: callers must wait for it to finish before
starting the next one.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from catchery import log_debug, log_info, log_warning

from core.constants import (
    CANCEL_BUTTON,
    CANCEL_ROLL_MODE,
    DAMAGE_SECTION_PLACEHOLDER,
    I18N_ADDITIONAL_BONUS,
    I18N_PART_INDEX,
    NEUTRAL_VALUE,
    RollMode,
)
from core.settings import DefaultLocalizer, Localizer, MemorySettings, SettingsStore
from core.utils import extract_variables, normalize_bonus, replace_token
from rolls.context import RollContexts, RollMod, get_context_for_variable
from rolls.dialog import SelectionDialog
from rolls.models import (
    BuiltRoll,
    DialogConfig,
    PendingRoll,
    RollResult,
    RollSelection,
    RollTreeOptions,
)
from rolls.roll_node import RollNode

# Invoked once per built section as
#   callback(button, roll_mode, result, part, root_node, roll_mods, bonus)
# and once as callback("cancel", "none", None) when the roll is cancelled.
# It may be a plain function or a coroutine function.
RollCallback = Callable[..., Any]


class RollTreeError(Exception):
    """Raised when the roll tree is driven in the wrong order."""


class RollTree:
    """Builds the final formulas of a roll."""

    def __init__(
        self,
        options: RollTreeOptions | None = None,
        settings: SettingsStore | None = None,
        localizer: Localizer | None = None,
        dialog: SelectionDialog | None = None,
    ) -> None:
        """
        Initialize the RollTree.

        Args:
            options (RollTreeOptions | None): Tree scoped options.
            settings (SettingsStore | None): Where the current roll mode is
                read from.
            localizer (Localizer | None): Formats the labels added to
                formulas.
            dialog (SelectionDialog | None): Dialog used when `skip_ui` is off
                and `build_roll` is given none.

        """
        self.options = options or RollTreeOptions()
        self.settings = settings or MemorySettings()
        self.localizer = localizer or DefaultLocalizer()
        self.dialog = dialog
        self.root_node: RollNode | None = None
        self.nodes: dict[str, RollNode] = {}
        self.roll_mods: list[RollMod] = []

    def current_roll_mode(self) -> str:
        mode = self.settings.get("core", "rollMode")
        return str(mode) if mode else RollMode.PUBLIC.value

    # ---- Phase one ----

    def prepare(self, formula: str, contexts: RollContexts) -> PendingRoll:
        """
        Expands a formula against its contexts.

        Args:
            formula (str): The formula of the roll.
            contexts (RollContexts): The contexts of the roll. Selectors are
                applied to it in place.

        Returns:
            PendingRoll: The expanded roll, waiting for a selection.

        """
        contexts.apply_selectors()
        sanitized = self.sanitize(formula, contexts)
        self.populate(sanitized, contexts)
        available = self.reference_modifiers()
        if self.options.debug:
            log_debug(
                "Available modifiers",
                {"formula": sanitized, "modifiers": [str(mod) for mod in available]},
            )
        return PendingRoll(
            formula=formula,
            sanitized_formula=sanitized,
            contexts=contexts,
            available_modifiers=available,
            roll_mods=self.roll_mods,
            dialog_config=self.dialog_config(),
            root_node=self.root_node,
        )

    def sanitize(self, formula: str, contexts: RollContexts) -> str:
        """
        Replaces every variable that resolves to nothing with a 0.

        Args:
            formula (str): The formula to check.
            contexts (RollContexts): The contexts of the roll.

        Returns:
            str: The formula, with each occurrence of an unresolvable
            variable replaced.

        """
        for variable in extract_variables(formula):
            context, remaining = get_context_for_variable(variable, contexts)
            if context is not None and context.has_value(remaining):
                continue
            log_warning(
                f"Cannot find context for variable '{variable}', "
                f"substituting with a {NEUTRAL_VALUE}.",
                {"variable": variable},
            )
            formula = replace_token(formula, variable, NEUTRAL_VALUE)
        return formula

    def populate(self, formula: str, contexts: RollContexts) -> None:
        """
        Rebuilds the node tree and the aggregated modifiers for a formula.

        Modifiers are de-duplicated by name. A calculated modifier whose name
        already appears in the formula text is left out.

        Args:
            formula (str): The sanitized formula.
            contexts (RollContexts): The contexts of the roll.

        """
        if self.options.debug:
            log_debug(
                f"Resolving '{formula}'",
                {"contexts": sorted(contexts.all_contexts)},
            )

        self.root_node = RollNode(self, formula, is_root=True)
        self.nodes = {formula: self.root_node}
        self.roll_mods = []

        self.root_node.populate(self.nodes, contexts)

        names: set[str] = set()
        for node in list(self.nodes.values()):
            reference = node.reference_modifier
            if reference is not None and reference.name not in names:
                self.roll_mods.append(reference)
                names.add(reference.name)
            for mod in node.calculated_mods:
                if mod.name not in names and mod.name not in formula:
                    self.roll_mods.append(mod)
                    names.add(mod.name)

    def reference_modifiers(self) -> list[RollMod]:
        """The aggregated modifiers some node is bound to."""
        names = {
            node.reference_modifier.name
            for node in self.nodes.values()
            if node.reference_modifier is not None
        }
        return [mod for mod in self.roll_mods if mod.name in names]

    def dialog_config(self) -> DialogConfig:
        return DialogConfig(
            buttons=self.options.buttons,
            default_button=self.options.default_button,
            title=self.options.title,
            dialog_options=self.options.dialog_options,
            parts=self.options.damage_sections,
        )

    # ---- Selection ----

    def default_selection(self, pending: PendingRoll) -> RollSelection:
        """
        The selection used when the dialog is skipped: the first button, the
        current roll mode, no bonus and every damage section.

        Every part flagged as a damage section is rolled, not only the primary
        one; the primary flag only decides whether a section is spliced into
        the root formula or stands alone.
        """
        return RollSelection(
            button=self.options.first_button,
            roll_mode=self.current_roll_mode(),
            bonus=None,
            parts=[
                part.model_copy(update={"enabled": True})
                for part in pending.dialog_config.parts
            ],
        )

    async def display_ui(
        self,
        pending: PendingRoll,
        dialog: SelectionDialog | None = None,
    ) -> RollSelection:
        """
        Asks the dialog for a selection.

        Waits at most `options.dialog_timeout` seconds when it is set; a
        dialog that does not answer in time counts as cancelled.

        Raises:
            RollTreeError: If there is no dialog to ask.

        """
        dialog = dialog or self.dialog
        if dialog is None:
            raise RollTreeError("No selection dialog available, pass one or set skip_ui.")

        request = dialog.show_selection_dialog(
            self,
            pending.sanitized_formula,
            pending.contexts,
            pending.available_modifiers,
            self.options.main_die,
            pending.dialog_config,
        )
        if self.options.dialog_timeout is None:
            return await request
        try:
            return await asyncio.wait_for(request, self.options.dialog_timeout)
        except asyncio.TimeoutError:
            log_warning(
                "Roll dialog did not answer in time, cancelling the roll.",
                {"formula": pending.formula, "timeout": self.options.dialog_timeout},
            )
            return RollSelection(button=None)

    def apply_selection(self, modifiers: list[RollMod]) -> None:
        """Copies the enabled flag of each modifier onto the nodes bound to it."""
        enabled = {mod.name: mod.enabled for mod in modifiers}
        for node in self.nodes.values():
            reference = node.reference_modifier
            if reference is not None:
                node.is_enabled = enabled.get(reference.name, reference.enabled)

    # ---- Phase two ----

    def resolve(self, pending: PendingRoll, selection: RollSelection) -> list[BuiltRoll] | None:
        """
        Builds the final formulas of a prepared roll.

        Args:
            pending (PendingRoll): The roll returned by `prepare`.
            selection (RollSelection): The user's choices.

        Returns:
            list[BuiltRoll] | None: One entry per enabled damage section, or a
            single entry when no section applies. None when the selection is
            a cancellation.

        Raises:
            RollTreeError: If `pending` was not the last roll prepared here.

        """
        if self.root_node is None or pending.root_node is not self.root_node:
            raise RollTreeError("The pending roll was not prepared by this tree.")

        if selection.cancelled:
            log_info("Roll was cancelled", {"formula": pending.formula})
            return None

        self.apply_selection(pending.available_modifiers)
        template = self.root_node.resolve(0, self.roll_mods)
        roll_mode = selection.roll_mode or self.current_roll_mode()
        bonus = normalize_bonus(selection.bonus)
        enabled_parts = selection.enabled_parts

        if not enabled_parts:
            if DAMAGE_SECTION_PLACEHOLDER in template.final_roll:
                template.replace(DAMAGE_SECTION_PLACEHOLDER, NEUTRAL_VALUE, NEUTRAL_VALUE)
            self._append_bonus(template, bonus)
            self._log_outcome(pending, template)
            return [
                BuiltRoll(
                    button=selection.button,
                    roll_mode=roll_mode,
                    result=template,
                    bonus=selection.bonus,
                )
            ]

        built: list[BuiltRoll] = []
        for index, part in enumerate(enabled_parts):
            section = template.model_copy(deep=True)
            part = part.model_copy()

            if DAMAGE_SECTION_PLACEHOLDER in section.final_roll:
                damage = part.formula or NEUTRAL_VALUE
                if part.is_primary_section:
                    section.replace(DAMAGE_SECTION_PLACEHOLDER, damage, damage)
                else:
                    # Secondary sections are rolled on their own.
                    section = RollResult(final_roll=damage, formula=damage)

            self._append_bonus(section, bonus)
            if len(enabled_parts) > 1:
                part.part_index = self.localizer.format(
                    I18N_PART_INDEX,
                    part_index=index + 1,
                    part_count=len(enabled_parts),
                )
            self._log_outcome(pending, section)
            built.append(
                BuiltRoll(
                    button=selection.button,
                    roll_mode=roll_mode,
                    result=section,
                    part=part,
                    bonus=selection.bonus,
                )
            )
        return built

    def _append_bonus(self, result: RollResult, bonus: str | None) -> None:
        if not bonus:
            return
        result.append(" " + bonus, self.localizer.format(I18N_ADDITIONAL_BONUS, bonus=bonus))

    def _log_outcome(self, pending: PendingRoll, result: RollResult) -> None:
        if self.options.debug:
            log_debug(
                "Final roll results outcome",
                {
                    "formula": pending.formula,
                    "modifiers": [str(mod) for mod in pending.available_modifiers],
                    "final_roll": result.final_roll,
                    "display": result.formula,
                },
            )

    # ---- Full flow ----

    async def build_roll(
        self,
        formula: str,
        contexts: RollContexts,
        callback: RollCallback | None = None,
        dialog: SelectionDialog | None = None,
    ) -> bool:
        """
        Builds the data needed for a roll and hands it to `callback`.

        Args:
            formula (str): The formula of the roll.
            contexts (RollContexts): The contexts of the roll.
            callback (RollCallback | None): Called once per built section, or
                once with ("cancel", "none", None) when the user cancels.
            dialog (SelectionDialog | None): Overrides the tree's dialog.

        Returns:
            bool: True if the roll was built, False if it was cancelled.

        """
        pending = self.prepare(formula, contexts)

        if self.options.skip_ui:
            selection = self.default_selection(pending)
        else:
            selection = await self.display_ui(pending, dialog)

        built = self.resolve(pending, selection)
        if built is None:
            await _notify(callback, CANCEL_BUTTON, CANCEL_ROLL_MODE, None)
            return False

        for roll in built:
            await _notify(
                callback,
                roll.button,
                roll.roll_mode,
                roll.result,
                roll.part,
                self.root_node,
                self.roll_mods,
                roll.bonus,
            )
        return True


async def _notify(callback: RollCallback | None, *args: Any) -> None:
    if callback is None:
        return
    outcome = callback(*args)
    if inspect.isawaitable(outcome):
        await outcome
