"""
Roll node module.

A roll node is one piece of the expansion tree built for a roll: the root
formula, a variable referenced by a formula, or a modifier attached to a
variable. Nodes are expanded top-down by `populate` and flattened back into
formula text bottom-up by `resolve`.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from catchery import log_debug, log_warning

from core.constants import (
    CALCULATED_MODS_KEY,
    MAX_RESOLVE_DEPTH,
    NEUTRAL_VALUE,
    ROLLED_MODS_KEY,
    VARIABLE_PATTERN,
)
from core.utils import extract_variables, has_variables, substitute_tokens
from rolls.context import (
    MISSING,
    RollContext,
    RollContexts,
    RollMod,
    get_context_for_variable,
)
from rolls.models import RollResult

if TYPE_CHECKING:
    from rolls.roll_tree import RollTree


@dataclass
class VariableLookup:
    """Everything a context knows about one variable."""

    variable: str
    context: RollContext | None = None
    path: str = ""
    value: Any = MISSING
    rolled_mods: list[RollMod] = field(default_factory=list)
    calculated_mods: list[RollMod] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.context is not None and self.value is not MISSING


def lookup_variable(variable: str, contexts: RollContexts) -> VariableLookup:
    """
    Resolves a variable against the contexts of a roll.

    Args:
        variable (str): The variable, with or without its leading '@'.
        contexts (RollContexts): The contexts of the roll.

    Returns:
        VariableLookup: The context, path, value and modifiers found.

    """
    context, path = get_context_for_variable(variable, contexts)
    lookup = VariableLookup(variable=variable.lstrip("@"), context=context, path=path)
    if context is None:
        return lookup
    lookup.value = context.get_value(path)
    lookup.rolled_mods = context.get_modifiers(path, ROLLED_MODS_KEY)
    lookup.calculated_mods = context.get_modifiers(path, CALCULATED_MODS_KEY)
    return lookup


def format_value(value: Any) -> str:
    """Renders a context value as formula text."""
    if value is None or value is MISSING:
        return NEUTRAL_VALUE
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or NEUTRAL_VALUE
    log_warning(
        f"Value of type '{type(value).__name__}' cannot be used in a formula, "
        f"substituting with a {NEUTRAL_VALUE}.",
        {"value": repr(value)},
    )
    return NEUTRAL_VALUE


class RollNode:
    """A node of the roll expansion tree."""

    def __init__(
        self,
        tree: RollTree | None,
        formula: str,
        base_value: Any = None,
        reference_modifier: RollMod | None = None,
        is_variable: bool = False,
        is_root: bool = False,
        parent: RollNode | None = None,
        lookup: VariableLookup | None = None,
    ) -> None:
        self.tree = tree
        self.formula = formula
        self.base_value = base_value
        self.reference_modifier = reference_modifier
        self.is_variable = is_variable
        self.is_root = is_root
        self.is_enabled = True
        self.lookup = lookup
        self.node_context: RollContext | None = lookup.context if lookup else None
        # Variable children, keyed by the variable they were expanded from.
        self.child_nodes: dict[str, RollNode] = {}
        # Modifier children, in the order the context lists them.
        self.modifier_nodes: list[RollNode] = []
        # Scalars substituted without a node of their own.
        self.inline_values: dict[str, str] = {}
        self.calculated_mods: list[RollMod] = []
        self._parent = weakref.ref(parent) if parent is not None else None
        self._resolving = False

    @property
    def parent_node(self) -> RollNode | None:
        return self._parent() if self._parent is not None else None

    @property
    def debug(self) -> bool:
        return bool(self.tree is not None and self.tree.options.debug)

    @staticmethod
    def get_context_for_variable(
        variable: str,
        contexts: RollContexts,
    ) -> tuple[RollContext | None, str]:
        return get_context_for_variable(variable, contexts)

    # ---- Population ----

    def populate(self, nodes: dict[str, RollNode], contexts: RollContexts) -> None:
        """
        Expands the node, registering every node it creates in `nodes`.

        Variables holding plain scalars are substituted inline. Variables
        holding sub-formulas or carrying rolled modifiers become variable
        children, and every rolled modifier becomes a child bound to that
        modifier. Children are populated recursively. Calculated modifiers met
        along the way are collected in `calculated_mods`.

        Args:
            nodes (dict[str, RollNode]): The tree-wide registry, keyed by the
                formula fragment each node was expanded from.
            contexts (RollContexts): The contexts of the roll.

        """
        if self.debug:
            log_debug(f"Populating '{self.formula}'", {"variable": self.is_variable})

        if not self.is_variable:
            self._populate_formula(self.formula, nodes, contexts)
            return

        lookup = self.lookup or lookup_variable(self.formula, contexts)
        self.lookup = lookup
        self.node_context = lookup.context
        self.calculated_mods.extend(lookup.calculated_mods)

        for mod in lookup.rolled_mods:
            child = RollNode(
                self.tree,
                mod.modifier,
                reference_modifier=mod,
                parent=self,
            )
            # Keyed by the modifier formula: identical formulas overwrite.
            nodes[mod.modifier] = child
            self.modifier_nodes.append(child)
            child.populate(nodes, contexts)

        if has_variables(self.base_value):
            self._populate_formula(self.base_value, nodes, contexts)

    def _populate_formula(
        self,
        formula: str,
        nodes: dict[str, RollNode],
        contexts: RollContexts,
    ) -> None:
        for token in sorted(extract_variables(formula)):
            variable = token[1:]
            if variable in self.child_nodes or variable in self.inline_values:
                continue

            existing = nodes.get(variable)
            if existing is not None and existing.is_variable:
                self.child_nodes[variable] = existing
                continue

            lookup = lookup_variable(variable, contexts)
            if not lookup.found:
                log_warning(
                    f"Cannot find context for variable '{token}', "
                    f"substituting with a {NEUTRAL_VALUE}.",
                    {"variable": token, "formula": formula},
                )
                self.inline_values[variable] = NEUTRAL_VALUE
                continue

            if not lookup.rolled_mods and not has_variables(lookup.value):
                self.inline_values[variable] = format_value(lookup.value)
                self.calculated_mods.extend(lookup.calculated_mods)
                continue

            child = RollNode(
                self.tree,
                variable,
                base_value=lookup.value,
                is_variable=True,
                parent=self,
                lookup=lookup,
            )
            nodes[variable] = child
            self.child_nodes[variable] = child
            child.populate(nodes, contexts)

    # ---- Resolution ----

    def is_active(self, roll_mods: list[RollMod] | None = None) -> bool:
        """
        Tells whether the node contributes to the roll.

        A node bound to a modifier is inactive when it was disabled, or when
        `roll_mods` holds a disabled modifier of the same name.

        """
        if not self.is_enabled:
            return False
        if self.reference_modifier is not None and roll_mods:
            for mod in roll_mods:
                if mod.name == self.reference_modifier.name:
                    return mod.enabled
        return True

    def resolve(
        self,
        depth: int = 0,
        roll_mods: list[RollMod] | None = None,
        contributed: set[str] | None = None,
    ) -> RollResult:
        """
        Flattens the node and its children into formula text.

        A compound child substituted next to a tighter-binding operator is
        wrapped in parentheses. A modifier reached through several variables
        contributes only the first time its name is met.

        Args:
            depth (int): Distance from the root, used to stop runaway recursion.
            roll_mods (list[RollMod] | None): The aggregated modifiers of the
                roll, consulted for the enabled state of modifier nodes.
            contributed (set[str] | None): Names of the modifiers already added
                during this resolution. Shared with every child.

        Returns:
            RollResult: `final_roll` holds the evaluable formula, `formula`
            the same formula with modifiers labelled for display. Inactive
            nodes resolve to '0'.

        """
        if contributed is None:
            contributed = set()
        if not self.is_active(roll_mods):
            return RollResult(final_roll=NEUTRAL_VALUE, formula=NEUTRAL_VALUE)
        if depth > MAX_RESOLVE_DEPTH or self._resolving:
            log_warning(
                f"Formula '{self.formula}' references itself, "
                f"substituting with a {NEUTRAL_VALUE}.",
                {"formula": self.formula, "depth": depth},
            )
            return RollResult(final_roll=NEUTRAL_VALUE, formula=NEUTRAL_VALUE)

        self._resolving = True
        try:
            if self.is_variable:
                result = self._resolve_variable(depth, roll_mods, contributed)
            else:
                result = self._resolve_formula(self.formula, depth, roll_mods, contributed)
        finally:
            self._resolving = False

        if self.reference_modifier is not None:
            result.formula = f"{result.formula}[{self.reference_modifier.name}]"
        return result

    def _resolve_variable(
        self,
        depth: int,
        roll_mods: list[RollMod] | None,
        contributed: set[str],
    ) -> RollResult:
        if has_variables(self.base_value):
            result = self._resolve_formula(self.base_value, depth, roll_mods, contributed)
        else:
            text = format_value(self.base_value)
            result = RollResult(final_roll=text, formula=text)

        for mod_node in self.modifier_nodes:
            name = mod_node.reference_modifier.name
            if name in contributed or not mod_node.is_active(roll_mods):
                continue
            contributed.add(name)
            contribution = mod_node.resolve(depth + 1, roll_mods, contributed)
            result.append(f" + {contribution.final_roll}", f" + {contribution.formula}")
        return result

    def _resolve_formula(
        self,
        formula: str,
        depth: int,
        roll_mods: list[RollMod] | None,
        contributed: set[str],
    ) -> RollResult:
        values: dict[str, RollResult] = {
            variable: RollResult(final_roll=value, formula=value)
            for variable, value in self.inline_values.items()
        }
        # Children resolve in the order they appear, so the first occurrence
        # of a shared modifier is the one that contributes.
        for match in VARIABLE_PATTERN.finditer(formula):
            variable = match.group(1)
            child = self.child_nodes.get(variable)
            if child is not None and variable not in values:
                values[variable] = child.resolve(depth + 1, roll_mods, contributed)

        def final_roll(variable: str) -> str:
            return values[variable].final_roll if variable in values else NEUTRAL_VALUE

        def display(variable: str) -> str:
            return values[variable].formula if variable in values else NEUTRAL_VALUE

        return RollResult(
            final_roll=substitute_tokens(formula, final_roll, group=True),
            formula=substitute_tokens(formula, display, group=True),
        )

    def __repr__(self) -> str:
        kind = "root" if self.is_root else "variable" if self.is_variable else "formula"
        if self.reference_modifier is not None:
            kind = f"modifier:{self.reference_modifier.name}"
        return f"RollNode({kind}, {self.formula!r})"
