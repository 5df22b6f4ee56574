"""
Roll building module for the roll engine.

This module resolves symbolic roll formulas: it looks variables up in the
roll contexts, expands the formula into a tree of nodes, gathers the
modifiers involved, lets a dialog pick which of them apply, and produces the
final formula of every damage section.
"""

from .context import (
    RollContext,
    RollContexts,
    RollMod,
    Selector,
    get_context_for_variable,
)
from .dialog import (
    CancellingDialog,
    SelectionDialog,
    StaticSelectionDialog,
)
from .models import (
    BuiltRoll,
    DamagePart,
    DialogButton,
    DialogConfig,
    PendingRoll,
    RollResult,
    RollSelection,
    RollTreeOptions,
)
from .roll_node import RollNode, lookup_variable
from .roll_tree import RollTree, RollTreeError

__all__ = [
    # Import from context.py
    "RollContext",
    "RollContexts",
    "RollMod",
    "Selector",
    "get_context_for_variable",
    # Import from dialog.py
    "CancellingDialog",
    "SelectionDialog",
    "StaticSelectionDialog",
    # Import from models.py
    "BuiltRoll",
    "DamagePart",
    "DialogButton",
    "DialogConfig",
    "PendingRoll",
    "RollResult",
    "RollSelection",
    "RollTreeOptions",
    # Import from roll_node.py
    "RollNode",
    "lookup_variable",
    # Import from roll_tree.py
    "RollTree",
    "RollTreeError",
]
