"""
Utilities module for the roll engine.

Provides console printing with rich formatting and the small string helpers
shared by the roll node and the roll tree.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from rich.console import Console
from rich.rule import Rule

from core.constants import BONUS_OPERATORS, VARIABLE_PATTERN

# Initialize the rich console.
_console = Console(markup=True, width=120, force_jupyter=False)


def cprint(*args: Any, **kwargs: Any) -> None:
    """
    Custom print function to handle colored output.

    Args:
        *args: Arguments to pass to the console print function.
        **kwargs: Keyword arguments to pass to the console print function.

    """
    _console.print(*args, **kwargs)


def crule(*args: Any, **kwargs: Any) -> None:
    """
    Custom print function to handle colored output with a rule.

    Args:
        *args: Arguments to pass to the Rule constructor.
        **kwargs: Keyword arguments to pass to the Rule constructor.

    """
    _console.print(Rule(*args, **kwargs))


# ---- Formula Helpers ----


def extract_variables(formula: str) -> set[str]:
    """
    Extracts the unique variable tokens (with their '@') from a formula.

    Args:
        formula (str): The formula to scan.

    Returns:
        set[str]: The distinct tokens, e.g. {'@abilities.str.mod'}.

    """
    if not formula:
        return set()
    return {match.group(0) for match in VARIABLE_PATTERN.finditer(formula)}


def has_variables(formula: Any) -> bool:
    """Tells whether a value is a string holding at least one variable token."""
    return isinstance(formula, str) and VARIABLE_PATTERN.search(formula) is not None


def is_compound(formula: str) -> bool:
    """
    Tells whether a formula holds an operator outside any grouping.

    Parentheses and '[label]' flavour text count as groupings, and a leading
    sign is not an operator: '3 + 1d4' is compound, '-2' and '(1 + 2)' are not.

    """
    depth = 0
    for index, char in enumerate(formula.strip()):
        if char in "([":
            depth += 1
        elif char in ")]":
            depth -= 1
        elif depth == 0 and index > 0 and char in BONUS_OPERATORS:
            return True
    return False


def _needs_grouping(text: str, before: str, after: str) -> bool:
    previous = before.rstrip()[-1:]
    following = after.lstrip()[:1]
    return is_compound(text) and (previous in ("-", "*", "/") or following in ("*", "/"))


def substitute_tokens(
    formula: str,
    replace: Callable[[str], str],
    group: bool = False,
) -> str:
    """
    Replaces every variable token in a single pass.

    Matching is done on whole tokens, so '@a.b' never rewrites the prefix of
    '@a.bc'.

    Args:
        formula (str): The formula to rewrite.
        replace (Callable[[str], str]): Maps a variable name (without '@') to
            its replacement text.
        group (bool): Wraps a compound replacement in parentheses when the
            surrounding operators bind tighter than its own, so '2 * @x'
            with '@x' = '1 + 2' becomes '2 * (1 + 2)'.

    Returns:
        str: The rewritten formula.

    """

    def _replace(match: re.Match[str]) -> str:
        text = replace(match.group(1))
        if group and _needs_grouping(text, formula[: match.start()], formula[match.end() :]):
            return f"({text})"
        return text

    return VARIABLE_PATTERN.sub(_replace, formula)


def replace_token(formula: str, token: str, value: str) -> str:
    """Replaces every occurrence of one exact token."""
    return re.sub(re.escape(token) + r"(?![a-zA-Z.0-9_\-])", value, formula)


def normalize_bonus(bonus: str | None) -> str | None:
    """
    Prefixes a flat bonus with '+' unless it already starts with an operator.

    Args:
        bonus (str | None): The bonus typed by the user.

    Returns:
        str | None: The bonus ready to be appended, or None when empty.

    """
    if bonus is None:
        return None
    bonus = str(bonus).strip()
    if not bonus:
        return None
    if not bonus.startswith(BONUS_OPERATORS):
        bonus = "+" + bonus
    return bonus
