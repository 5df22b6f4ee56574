"""
Command line entry point for the roll engine.

Loads roll contexts from a JSON file, builds a roll formula against them and
prints the final formula of every damage section. The formula is never
evaluated: the output is meant for a dice evaluator.

The contexts file looks like:

    {
        "main": "actor",
        "contexts": {"actor": {"abilities": {"str": {"mod": 3}}}},
        "selectors": [{"target": "ability", "options": ["actor"]}]
    }
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.markup import escape
from rich.table import Table

from core.constants import RollMode
from core.logging import get_logger, setup_logging
from core.utils import cprint, crule
from rolls.context import RollContexts, RollMod
from rolls.dialog import StaticSelectionDialog
from rolls.models import DamagePart, RollResult, RollTreeOptions
from rolls.roll_tree import RollTree

logger = get_logger(__name__)


def _load_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the final formula of a roll.")
    parser.add_argument("formula", help="The roll formula, e.g. '1d20 + @abilities.str.mod'")
    parser.add_argument("--contexts", type=Path, required=True, help="JSON file with the contexts")
    parser.add_argument("--main", help="Overrides the main context name")
    parser.add_argument("--parts", type=Path, help="JSON file with the damage parts")
    parser.add_argument("--bonus", help="Flat bonus appended to the roll")
    parser.add_argument(
        "--roll-mode",
        choices=[mode.value for mode in RollMode],
        help="Who gets to see the roll",
    )
    parser.add_argument(
        "--disable",
        action="append",
        default=[],
        metavar="NAME",
        help="Disables the modifier with this name (repeatable)",
    )
    parser.add_argument("--debug", action="store_true", help="Log every step")
    return parser.parse_args(argv)


def build_table(rows: list[tuple[str, RollResult]]) -> Table:
    table = Table(title="Built roll")
    table.add_column("Section", style="bold")
    table.add_column("Roll", style="green")
    table.add_column("Formula", style="blue")
    for label, result in rows:
        table.add_row(escape(label), escape(result.final_roll), escape(result.formula))
    return table


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.debug else logging.WARNING)

    contexts = RollContexts.from_data(_load_json(args.contexts))
    if args.main:
        contexts.main_context = args.main
    parts = [DamagePart.model_validate(p) for p in _load_json(args.parts)] if args.parts else []
    logger.debug("Loaded %d contexts and %d parts", len(contexts.all_contexts), len(parts))

    tree = RollTree(RollTreeOptions(debug=args.debug, parts=parts))
    dialog = StaticSelectionDialog(
        roll_mode=args.roll_mode,
        bonus=args.bonus,
        disabled_modifiers=set(args.disable),
    )

    rows: list[tuple[str, RollResult]] = []
    modifiers: list[RollMod] = []
    modes: list[str] = []

    def on_roll_built(button, roll_mode, result, part=None, root_node=None, roll_mods=None, bonus=None):
        if result is None:
            return
        label = (part.part_index or part.name) if part is not None else "roll"
        rows.append((label or "roll", result))
        modifiers[:] = roll_mods or []
        modes[:] = [roll_mode]

    built = asyncio.run(tree.build_roll(args.formula, contexts, on_roll_built, dialog))
    if not built:
        cprint("[yellow]Roll cancelled.[/]")
        return 1

    crule(escape(args.formula), style="bold green")
    cprint(build_table(rows))
    mode = RollMode(modes[0])
    cprint(f"Roll mode: {mode.colorize(mode.display_name)}")
    for mod in modifiers:
        style = "green" if mod.enabled else "dim white"
        cprint(f"  [{style}]{escape(mod.name)}[/] {escape(mod.modifier)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
