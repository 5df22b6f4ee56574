"""
Roll contexts and the variable context resolver.

A context is a named scope of data that '@' variables resolve against (an
actor's abilities, the item being used, a target creature, ...). Contexts can
be nested inside each other, and selectors can alias one context name to
another.
"""

from typing import Any

from pydantic import BaseModel, Field

from core.constants import CALCULATED_MODS_KEY, ROLLED_MODS_KEY

# Returned by path lookups that do not reach a value.
MISSING = object()


class RollMod(BaseModel):
    """A named, independently toggleable contribution to a roll."""

    name: str = Field(description="Display name, also the identity used for de-duplication")
    modifier: str = Field(
        default="0",
        description="The contribution as formula text (e.g. '2' or '1d4')",
    )
    enabled: bool = Field(default=True, description="Whether the modifier applies")

    def model_post_init(self, _: Any) -> None:
        """Validates fields after model initialization."""
        if not self.name or not self.name.strip():
            raise ValueError("name must be a non-empty string")
        self.modifier = str(self.modifier).strip() or "0"

    @classmethod
    def from_data(cls, data: Any) -> "RollMod":
        """
        Builds a modifier from a raw mapping, accepting the camelCase keys
        found in sheet data.

        Args:
            data (Any): A RollMod or a mapping.

        Returns:
            RollMod: The parsed modifier.

        """
        if isinstance(data, RollMod):
            return data
        data = dict(data)
        if isinstance(data.get("modifier"), (int, float)):
            data["modifier"] = str(data["modifier"])
        return cls.model_validate(data)

    def __str__(self) -> str:
        state = "on" if self.enabled else "off"
        return f"{self.name} ({self.modifier}, {state})"


def _parse_modifiers(data: Any) -> Any:
    """Recursively turns every modifier list found in `data` into RollMods."""
    if not isinstance(data, dict):
        return data
    parsed: dict[str, Any] = {}
    for key, value in data.items():
        if key in (ROLLED_MODS_KEY, CALCULATED_MODS_KEY) and isinstance(value, list):
            parsed[key] = [RollMod.from_data(entry) for entry in value]
        else:
            parsed[key] = _parse_modifiers(value)
    return parsed


class RollContext(BaseModel):
    """A named scope of data variables resolve against."""

    name: str = Field(default="", description="The context name")
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Nested mapping of values, sub-formulas and nested contexts",
    )

    def model_post_init(self, _: Any) -> None:
        """Parses modifier lists once so lookups share the same instances."""
        self.data = _parse_modifiers(self.data)

    def get_value(self, path: str) -> Any:
        """
        Walks a dot separated path through the context data.

        Args:
            path (str): The path, e.g. 'abilities.str.mod'. An empty path
                denotes the whole data mapping.

        Returns:
            Any: The value found, or MISSING. A mapping carrying a 'value'
            key resolves to that entry.

        """
        current = self._raw_lookup(path) if path else self.data
        if isinstance(current, dict) and "value" in current:
            return current["value"]
        return current

    def has_value(self, path: str) -> bool:
        return self.get_value(path) is not MISSING

    def get_modifiers(self, path: str, kind: str) -> list[RollMod]:
        """
        Returns the modifiers of one kind attached to a value.

        Modifiers are looked up next to the value first ('<path>.<kind>') and
        then on its owner ('<parent>.<kind>').

        Args:
            path (str): The path of the value.
            kind (str): Either 'rolledMods' or 'calculatedMods'.

        Returns:
            list[RollMod]: The modifiers, empty when there are none.

        """
        candidates = [f"{path}.{kind}" if path else kind]
        if "." in path:
            candidates.append(f"{path.rsplit('.', 1)[0]}.{kind}")
        for candidate in candidates:
            found = self._raw_lookup(candidate)
            if isinstance(found, list):
                return [mod for mod in found if isinstance(mod, RollMod)]
        return []

    def _raw_lookup(self, path: str) -> Any:
        """Walks a non-empty path without unwrapping 'value' keys."""
        current: Any = self.data
        for segment in path.split("."):
            if isinstance(current, RollContext):
                current = current.data
            if not isinstance(current, dict) or segment not in current:
                return MISSING
            current = current[segment]
        return current


class Selector(BaseModel):
    """Aliases a context name to one of several candidate contexts."""

    target: str = Field(description="Context name being aliased")
    options: list[str] = Field(
        default_factory=list,
        description="Candidate source contexts, only the first one is used",
    )


class RollContexts(BaseModel):
    """Every context available to a roll."""

    all_contexts: dict[str, RollContext] = Field(
        default_factory=dict,
        description="Contexts by name",
    )
    main_context: str | None = Field(
        default=None,
        description="Context used when a variable does not name one",
    )
    selectors: list[Selector] = Field(
        default_factory=list,
        description="Context aliases applied before the roll is built",
    )

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> "RollContexts":
        """
        Builds contexts from plain JSON-like data.

        Args:
            data (dict[str, Any]): A mapping with 'contexts' (name to data),
                and optional 'main' and 'selectors' entries.

        Returns:
            RollContexts: The parsed contexts.

        """
        all_contexts = {
            name: RollContext(name=name, data=context_data)
            for name, context_data in data.get("contexts", {}).items()
        }
        return cls(
            all_contexts=all_contexts,
            main_context=data.get("main"),
            selectors=[Selector.model_validate(s) for s in data.get("selectors", [])],
        )

    def apply_selectors(self) -> None:
        """
        Points every selector target at the first of its options.

        Selectors with an empty target, no options, or an unknown source are
        skipped.

        """
        for selector in self.selectors:
            first_value = selector.options[0] if selector.options else None
            if not selector.target or not first_value:
                continue
            source = self.all_contexts.get(first_value)
            if source is None:
                continue
            self.all_contexts[selector.target] = source


def get_context_for_variable(
    variable: str,
    contexts: RollContexts,
) -> tuple[RollContext | None, str]:
    """
    Finds the context a variable refers to.

    Args:
        variable (str): The variable, with or without its leading '@'.
        contexts (RollContexts): The contexts of the roll.

    Returns:
        tuple[RollContext | None, str]: The deepest context reached and the
        remaining path inside it. The context is None when neither the first
        segment nor the main context names an existing context.

    """
    if variable.startswith("@"):
        variable = variable[1:]
    segments = variable.split(".")

    context = contexts.all_contexts.get(segments[0])
    if context is not None:
        remaining = segments[1:]
    elif contexts.main_context and contexts.main_context in contexts.all_contexts:
        context = contexts.all_contexts[contexts.main_context]
        remaining = segments
    else:
        return None, variable

    # Descend into nested contexts.
    while remaining:
        nested = context.data.get(remaining[0])
        if not isinstance(nested, RollContext):
            break
        context = nested
        remaining = remaining[1:]

    return context, ".".join(remaining)

