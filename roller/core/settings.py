"""
Settings and localization services.

The roll tree never reads host state on its own: whatever it needs to know
about persisted settings or translated strings is asked of the services
handed to it at construction.
"""

from typing import Any, Protocol

from core.constants import I18N_ADDITIONAL_BONUS, I18N_PART_INDEX, RollMode


class SettingsStore(Protocol):
    """Read access to persisted settings."""

    def get(self, namespace: str, key: str) -> Any:
        """Returns the value stored under `namespace.key`."""
        ...


class Localizer(Protocol):
    """Formats translated strings."""

    def format(self, key: str, **data: Any) -> str:
        """Returns the template for `key` with `data` interpolated."""
        ...


class MemorySettings:
    """Dictionary backed settings store."""

    DEFAULTS: dict[str, Any] = {
        "core.rollMode": RollMode.PUBLIC.value,
    }

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self.values: dict[str, Any] = dict(self.DEFAULTS)
        self.values.update(values or {})

    def get(self, namespace: str, key: str) -> Any:
        return self.values.get(f"{namespace}.{key}")

    def set(self, namespace: str, key: str, value: Any) -> None:
        self.values[f"{namespace}.{key}"] = value


class DefaultLocalizer:
    """English templates for the strings the roll engine emits."""

    TEMPLATES: dict[str, str] = {
        I18N_ADDITIONAL_BONUS: " {bonus}[Additional Bonus]",
        I18N_PART_INDEX: "Part {part_index} of {part_count}",
    }

    def __init__(self, templates: dict[str, str] | None = None) -> None:
        self.templates: dict[str, str] = dict(self.TEMPLATES)
        self.templates.update(templates or {})

    def format(self, key: str, **data: Any) -> str:
        """
        Formats the template registered for a key.

        Args:
            key (str): The localization key.
            **data: Values interpolated into the template.

        Returns:
            str: The formatted string, or the key itself when it is unknown.

        """
        template = self.templates.get(key)
        if template is None:
            return key
        return template.format(**data)
