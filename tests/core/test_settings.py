"""
Tests for the settings and localization services.
"""

from core.constants import I18N_ADDITIONAL_BONUS, I18N_PART_INDEX, RollMode
from core.settings import DefaultLocalizer, MemorySettings


def test_memory_settings_defaults():
    """Test that the roll mode defaults to a public roll."""
    settings = MemorySettings()

    assert settings.get("core", "rollMode") == RollMode.PUBLIC.value
    assert settings.get("core", "unknown") is None


def test_memory_settings_overrides():
    """Test seeding and updating settings."""
    settings = MemorySettings({"core.rollMode": "blindroll"})
    assert settings.get("core", "rollMode") == "blindroll"

    settings.set("core", "rollMode", RollMode.SELF.value)
    assert settings.get("core", "rollMode") == "selfroll"


def test_localizer_formats_templates():
    """Test the English templates."""
    localizer = DefaultLocalizer()

    assert localizer.format(I18N_PART_INDEX, part_index=2, part_count=3) == "Part 2 of 3"
    assert localizer.format(I18N_ADDITIONAL_BONUS, bonus="+4") == " +4[Additional Bonus]"


def test_localizer_unknown_key():
    """Test that unknown keys come back untouched."""
    assert DefaultLocalizer().format("Some.Missing.Key", value=1) == "Some.Missing.Key"


def test_localizer_custom_templates():
    """Test replacing a template."""
    localizer = DefaultLocalizer({I18N_PART_INDEX: "Partie {part_index}/{part_count}"})

    assert localizer.format(I18N_PART_INDEX, part_index=1, part_count=2) == "Partie 1/2"


def test_roll_mode_strings():
    """Test the roll mode string forms."""
    assert str(RollMode.GM) == "gmroll"
    assert RollMode.BLIND.display_name == "Blind"
    assert RollMode.PUBLIC.colorize("x") == "[bold green]x[/]"
