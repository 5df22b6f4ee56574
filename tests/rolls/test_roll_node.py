"""
Tests for the expansion and flattening of roll nodes.
"""

import pytest
from rolls.context import RollContext, RollContexts, RollMod
from rolls.roll_node import RollNode, format_value, lookup_variable


def make_contexts(data):
    return RollContexts(
        all_contexts={"actor": RollContext(name="actor", data=data)},
        main_context="actor",
    )


@pytest.fixture
def contexts():
    return make_contexts(
        {
            "abilities": {
                "str": {
                    "mod": 3,
                    "rolledMods": [{"name": "Bless", "modifier": "1d4"}],
                },
                "dex": {
                    "mod": 2,
                    "calculatedMods": [{"name": "Cat's Grace", "modifier": "1"}],
                },
            },
            "proficiency": 2,
            "attack": "@abilities.dex.mod + @proficiency",
            "broken": "@nothing.here + 1",
            "loop": "1 + @loop",
            "a": {"b": 1, "bc": 5},
        }
    )


def build(formula, contexts):
    root = RollNode(None, formula, is_root=True)
    nodes = {formula: root}
    root.populate(nodes, contexts)
    return root, nodes


def test_scalar_is_substituted_inline(contexts):
    """Test that a plain scalar creates no child node."""
    root, nodes = build("1d20 + @abilities.dex.mod", contexts)

    assert root.child_nodes == {}
    assert list(nodes) == ["1d20 + @abilities.dex.mod"]
    assert root.inline_values == {"abilities.dex.mod": "2"}

    result = root.resolve()
    assert result.final_roll == "1d20 + 2"
    assert result.formula == "1d20 + 2"


def test_calculated_mods_are_tracked(contexts):
    """Test that calculated modifiers met while scanning are recorded."""
    root, _ = build("1d20 + @abilities.dex.mod", contexts)

    assert [mod.name for mod in root.calculated_mods] == ["Cat's Grace"]


def test_rolled_modifier_becomes_child(contexts):
    """Test that a rolled modifier is expanded into a bound child node."""
    root, nodes = build("1d20 + @abilities.str.mod", contexts)

    variable_node = nodes["abilities.str.mod"]
    modifier_node = nodes["1d4"]
    assert variable_node.is_variable
    assert root.child_nodes["abilities.str.mod"] is variable_node
    assert modifier_node.reference_modifier.name == "Bless"
    assert variable_node.modifier_nodes == [modifier_node]
    assert modifier_node.parent_node is variable_node
    assert variable_node.parent_node is root


def test_enabled_modifier_is_added(contexts):
    """Test the machine and display formulas of an enabled modifier."""
    root, _ = build("1d20 + @abilities.str.mod", contexts)

    result = root.resolve()

    assert result.final_roll == "1d20 + 3 + 1d4"
    assert result.formula == "1d20 + 3 + 1d4[Bless]"


def test_disabled_modifier_contributes_nothing(contexts):
    """Test that a disabled node is left out of both formulas."""
    root, nodes = build("1d20 + @abilities.str.mod", contexts)
    nodes["1d4"].is_enabled = False

    result = root.resolve()

    assert result.final_roll == "1d20 + 3"
    assert result.formula == "1d20 + 3"
    assert nodes["1d4"].resolve().final_roll == "0"


def test_roll_mods_can_disable_by_name(contexts):
    """Test that a disabled modifier of the same name disables the node."""
    root, _ = build("1d20 + @abilities.str.mod", contexts)
    roll_mods = [RollMod(name="Bless", modifier="1d4", enabled=False)]

    result = root.resolve(0, roll_mods)

    assert result.final_roll == "1d20 + 3"


def test_sub_formula_is_expanded(contexts):
    """Test that a variable holding a formula is expanded recursively."""
    root, nodes = build("1d20 + @attack", contexts)

    attack = nodes["attack"]
    assert attack.is_variable
    assert attack.inline_values == {"abilities.dex.mod": "2", "proficiency": "2"}
    assert root.resolve().final_roll == "1d20 + 2 + 2"


def test_unresolvable_nested_variable(contexts, mocker):
    """Test that a bad variable inside a sub-formula becomes 0."""
    mock_warning = mocker.patch("rolls.roll_node.log_warning")

    root, _ = build("@broken", contexts)

    assert root.resolve().final_roll == "0 + 1"
    mock_warning.assert_called_once()


def test_self_reference_is_cut(contexts, mocker):
    """Test that a formula referencing itself stops instead of looping."""
    mock_warning = mocker.patch("rolls.roll_node.log_warning")

    root, nodes = build("@loop", contexts)

    assert nodes["loop"].child_nodes["loop"] is nodes["loop"]
    assert root.resolve().final_roll == "1 + 0"
    mock_warning.assert_called_once()


def test_token_prefixes_are_not_clobbered(contexts):
    """Test that '@a.b' does not rewrite the start of '@a.bc'."""
    root, _ = build("@a.b + @a.bc", contexts)

    assert root.resolve().final_roll == "1 + 5"


def test_variable_nodes_are_reused(contexts):
    """Test that a variable referenced twice is expanded once."""
    root, nodes = build("@abilities.str.mod + @abilities.str.mod", contexts)

    assert list(root.child_nodes) == ["abilities.str.mod"]
    assert len(nodes["abilities.str.mod"].modifier_nodes) == 1
    # Bless contributes once, on the first occurrence.
    assert root.resolve().final_roll == "3 + 1d4 + 3"


def test_identical_modifier_formulas_collide():
    """Test that the registry keeps the last node for a repeated fragment."""
    contexts = make_contexts(
        {
            "abilities": {
                "str": {"mod": 3, "rolledMods": [{"name": "Bless", "modifier": "1d4"}]},
                "dex": {"mod": 2, "rolledMods": [{"name": "Guidance", "modifier": "1d4"}]},
            }
        }
    )

    root, nodes = build("@abilities.str.mod + @abilities.dex.mod", contexts)

    # Tokens are expanded in sorted order, so 'str' registers last.
    assert nodes["1d4"].reference_modifier.name == "Bless"
    assert root.resolve().formula == "3 + 1d4[Bless] + 2 + 1d4[Guidance]"


def test_sub_formula_is_grouped_in_a_product(contexts):
    """Test that a multi-term sub-formula keeps its value when multiplied."""
    root, _ = build("2 * @attack", contexts)

    result = root.resolve()

    assert result.final_roll == "2 * (2 + 2)"
    assert result.formula == "2 * (2 + 2)"


def test_modifier_is_grouped_in_a_product(contexts):
    """Test that a variable plus its modifiers is multiplied as a whole."""
    root, _ = build("2 * @abilities.str.mod", contexts)

    result = root.resolve()

    assert result.final_roll == "2 * (3 + 1d4)"
    assert result.formula == "2 * (3 + 1d4[Bless])"


def test_modifier_is_grouped_in_a_division(contexts):
    """Test that a variable plus its modifiers is divided as a whole."""
    root, _ = build("@abilities.str.mod / 2 + 1", contexts)

    assert root.resolve().final_roll == "(3 + 1d4) / 2 + 1"


def test_sums_are_left_ungrouped(contexts):
    """Test that additive formulas gain no parentheses."""
    root, _ = build("1d20 + @attack + @abilities.str.mod", contexts)

    assert root.resolve().final_roll == "1d20 + 2 + 2 + 3 + 1d4"


def test_shared_modifier_contributes_once():
    """Test that a modifier reached from two variables is added once."""
    contexts = make_contexts(
        {
            "str": {"mod": 3, "rolledMods": [{"name": "Bless", "modifier": "1d4"}]},
            "dex": {"mod": 2, "rolledMods": [{"name": "Bless", "modifier": "1d4"}]},
        }
    )

    root, _ = build("1d20 + @str.mod + @dex.mod", contexts)
    result = root.resolve()

    assert result.final_roll == "1d20 + 3 + 1d4 + 2"
    assert result.formula == "1d20 + 3 + 1d4[Bless] + 2"


def test_owner_modifier_contributes_once():
    """Test that two values of the same owner share its modifier once."""
    contexts = make_contexts(
        {"str": {"mod": 3, "base": 10, "rolledMods": [{"name": "Bless", "modifier": "1d4"}]}}
    )

    root, _ = build("@str.mod + @str.base", contexts)

    assert root.resolve().final_roll == "3 + 1d4 + 10"


def test_first_occurrence_in_formula_contributes():
    """Test that the modifier is added where it first appears, not in sorted order."""
    contexts = make_contexts(
        {
            "str": {"mod": 3, "rolledMods": [{"name": "Bless", "modifier": "1d4"}]},
            "dex": {"mod": 2, "rolledMods": [{"name": "Bless", "modifier": "1d6"}]},
        }
    )

    root, _ = build("@str.mod + @dex.mod", contexts)

    assert root.resolve().final_roll == "3 + 1d4 + 2"


def test_modifier_formula_is_expanded():
    """Test that a modifier holding a variable is expanded and labelled."""
    contexts = make_contexts(
        {
            "abilities": {
                "str": {
                    "mod": 3,
                    "rolledMods": [{"name": "Bless", "modifier": "@abilities.dex.mod"}],
                },
                "dex": {"mod": 2},
            }
        }
    )

    root, nodes = build("1d20 + @abilities.str.mod", contexts)
    modifier_node = nodes["@abilities.dex.mod"]
    result = root.resolve()

    assert modifier_node.reference_modifier.name == "Bless"
    assert modifier_node.inline_values == {"abilities.dex.mod": "2"}
    assert result.final_roll == "1d20 + 3 + 2"
    assert result.formula == "1d20 + 3 + 2[Bless]"


def test_get_context_for_variable_is_exposed(contexts):
    """Test the static helper colocated with the node logic."""
    context, remaining = RollNode.get_context_for_variable("@abilities.str.mod", contexts)

    assert context.name == "actor"
    assert remaining == "abilities.str.mod"


def test_lookup_variable(contexts):
    """Test the lookup used while populating."""
    lookup = lookup_variable("@abilities.str.mod", contexts)

    assert lookup.found
    assert lookup.value == 3
    assert [mod.name for mod in lookup.rolled_mods] == ["Bless"]
    assert not lookup_variable("@abilities.wis.mod", contexts).found


def test_format_value(mocker):
    """Test how context values are rendered as formula text."""
    mocker.patch("rolls.roll_node.log_warning")

    assert format_value(3) == "3"
    assert format_value(2.0) == "2"
    assert format_value(1.5) == "1.5"
    assert format_value(True) == "1"
    assert format_value(" 1d6 ") == "1d6"
    assert format_value("") == "0"
    assert format_value(None) == "0"
    assert format_value({"mod": 1}) == "0"
