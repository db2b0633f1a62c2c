"""Tests for structural equality of config values."""

from mcp_config_manager.core.comparison import servers_equal, structural_equal


class TestStructuralEqual:
    """Test structural_equal."""

    def test_key_order_is_irrelevant(self):
        a = {"command": "node", "args": ["x"], "env": {"A": "1", "B": "2"}}
        b = {"env": {"B": "2", "A": "1"}, "args": ["x"], "command": "node"}
        assert structural_equal(a, b)

    def test_list_order_matters(self):
        assert not structural_equal({"args": ["a", "b"]}, {"args": ["b", "a"]})

    def test_transient_keys_ignored_at_top_level(self):
        a = {"command": "node", "enabled": True, "_sources": ["a"], "_conflicts": False}
        b = {"command": "node", "enabled": False}
        assert structural_equal(a, b)

    def test_nested_enabled_key_still_compared(self):
        a = {"command": "node", "env": {"enabled": "1"}}
        b = {"command": "node", "env": {"enabled": "0"}}
        assert not structural_equal(a, b)

    def test_bool_differs_from_int(self):
        assert not structural_equal({"inspector": {"enabled": True}}, {"inspector": {"enabled": 1}})

    def test_custom_ignore_keys(self):
        assert not structural_equal({"command": "a", "enabled": True}, {"command": "a"}, ignore_keys=())
        assert structural_equal({"command": "a", "note": 1}, {"command": "a"}, ignore_keys={"note"})


class TestServersEqual:
    """Test servers_equal."""

    def test_missing_maps_are_empty(self):
        assert servers_equal(None, {})

    def test_name_sets_must_match(self):
        assert not servers_equal({"x": {"command": "node"}}, {"y": {"command": "node"}})

    def test_definitions_compared(self):
        assert servers_equal({"x": {"command": "node"}}, {"x": {"command": "node", "enabled": True}})
        assert not servers_equal({"x": {"command": "node"}}, {"x": {"command": "python"}})
