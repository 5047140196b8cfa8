# Accessibility tree mapper tests
# Changes:
#   - 2026-03-04: flattening and naming cases
#   - 2026-03-09: sibling dedup collisions, cycles
"""Tests for the accessibility tree to filesystem mapper."""

from domshell.browser.snapshot import (
    AccessibilityNode,
    build_node_map,
    child_entries,
    count_frames,
    find_child,
    find_root,
    generate_name,
    is_container,
    slugify,
    snapshot_stats,
    to_entry,
)


def _node(node_id, role, name="", children=(), **kwargs):
    return AccessibilityNode(node_id=node_id, role=role, name=name, child_ids=list(children), **kwargs)


def _names(parent_id, nodes):
    return [e.name for e in child_entries(parent_id, build_node_map(nodes))]


class TestFromCdp:
    """Tests for AccessibilityNode.from_cdp."""

    def test_unwraps_ax_values(self):
        """Should read role, name and value out of AXValue dicts."""
        node = AccessibilityNode.from_cdp({
            "nodeId": 12,
            "role": {"type": "role", "value": "textbox"},
            "name": {"type": "computedString", "value": "Email"},
            "value": {"type": "string", "value": "a@b.c"},
            "childIds": [13, 14],
            "backendDOMNodeId": 77,
        })
        assert node.node_id == "12"
        assert node.role == "textbox"
        assert node.name == "Email"
        assert node.value == "a@b.c"
        assert node.child_ids == ["13", "14"]
        assert node.backend_id == 77
        assert node.ignored is False

    def test_missing_fields(self):
        """Should default missing fields to empty values."""
        node = AccessibilityNode.from_cdp({"nodeId": "3", "ignored": True})
        assert node.role == ""
        assert node.name == ""
        assert node.value is None
        assert node.child_ids == []
        assert node.backend_id is None
        assert node.ignored is True

    def test_id_prefix_applies_to_children(self):
        """Should namespace the node id and its child ids."""
        node = AccessibilityNode.from_cdp({"nodeId": "1", "childIds": ["2"]}, id_prefix="frame_F1_")
        assert node.node_id == "frame_F1_1"
        assert node.child_ids == ["frame_F1_2"]


class TestNaming:
    """Tests for slugify and generate_name."""

    def test_slugify_drops_punctuation(self):
        assert slugify("Sign In!") == "sign_in"
        assert slugify("  Hello,   World  ") == "hello_world"
        assert slugify("a-b_c") == "a-b_c"

    def test_slugify_caps_length(self):
        assert len(slugify("x" * 100)) == 40

    def test_role_suffix(self):
        """Interactive roles get a readable suffix."""
        assert generate_name(_node("1", "button", "Submit")) == "submit_btn"
        assert generate_name(_node("1", "link", "Home")) == "home_link"
        assert generate_name(_node("1", "textbox", "Email")) == "email_input"
        assert generate_name(_node("1", "paragraph", "Intro")) == "intro"

    def test_falls_back_to_description(self):
        node = _node("1", "button", "", description="Close dialog")
        assert generate_name(node) == "close_dialog_btn"

    def test_falls_back_to_role_and_id(self):
        """Unnamed nodes use role and node id."""
        assert generate_name(_node("42", "button")) == "button_42_btn"
        assert generate_name(_node("43", "")) == "unknown_43"

    def test_punctuation_only_name_falls_back(self):
        assert generate_name(_node("5", "link", "!!!")) == "link_5_link"


class TestClassification:
    """Tests for is_container and entry kinds."""

    def test_container_roles(self):
        assert is_container(_node("1", "navigation"))
        assert is_container(_node("1", "list"))

    def test_interactive_with_children_is_leaf(self):
        assert not is_container(_node("1", "button", "Go", ["2"]))

    def test_unknown_role_with_children_is_container(self):
        assert is_container(_node("1", "paragraph", "p", ["2"]))
        assert not is_container(_node("1", "paragraph", "p"))

    def test_entry_prefixes(self):
        assert to_entry(_node("1", "navigation", "Nav")).type_prefix == "[d]"
        assert to_entry(_node("1", "button", "Go")).type_prefix == "[x]"
        assert to_entry(_node("1", "heading", "Hi")).type_prefix == "[-]"
        assert to_entry(_node("1", "navigation", "Nav")).display_name == "nav/"
        assert to_entry(_node("1", "heading", "Hi")).kind == "static"


class TestChildEntries:
    """Tests for flattening and sibling deduplication."""

    def test_unnamed_generic_is_flattened(self):
        """Children of an unnamed generic surface in the parent."""
        nodes = [
            _node("1", "RootWebArea", "Page", ["2", "4"]),
            _node("2", "generic", "", ["3"]),
            _node("3", "button", "Inner"),
            _node("4", "link", "Outer"),
        ]
        assert _names("1", nodes) == ["inner_btn", "outer_link"]

    def test_named_generic_is_kept(self):
        nodes = [
            _node("1", "RootWebArea", "Page", ["2"]),
            _node("2", "generic", "Card", ["3"]),
            _node("3", "button", "Go"),
        ]
        assert _names("1", nodes) == ["card"]

    def test_ignored_and_none_are_flattened(self):
        nodes = [
            _node("1", "RootWebArea", "Page", ["2", "3"]),
            _node("2", "div", "", ["4"], ignored=True),
            _node("3", "none", "", ["5"]),
            _node("4", "button", "A"),
            _node("5", "button", "B"),
        ]
        assert _names("1", nodes) == ["a_btn", "b_btn"]

    def test_duplicates_numbered_in_order(self):
        nodes = [
            _node("1", "RootWebArea", "Page", ["2", "3", "4"]),
            _node("2", "button", "Submit"),
            _node("3", "button", "Submit"),
            _node("4", "button", "Submit"),
        ]
        assert _names("1", nodes) == ["submit_btn", "submit_btn_2", "submit_btn_3"]

    def test_dedup_avoids_existing_names(self):
        """A literal ``x_2`` sibling forces the second ``x`` to ``x_3``."""
        nodes = [
            _node("1", "RootWebArea", "Page", ["2", "3", "4"]),
            _node("2", "paragraph", "x 2"),
            _node("3", "paragraph", "x"),
            _node("4", "paragraph", "x"),
        ]
        names = _names("1", nodes)
        assert names == ["x_2", "x", "x_3"]
        assert len(set(names)) == len(names)

    def test_flattening_is_idempotent(self):
        """Re-parenting the flattened children directly under the root changes nothing."""
        nodes = [
            _node("1", "RootWebArea", "Page", ["2", "7"]),
            _node("2", "generic", "", ["3"]),
            _node("3", "div", "", ["4", "5"], ignored=True),
            _node("4", "button", "Save"),
            _node("5", "none", "", ["6"]),
            _node("6", "link", "Save"),
            _node("7", "region", "Side", ["8"]),
            _node("8", "button", "Save"),
        ]
        once = child_entries("1", build_node_map(nodes))

        flattened_root = _node("1", "RootWebArea", "Page", [e.node_id for e in once])
        twice = child_entries("1", build_node_map([flattened_root, *nodes[1:]]))

        assert [e.node_id for e in once] == ["4", "6", "7"]
        assert twice == once

    def test_missing_children_skipped(self):
        nodes = [_node("1", "RootWebArea", "Page", ["2", "99"]), _node("2", "link", "A")]
        assert _names("1", nodes) == ["a_link"]

    def test_cycle_terminates(self):
        """A transparent node that points back at itself is walked once."""
        nodes = [
            _node("1", "RootWebArea", "Page", ["2"]),
            _node("2", "generic", "", ["2", "3"]),
            _node("3", "button", "Go"),
        ]
        assert _names("1", nodes) == ["go_btn"]

    def test_unknown_parent(self):
        assert child_entries("nope", {}) == []

    def test_find_child(self):
        nodes = [_node("1", "RootWebArea", "Page", ["2"]), _node("2", "link", "Home")]
        node_map = build_node_map(nodes)
        assert find_child("1", "home_link", node_map).node_id == "2"
        assert find_child("1", "missing", node_map) is None


class TestTreeHelpers:
    """Tests for find_root, count_frames and snapshot_stats."""

    def test_find_root_prefers_root_web_area(self):
        nodes = [_node("9", "generic", "", ["1"]), _node("1", "RootWebArea", "Page")]
        assert find_root(build_node_map(nodes)).node_id == "1"

    def test_find_root_falls_back_to_first(self):
        nodes = [_node("9", "generic"), _node("1", "button", "x")]
        assert find_root(build_node_map(nodes)).node_id == "9"
        assert find_root({}) is None

    def test_stats(self):
        nodes = [
            _node("1", "RootWebArea", "Page", ["2", "3"]),
            _node("2", "generic", "", ["4"]),
            _node("3", "Iframe", "ad"),
            _node("4", "button", "Go", ignored=True),
        ]
        node_map = build_node_map(nodes)
        stats = snapshot_stats(node_map)
        assert stats.total == 4
        assert stats.ignored == 1
        assert stats.generic == 1
        assert stats.with_children == 2
        assert stats.iframes == 1
        assert count_frames(node_map) == 1
