"""Tests for the interactive flowchart editor."""

import random

import pytest

from flowchart_backend import ANIMATION_SECONDS, EditorMode, FlowchartEditor
from flowchart_core import ArrowType, Direction, NodeShape, UnsupportedDirectionError

from tests.fixtures import SCENARIO_A, assert_no_dangling_edges, edge_pairs


class TestLoadText:
    def test_scenario_a(self, scenario_a_editor):
        graph = scenario_a_editor.graph
        assert {n.id: n.label for n in graph.nodes.values()} == {"A": "Start", "B": "Process", "C": "End"}
        assert edge_pairs(graph) == [("A", "B"), ("B", "C")]

    def test_empty_text_clears_graph(self, scenario_a_editor):
        graph = scenario_a_editor.load_text("")
        assert graph.nodes == {}
        assert graph.edges == []

    def test_replaces_wholesale_and_clears_history(self, scenario_a_editor):
        scenario_a_editor.add_node()
        scenario_a_editor.load_text("X --> Y")
        assert set(scenario_a_editor.graph.nodes) == {"X", "Y"}
        assert not scenario_a_editor.can_undo

    def test_bad_direction_keeps_current_graph(self, scenario_a_editor):
        with pytest.raises(UnsupportedDirectionError):
            scenario_a_editor.load_text("X --> Y", "up")
        assert set(scenario_a_editor.graph.nodes) == {"A", "B", "C"}


class TestNodeOperations:
    def test_delete_node_cascades(self, scenario_a_editor):
        assert scenario_a_editor.delete_node("B") is True
        graph = scenario_a_editor.graph
        assert set(graph.nodes) == {"A", "C"}
        assert graph.edges == []
        assert scenario_a_editor.get_edge("e1") is None

    def test_delete_missing_node_is_noop(self, scenario_a_editor):
        assert scenario_a_editor.delete_node("X") is False
        assert len(scenario_a_editor.graph.edges) == 2
        assert not scenario_a_editor.can_undo

    def test_add_node_uses_kind_preset(self, scenario_a_editor):
        before = {n.id: (n.position.x, n.position.y) for n in scenario_a_editor.graph.nodes.values()}
        node = scenario_a_editor.add_node("decision")
        assert node.label == "Decision"
        assert node.shape == NodeShape.DIAMOND.value
        assert (node.size.width, node.size.height) == (150, 150)
        assert (node.position.x, node.position.y) == (100, 100)
        after = {n.id: (n.position.x, n.position.y) for n in scenario_a_editor.graph.nodes.values() if n.id in before}
        assert after == before

    def test_add_node_labels(self, editor):
        assert editor.add_node("start").label == "Start"
        assert editor.add_node("end").label == "End"
        assert editor.add_node().label == "New Node"
        assert editor.add_node("unknown").kind == "default"

    def test_add_node_ids_are_unique(self, editor):
        editor.load_text("node_1[Taken] --> B")
        created = [editor.add_node().id for _ in range(3)]
        assert "node_1" not in created
        assert len(set(created)) == 3
        assert len(editor.graph.nodes) == 5

    def test_add_node_at_position(self, editor):
        node = editor.add_node("process", (10, 20))
        assert (node.position.x, node.position.y) == (10, 20)

    def test_edit_label_keeps_id_and_position(self, scenario_a_editor):
        before = scenario_a_editor.get_node("B").position.model_copy()
        node = scenario_a_editor.edit_label("B", "Renamed")
        assert node.id == "B"
        assert node.label == "Renamed"
        assert node.position == before

    def test_edit_label_missing_node(self, scenario_a_editor):
        assert scenario_a_editor.edit_label("X", "t") is None

    def test_set_kind_decision_makes_diamond(self, scenario_a_editor):
        node = scenario_a_editor.set_kind("B", "decision")
        assert node.shape == NodeShape.DIAMOND.value
        assert node.label == "Process"
        assert scenario_a_editor.set_kind("B", "bogus") is None

    def test_move_and_resize(self, scenario_a_editor):
        scenario_a_editor.move_node("A", 5, 6)
        scenario_a_editor.resize_node("A", 200, 50)
        node = scenario_a_editor.get_node("A")
        assert (node.position.x, node.position.y) == (5, 6)
        assert (node.size.width, node.size.height) == (200, 50)

    def test_restyle_node(self, scenario_a_editor):
        node = scenario_a_editor.restyle_node("A", fill="#000", color="#fff", font_size="20")
        assert node.style.fill == "#000"
        assert node.style.font_color == "#fff"
        assert node.style.font_size == 20


class TestEdgeOperations:
    def test_connect_twice_keeps_both(self, scenario_a_editor):
        first = scenario_a_editor.connect("A", "C", "single")
        second = scenario_a_editor.connect("A", "C", "bidirectional")
        assert first.id != second.id
        assert edge_pairs(scenario_a_editor.graph).count(("A", "C")) == 2
        assert second.arrow == ArrowType.BIDIRECTIONAL.value

    def test_connect_ids_continue_after_parse(self, scenario_a_editor):
        assert scenario_a_editor.connect("A", "C").id == "e3"

    def test_connect_missing_node(self, scenario_a_editor):
        assert scenario_a_editor.connect("A", "X") is None
        assert len(scenario_a_editor.graph.edges) == 2

    def test_connect_bad_arrow(self, scenario_a_editor):
        with pytest.raises(ValueError):
            scenario_a_editor.connect("A", "C", "zigzag")

    def test_delete_edge(self, scenario_a_editor):
        assert scenario_a_editor.delete_edge("e1") is True
        assert edge_pairs(scenario_a_editor.graph) == [("B", "C")]
        assert scenario_a_editor.delete_edge("e1") is False


class TestRelayout:
    def test_relayout_restores_layered_positions(self, scenario_a_editor):
        scenario_a_editor.move_node("C", 999, 999)
        scenario_a_editor.relayout()
        node = scenario_a_editor.get_node("C")
        assert (node.position.x, node.position.y) == (0, 172)

    def test_relayout_direction(self, scenario_a_editor):
        graph = scenario_a_editor.relayout("LR")
        assert graph.direction == Direction.LR
        assert graph.nodes["B"].position.x == 222

    def test_relayout_bad_direction_leaves_graph(self, scenario_a_editor):
        with pytest.raises(UnsupportedDirectionError):
            scenario_a_editor.relayout("diagonal")
        assert scenario_a_editor.graph.direction == Direction.TB
        assert not scenario_a_editor.can_undo

    def test_animation_flag_cleared_after_deadline(self, scenario_a_editor, clock):
        scenario_a_editor.relayout()
        assert scenario_a_editor.is_animating
        assert all(e.animated for e in scenario_a_editor.graph.edges)

        clock.advance(ANIMATION_SECONDS / 2)
        assert scenario_a_editor.tick() is False
        assert all(e.animated for e in scenario_a_editor.graph.edges)

        clock.advance(ANIMATION_SECONDS)
        assert scenario_a_editor.tick() is True
        assert not scenario_a_editor.is_animating
        assert not any(e.animated for e in scenario_a_editor.graph.edges)

    def test_second_relayout_extends_deadline(self, scenario_a_editor, clock):
        scenario_a_editor.relayout()
        clock.advance(1.0)
        scenario_a_editor.relayout()
        clock.advance(1.0)
        assert scenario_a_editor.tick() is False
        clock.advance(1.0)
        assert scenario_a_editor.tick() is True

    def test_tick_without_animation(self, editor):
        assert editor.tick() is False


class TestFontSettings:
    def test_applies_to_all_nodes(self, scenario_a_editor):
        assert scenario_a_editor.apply_font_settings(18, "#111111") == 3
        for node in scenario_a_editor.graph.nodes.values():
            assert node.style.font_size == 18
            assert node.style.font_color == "#111111"

    def test_idempotent(self, scenario_a_editor):
        scenario_a_editor.apply_font_settings(18, "#111111")
        first = scenario_a_editor.graph.to_json_dict()
        scenario_a_editor.apply_font_settings(18, "#111111")
        assert scenario_a_editor.graph.to_json_dict() == first

        scenario_a_editor.undo()
        assert scenario_a_editor.get_node("A").style.font_size == 12
        assert not scenario_a_editor.can_undo

    def test_new_nodes_pick_up_font(self, editor):
        editor.apply_font_settings(20, "#222222")
        node = editor.add_node()
        assert node.style.font_size == 20
        assert node.style.font_color == "#222222"


class TestConnectMode:
    def test_two_clicks_connect(self, scenario_a_editor):
        assert scenario_a_editor.toggle_connect_mode() == EditorMode.CONNECT_ARMED
        assert scenario_a_editor.node_click("A") is None
        assert scenario_a_editor.selected_node_id == "A"

        edge = scenario_a_editor.node_click("C")
        assert (edge.source, edge.target) == ("A", "C")
        assert scenario_a_editor.selected_node_id is None
        assert scenario_a_editor.mode == EditorMode.CONNECT_ARMED

    def test_clicking_same_node_does_nothing(self, scenario_a_editor):
        scenario_a_editor.toggle_connect_mode()
        scenario_a_editor.node_click("A")
        assert scenario_a_editor.node_click("A") is None
        assert len(scenario_a_editor.graph.edges) == 2

    def test_uses_current_arrow_type(self, scenario_a_editor):
        assert scenario_a_editor.toggle_arrow_type() == ArrowType.BIDIRECTIONAL.value
        scenario_a_editor.toggle_connect_mode()
        scenario_a_editor.node_click("A")
        assert scenario_a_editor.node_click("C").arrow == ArrowType.BIDIRECTIONAL.value

    def test_toggle_off_clears_selection(self, scenario_a_editor):
        scenario_a_editor.toggle_connect_mode()
        scenario_a_editor.node_click("A")
        assert scenario_a_editor.toggle_connect_mode() == EditorMode.VIEWING
        assert scenario_a_editor.selected_node_id is None

    def test_click_in_viewing_selects_only(self, scenario_a_editor):
        assert scenario_a_editor.node_click("A") is None
        assert scenario_a_editor.node_click("C") is None
        assert scenario_a_editor.selected_node_id == "C"
        assert len(scenario_a_editor.graph.edges) == 2

    def test_connect_drag(self, scenario_a_editor):
        assert scenario_a_editor.connect_drag("A", "A") is None
        assert scenario_a_editor.connect_drag("C", "A").source == "C"


class TestLabelEditing:
    def test_double_click_requests_edit(self, scenario_a_editor):
        requests = []
        scenario_a_editor.on_request_edit(lambda node_id, label: requests.append((node_id, label)))
        assert scenario_a_editor.node_double_click("B") is True
        assert requests == [("B", "Process")]
        assert scenario_a_editor.mode == EditorMode.EDITING_LABEL
        assert scenario_a_editor.editing_node_id == "B"

    def test_submit(self, scenario_a_editor):
        scenario_a_editor.node_double_click("B")
        node = scenario_a_editor.submit_edit("B", "Work")
        assert node.label == "Work"
        assert scenario_a_editor.mode == EditorMode.VIEWING

    def test_submit_wrong_node_ignored(self, scenario_a_editor):
        scenario_a_editor.node_double_click("B")
        assert scenario_a_editor.submit_edit("A", "Nope") is None
        assert scenario_a_editor.get_node("A").label == "Start"

    def test_cancel(self, scenario_a_editor):
        scenario_a_editor.node_double_click("B")
        scenario_a_editor.cancel_edit()
        assert scenario_a_editor.mode == EditorMode.VIEWING
        assert scenario_a_editor.get_node("B").label == "Process"

    def test_ignored_in_connect_mode(self, scenario_a_editor):
        scenario_a_editor.toggle_connect_mode()
        assert scenario_a_editor.node_double_click("B") is False
        assert scenario_a_editor.mode == EditorMode.CONNECT_ARMED

    def test_deleting_edited_node_returns_to_viewing(self, scenario_a_editor):
        scenario_a_editor.node_double_click("B")
        scenario_a_editor.delete_node("B")
        assert scenario_a_editor.mode == EditorMode.VIEWING
        assert scenario_a_editor.editing_node_id is None
        assert scenario_a_editor.selected_node_id is None


class TestConfirmation:
    def test_no_hook_declines(self, scenario_a_editor):
        assert scenario_a_editor.request_delete_node("B") is False
        assert "B" in scenario_a_editor.graph.nodes

    def test_hook_accepts(self, clock):
        prompts = []

        def confirm(prompt):
            prompts.append(prompt)
            return True

        editor = FlowchartEditor(confirm=confirm, clock=clock)
        editor.load_text(SCENARIO_A)
        assert editor.request_delete_node("B") is True
        assert "Process" in prompts[0]
        assert editor.graph.edges == []

    def test_hook_rejects(self, scenario_a_editor):
        scenario_a_editor.set_confirm(lambda prompt: False)
        assert scenario_a_editor.request_delete_edge("e1") is False
        assert len(scenario_a_editor.graph.edges) == 2

    def test_explicit_flag_wins(self, scenario_a_editor):
        scenario_a_editor.set_confirm(lambda prompt: True)
        assert scenario_a_editor.request_delete_edge("e1", confirmed=False) is False
        assert scenario_a_editor.request_delete_edge("e1", confirmed=True) is True
        assert edge_pairs(scenario_a_editor.graph) == [("B", "C")]

    def test_missing_targets(self, scenario_a_editor):
        assert scenario_a_editor.request_delete_node("X", confirmed=True) is False
        assert scenario_a_editor.request_delete_edge("e9", confirmed=True) is False


class TestIntents:
    def test_dispatch(self, scenario_a_editor):
        scenario_a_editor.handle_intent({"type": "toggle_connect_mode"})
        scenario_a_editor.handle_intent({"type": "node_click", "node_id": "A"})
        edge = scenario_a_editor.handle_intent({"type": "node_click", "node_id": "C"})
        assert (edge.source, edge.target) == ("A", "C")

    def test_drag_with_resize(self, scenario_a_editor):
        node = scenario_a_editor.handle_intent(
            {"type": "node_drag", "node_id": "A", "x": 1, "y": 2, "width": 80, "height": 40}
        )
        assert (node.position.x, node.position.y, node.size.width, node.size.height) == (1, 2, 80, 40)

    def test_edge_click_needs_confirmation(self, scenario_a_editor):
        assert scenario_a_editor.handle_intent({"type": "edge_click", "edge_id": "e1"}) is False
        assert scenario_a_editor.handle_intent({"type": "edge_click", "edge_id": "e1", "confirmed": True}) is True

    def test_unknown_type(self, editor):
        with pytest.raises(ValueError):
            editor.handle_intent({"type": "explode"})


class TestHistory:
    def test_undo_redo_delete(self, scenario_a_editor):
        scenario_a_editor.delete_node("B")
        scenario_a_editor.undo()
        assert set(scenario_a_editor.graph.nodes) == {"A", "B", "C"}
        assert edge_pairs(scenario_a_editor.graph) == [("A", "B"), ("B", "C")]
        assert scenario_a_editor.get_edge("e1") is not None

        scenario_a_editor.redo()
        assert set(scenario_a_editor.graph.nodes) == {"A", "C"}
        assert scenario_a_editor.graph.edges == []

    def test_nothing_to_undo(self, editor):
        assert editor.undo() is None
        assert editor.redo() is None

    def test_new_action_clears_redo(self, scenario_a_editor):
        scenario_a_editor.edit_label("A", "x")
        scenario_a_editor.undo()
        scenario_a_editor.edit_label("A", "y")
        assert not scenario_a_editor.can_redo

    def test_history_is_bounded(self, clock):
        editor = FlowchartEditor(clock=clock, max_history=3)
        editor.load_text("A --> B")
        for i in range(5):
            editor.edit_label("A", str(i))
        for _ in range(3):
            editor.undo()
        assert editor.get_node("A").label == "1"
        assert not editor.can_undo


class TestNotifications:
    def test_mutations_notify(self, scenario_a_editor):
        calls = []
        scenario_a_editor.on_change(lambda: calls.append(1))
        scenario_a_editor.add_node()
        scenario_a_editor.connect("A", "C")
        scenario_a_editor.delete_node("X")
        assert len(calls) == 2

    def test_snapshot(self, scenario_a_editor):
        snapshot = scenario_a_editor.snapshot()
        assert snapshot["selection"]["mode"] == "viewing"
        assert snapshot["arrow_type"] == "single"
        assert snapshot["font"] == {"size": 12, "color": "#1e3a8a"}
        assert len(snapshot["flowchart"]["nodes"]) == 3
        assert snapshot["flowchart"]["nodes"][0]["style"]["fontSize"] == 12


def test_edges_never_dangle_under_random_edits(clock):
    rng = random.Random(7)
    editor = FlowchartEditor(clock=clock)
    editor.load_text(SCENARIO_A)

    for _ in range(300):
        node_ids = list(editor.graph.nodes) + ["missing"]
        edge_ids = [e.id for e in editor.graph.edges] + ["e999"]
        op = rng.choice(["add", "delete", "connect", "unlink", "label", "relayout", "undo", "redo"])
        if op == "add":
            editor.add_node(rng.choice(["start", "end", "process", "decision", "action", "default"]))
        elif op == "delete":
            editor.delete_node(rng.choice(node_ids))
        elif op == "connect":
            editor.connect(rng.choice(node_ids), rng.choice(node_ids))
        elif op == "unlink":
            editor.delete_edge(rng.choice(edge_ids))
        elif op == "label":
            editor.edit_label(rng.choice(node_ids), "x")
        elif op == "relayout":
            editor.relayout(rng.choice(["TB", "LR"]))
        elif op == "undo":
            editor.undo()
        else:
            editor.redo()
        assert_no_dangling_edges(editor.graph)
        assert len({e.id for e in editor.graph.edges}) == len(editor.graph.edges)
