from __future__ import annotations

import pytest

from shape_operations import IncompatibleShapeArity
from shape_solver import CancelToken, Cancelled
from shape_explorer import ShapeExplorer, explore_shape_space


def shape_codes(graph):
    return [s["code"] for s in graph["shapes"]]


def test_single_depth_rotation():
    graph = explore_shape_space(["CuRuSuWu"], ["Rotator CW"], depth_limit=1)
    assert graph["shapes"] == [
        {"id": "shape-0", "code": "CuRuSuWu"},
        {"id": "shape-1", "code": "WuCuRuSu"},
    ]
    assert graph["ops"] == [{"id": "op-0", "type": "Rotator CW", "params": {}}]
    assert graph["edges"] == [
        {"source": "shape-0", "target": "op-0"},
        {"source": "op-0", "target": "shape-1"},
    ]


def test_rotation_cycle_closes():
    graph = explore_shape_space(["CuRuSuWu"], ["Rotator CW"])
    assert shape_codes(graph) == ["CuRuSuWu", "WuCuRuSu", "SuWuCuRu", "RuSuWuCu"]
    assert len(graph["ops"]) == 4
    # 마지막 회전은 기존 도형으로 돌아옵니다
    assert graph["edges"][-1] == {"source": "op-3", "target": "shape-0"}


def test_operations_reproducing_their_input_are_skipped():
    graph = explore_shape_space(["CuCuCuCu"], ["Rotator CW", "Rotator 180"])
    assert shape_codes(graph) == ["CuCuCuCu"]
    assert graph["ops"] == []


def test_colored_operations_use_representative_color():
    graph = explore_shape_space(["CuCuCuCu"], ["Painter"], depth_limit=1)
    assert shape_codes(graph) == ["CuCuCuCu", "CrCrCrCr"]
    assert graph["ops"][0]["params"] == {"color": "r"}


def test_stacker_tries_both_orderings():
    graph = explore_shape_space(["CuCuCuCu", "RuRuRuRu"], ["Stacker"], depth_limit=1)
    assert shape_codes(graph) == [
        "CuCuCuCu", "RuRuRuRu",
        "CuCuCuCu:CuCuCuCu", "RuRuRuRu:CuCuCuCu", "CuCuCuCu:RuRuRuRu", "RuRuRuRu:RuRuRuRu",
    ]
    assert len(graph["ops"]) == 4


def test_stacker_keeps_one_ordering_when_outputs_match():
    graph = explore_shape_space(["CuCu----", "----RuRu"], ["Stacker"], depth_limit=1)
    assert shape_codes(graph) == [
        "CuCu----", "----RuRu", "CuCu----:CuCu----", "CuCuRuRu", "----RuRu:----RuRu",
    ]
    assert len(graph["ops"]) == 3


def test_other_binary_operations_try_each_pair_once():
    graph = explore_shape_space(["CuCuCuCu", "RuRuRuRu"], ["Swapper"], depth_limit=1)
    assert shape_codes(graph) == ["CuCuCuCu", "RuRuRuRu", "CuCuRuRu", "RuRuCuCu"]
    assert len(graph["ops"]) == 1
    op_id = graph["ops"][0]["id"]
    assert {"source": "shape-0", "target": op_id} in graph["edges"]
    assert {"source": "shape-1", "target": op_id} in graph["edges"]


def test_duplicate_starting_shapes_share_a_node():
    graph = explore_shape_space(["CuCuCuCu", "CuCuCuCu"], [], depth_limit=3)
    assert shape_codes(graph) == ["CuCuCuCu"]


def test_status_messages():
    messages = []
    explore_shape_space(["CuRuSuWu"], ["Rotator CW"], depth_limit=2, on_status=messages.append)
    assert messages[-1] == "Exploration complete. Shapes: 3, Ops: 2"
    assert len(messages) == 3


def test_cancelled():
    token = CancelToken()
    token.cancel()
    with pytest.raises(Cancelled):
        ShapeExplorer(["CuCuCuCu"], ["Cutter"], cancel_token=token).explore()


def test_mismatched_part_counts():
    with pytest.raises(IncompatibleShapeArity):
        ShapeExplorer(["CuCuCuCu", "CuCu"], ["Stacker"])
