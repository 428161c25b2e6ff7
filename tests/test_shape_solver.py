from __future__ import annotations

import pytest

from shape import MalformedShapeCode, Shape
from shape_operations import IncompatibleShapeArity, Operation
from shape_solver import (
    ShapeSolver, SearchMethod, CancelToken, Cancelled, NoSolutionFound, solve_shape,
    get_acceptable_codes,
)

METHODS = ["A*", "BFS"]


def replay_states(solver: ShapeSolver, result):
    """해답 경로를 따라가며 각 단계의 보유 도형 id 목록을 돌려줍니다."""
    states = [tuple(solver.initial_ids)]
    held = list(solver.initial_ids)
    for step in result.solution_path:
        for shape_id, _code in step.inputs:
            held.remove(shape_id)
        held.extend(shape_id for shape_id, _code in step.outputs)
        states.append(tuple(held))
    return states


# ------------------------------------------------------------------
#  고정 시나리오
# ------------------------------------------------------------------
@pytest.mark.parametrize("method", METHODS)
def test_already_solved_with_no_operations(method):
    result = solve_shape("CuCuCuCu", ["CuCuCuCu"], [], search_method=method)
    assert result.depth == 0
    assert result.solution_path == []
    assert result.to_dict()["solutionPath"] == []


@pytest.mark.parametrize("method", METHODS)
def test_shortest_path_is_reported_when_rotation_is_enabled(method):
    result = solve_shape("CrCrCrCr", ["CrCrCrCr"], ["Rotator CW"], search_method=method)
    assert result.depth == 0


@pytest.mark.parametrize("method", METHODS)
def test_single_stack(method):
    result = solve_shape("CuCuCuCu:RuRuRuRu", ["CuCuCuCu", "RuRuRuRu"], ["Stacker"],
                         search_method=method)
    assert result.depth == 1
    step = result.to_dict()["solutionPath"][0]
    assert step["operation"] == "Stacker"
    assert [i["shape"] for i in step["inputs"]] == ["CuCuCuCu", "RuRuRuRu"]
    assert [o["shape"] for o in step["outputs"]] == ["CuCuCuCu:RuRuRuRu"]
    assert step["params"] == {}


@pytest.mark.parametrize("method", METHODS)
def test_split_then_stack(method):
    result = solve_shape("CuCuCuCu:CuCuCuCu", ["CuCuCuCu"], ["Belt Split", "Stacker"],
                         search_method=method)
    assert result.depth == 2
    assert [s.operation for s in result.solution_path] == ["Belt Split", "Stacker"]


@pytest.mark.parametrize("method", METHODS)
def test_painter_records_color(method):
    result = solve_shape("CrCrCrCr", ["CuCuCuCu"], ["Painter"], search_method=method)
    assert result.depth == 1
    assert result.solution_path[0].params == {"color": "r"}


@pytest.mark.parametrize("method", METHODS)
def test_crystal_generator_uses_target_crystal_colors(method):
    result = solve_shape("CuCucbcb", ["CuCu----"], ["Crystal Generator"], search_method=method)
    assert result.depth == 1
    assert result.solution_path[0].params == {"color": "b"}


def test_monolayer_painting_blocks_multilayer_painter():
    args = ("CuCuCuCu:CrCrCrCr", ["CuCuCuCu:CuCuCuCu"], ["Painter"])
    assert solve_shape(*args).depth == 1
    with pytest.raises(NoSolutionFound):
        solve_shape(*args, monolayer_painting=True)


# ------------------------------------------------------------------
#  목표 판정
# ------------------------------------------------------------------
def test_acceptable_codes():
    target = Shape.from_string("CuRuCuRu")
    assert get_acceptable_codes(target, False) == {"CuRuCuRu", "RuCuRuCu"}
    assert get_acceptable_codes(target, True) == {"CuRuCuRu"}


def test_rotation_matches_unless_orientation_sensitive():
    assert solve_shape("CuRuCuRu", ["RuCuRuCu"], ["Rotator CW"]).depth == 0
    result = solve_shape("CuRuCuRu", ["RuCuRuCu"], ["Rotator CW"], orientation_sensitive=True)
    assert result.depth == 1


def test_is_goal_with_waste_prevention():
    solver = ShapeSolver("CuCuCuCu", ["CuCuCuCu", "RuRuRuRu", "CuCuCuCu"], [], prevent_waste=True)
    target_id, waste_id, copy_id = solver.initial_ids
    assert not solver.is_goal((target_id, waste_id))
    assert solver.is_goal((target_id,))
    assert solver.is_goal((target_id, copy_id))
    assert not solver.is_goal((waste_id,))

    lenient = ShapeSolver("CuCuCuCu", ["CuCuCuCu", "RuRuRuRu"], [])
    assert lenient.is_goal(lenient.initial_ids)


@pytest.mark.parametrize("method", METHODS)
def test_prevent_waste_trashes_extra_shape(method):
    starting = ["CuCuCuCu", "RuRuRuRu"]
    assert solve_shape("CuCuCuCu", starting, ["Trash"], search_method=method).depth == 0
    result = solve_shape("CuCuCuCu", starting, ["Trash"], prevent_waste=True, search_method=method)
    assert result.depth == 1
    assert result.solution_path[0].operation == "Trash"
    assert result.solution_path[0].outputs == []


def test_trash_never_empties_the_held_set():
    with pytest.raises(NoSolutionFound):
        solve_shape("RuRuRuRu", ["CuCuCuCu"], ["Trash"])


# ------------------------------------------------------------------
#  최적성 / 휴리스틱
# ------------------------------------------------------------------
SMALL_CASES = [
    ("CuCuCuCu:RuRuRuRu", ["CuCuCuCu", "RuRuRuRu"], ["Stacker", "Swapper", "Rotator CW"]),
    ("CuCuRuRu", ["CuCuCuCu", "RuRuRuRu"], ["Swapper", "Cutter", "Stacker"]),
    ("CuCuCuCu:CuCuCuCu", ["CuCuCuCu"], ["Belt Split", "Stacker", "Rotator CW"]),
    ("CrCr----", ["CuCuCuCu"], ["Half Destroyer", "Painter", "Rotator 180"]),
    ("CuCuCuCu:CuCuCuCu:RuRuRuRu:RuRuRuRu", ["CuCuCuCu:CuCuCuCu", "RuRuRuRu:RuRuRuRu"], ["Stacker"]),
]


@pytest.mark.parametrize("target, starting, ops", SMALL_CASES)
def test_astar_matches_exhaustive_bfs_depth(target, starting, ops):
    astar = solve_shape(target, starting, ops, search_method="A*")
    bfs = solve_shape(target, starting, ops, search_method="BFS", max_states_per_level=None)
    assert astar.depth == bfs.depth


@pytest.mark.parametrize("target, starting, ops", SMALL_CASES)
@pytest.mark.parametrize("prevent_waste", [False, True])
def test_heuristic_never_overestimates_along_optimal_path(target, starting, ops, prevent_waste):
    solver = ShapeSolver(target, starting, ops, search_method="BFS",
                         max_states_per_level=None, prevent_waste=prevent_waste)
    try:
        result = solver.solve()
    except NoSolutionFound:
        return
    for index, state in enumerate(replay_states(solver, result)):
        assert solver.heuristic(state) <= result.depth - index


def test_heuristic_is_zero_on_goal_states():
    solver = ShapeSolver("CuCuCuCu", ["CuCuCuCu", "CuCuCuCu"], [], prevent_waste=True)
    assert solver.heuristic(solver.initial_ids) == 0


def test_heuristic_of_empty_state_is_infinite():
    solver = ShapeSolver("CuCuCuCu", ["CuCuCuCu"], [])
    assert solver.heuristic(()) == float("inf")


def test_state_key_is_order_independent():
    solver = ShapeSolver("CuCuCuCu", ["RuRuRuRu", "CuCuCuCu", "RuRuRuRu"], [])
    a, b, c = solver.initial_ids
    assert solver.state_key((a, b, c)) == solver.state_key((b, c, a))
    assert solver.state_key((a, b)) == (("CuCuCuCu", 1), ("RuRuRuRu", 1))


# ------------------------------------------------------------------
#  실패 / 취소 / 입력 검증
# ------------------------------------------------------------------
@pytest.mark.parametrize("method", METHODS)
def test_no_solution(method):
    with pytest.raises(NoSolutionFound) as excinfo:
        solve_shape("RuRuRuRu", ["CuCuCuCu"], ["Rotator CW"], search_method=method)
    assert excinfo.value.states_explored >= 1


@pytest.mark.parametrize("method", METHODS)
def test_cancelled_before_start(method):
    token = CancelToken()
    token.cancel()
    with pytest.raises(Cancelled):
        solve_shape("CuCuCuCu", ["CuCuCuCu"], [], search_method=method, cancel_token=token)


class CancelAfterPolls(CancelToken):
    """N 번째 확인에서 취소되는 토큰"""

    def __init__(self, cancel_at: int):
        super().__init__()
        self.cancel_at = cancel_at
        self.polls = 0

    def raise_if_cancelled(self):
        self.polls += 1
        if self.polls == self.cancel_at:
            self.cancel()
        super().raise_if_cancelled()


@pytest.mark.parametrize("method", METHODS)
def test_cancelled_during_search(method):
    # 별 모양은 만들 수 없으므로 취소되지 않으면 공간 전체를 탐색합니다
    token = CancelAfterPolls(30)
    with pytest.raises(Cancelled):
        solve_shape("SuSuSuSu", ["CuCuCuCu", "RuRuRuRu"],
                    ["Cutter", "Stacker", "Swapper", "Rotator CW"],
                    search_method=method, cancel_token=token)
    assert token.polls == 30


def test_invalid_inputs():
    with pytest.raises(MalformedShapeCode):
        ShapeSolver("CuCuCuC", ["CuCuCuCu"], [])
    with pytest.raises(MalformedShapeCode):
        ShapeSolver("CuCuCuCu", ["Xu"], [])
    with pytest.raises(IncompatibleShapeArity):
        ShapeSolver("CuCuCuCu", ["CuCu"], [])
    with pytest.raises(ValueError):
        ShapeSolver("CuCuCuCu", ["CuCuCuCu"], [], heuristic_divisor=0)


def test_unknown_operations_are_ignored():
    solver = ShapeSolver("CuCuCuCu", ["CuCuCuCu"], ["Teleporter", "Cutter"])
    assert solver.operations == [Operation.CUTTER]


def test_search_method_names():
    assert SearchMethod.from_name("A*") is SearchMethod.ASTAR
    assert SearchMethod.from_name("BFS") is SearchMethod.BFS
    assert SearchMethod.from_name("anything else") is SearchMethod.BFS


def test_bfs_prunes_to_level_width():
    solver = ShapeSolver("CuCuCuCu", ["CuCuCuCu"], [], max_states_per_level=2)
    states = [((i,), [], score) for i, score in enumerate([0.1, 0.9, 0.5, 0.7])]
    pruned = solver._prune(states)
    assert [s[2] for s in pruned] == [0.9, 0.7]
