"""
도형 솔버 - 시작 도형들에서 목표 도형을 만드는 최소 길이의 건물 작동 순서를 찾는 모듈

두 가지 탐색 방식을 지원합니다.
- A*: g + h 우선순위 큐, 정규화된 상태 키로 중복 제거
- BFS: 깊이별 탐색, 레벨 폭이 max_states_per_level 을 넘으면 유사도 점수로 가지치기
"""

from __future__ import annotations
import heapq
import math
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from i18n import t
from shape import Shape
from shape_operations import (
    Operation, ShapeOperationConfig, IncompatibleShapeArity, apply_operation, DEFAULT_MAX_LAYERS,
)
from shape_analyzer import (
    get_all_rotations, get_crystal_colors, get_paint_colors, get_similarity,
)

# --- 로깅 시스템 ---
_log_callback: Optional[Callable[[str], None]] = None


def _log(message: str):
    """디버그 로그. 콜백이 설정되어 있을 때만 전송합니다."""
    if _log_callback is not None:
        _log_callback(message)


# --- 상수 정의 ---
DEFAULT_HEURISTIC_DIVISOR = 4.0
DEFAULT_MAX_STATES_PER_LEVEL = 1000
STATUS_INTERVAL_SECONDS = 0.2
STATUS_EVERY_STATES = 500

StateKey = Tuple[Tuple[str, int], ...]
StatusCallback = Callable[[str], None]


class SearchMethod(Enum):
    ASTAR = "A*"
    BFS = "BFS"

    @classmethod
    def from_name(cls, name) -> SearchMethod:
        # A* 가 아니면 모두 BFS 로 처리합니다
        if isinstance(name, SearchMethod):
            return name
        return cls.ASTAR if name in (None, "A*", "astar", "a*") else cls.BFS


class Cancelled(Exception):
    """협조적 취소로 탐색이 중단됨 (탐색 실패가 아님)"""
    pass


class NoSolutionFound(Exception):
    """탐색 공간을 모두 소진했지만 목표에 도달하지 못함"""

    def __init__(self, states_explored: int):
        super().__init__(t("solver.no_solution", states_explored=states_explored))
        self.states_explored = states_explored


class CancelToken:
    """탐색/탐험 호출에 넘겨주는 취소 플래그"""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self):
        if self._cancelled:
            raise Cancelled(t("status.cancelled"))


class _StatusThrottle:
    """진행 상황 메시지를 시간/개수 기준으로 제한합니다."""

    def __init__(self, on_status: Optional[StatusCallback], every_count: Optional[int] = None,
                 interval: float = STATUS_INTERVAL_SECONDS):
        self.on_status = on_status
        self.every_count = every_count
        self.interval = interval
        self.last_update = time.monotonic()

    def maybe_emit(self, count: int, make_message: Callable[[], str]):
        if self.on_status is None:
            return
        now = time.monotonic()
        due_by_count = self.every_count is not None and count > 0 and count % self.every_count == 0
        if due_by_count or now - self.last_update > self.interval:
            self.on_status(make_message())
            self.last_update = now


@dataclass(frozen=True)
class OperationStep:
    """상태 전이 하나: 사용한 작동, 소비한 id, 생성한 id, 색상"""
    operation: Operation
    input_ids: Tuple[int, ...]
    output_ids: Tuple[int, ...]
    color: Optional[str] = None


@dataclass
class SearchNode:
    state_key: StateKey
    g: int
    h: float
    available_ids: Tuple[int, ...]
    parent_key: Optional[StateKey] = None
    step: Optional[OperationStep] = None


@dataclass
class SolutionStep:
    operation: str
    inputs: List[Tuple[int, str]]
    outputs: List[Tuple[int, str]]
    params: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "inputs": [{"id": i, "shape": code} for i, code in self.inputs],
            "outputs": [{"id": i, "shape": code} for i, code in self.outputs],
            "params": dict(self.params),
        }


@dataclass
class SolveResult:
    solution_path: List[SolutionStep]
    depth: int
    states_explored: int

    def to_dict(self) -> dict:
        return {
            "solutionPath": [step.to_dict() for step in self.solution_path],
            "depth": self.depth,
            "statesExplored": self.states_explored,
        }


def get_acceptable_codes(target: Shape, orientation_sensitive: bool) -> Set[str]:
    if orientation_sensitive:
        return {target.to_code()}
    return set(get_all_rotations(target))


class ShapeSolver:
    """
    목표 도형까지의 최단 작동 순서를 찾는 솔버.

    상태는 현재 가지고 있는 도형들의 id 튜플이며, id -> 도형 코드 매핑은 솔버가
    소유합니다. 중복 제거는 (코드, 개수) 쌍을 정렬한 키로 합니다.
    """

    def __init__(self, target_code: str, starting_codes: Sequence[str], operations: Sequence,
                 max_layers: int = DEFAULT_MAX_LAYERS,
                 max_states_per_level: Optional[int] = DEFAULT_MAX_STATES_PER_LEVEL,
                 prevent_waste: bool = False, orientation_sensitive: bool = False,
                 monolayer_painting: bool = False,
                 heuristic_divisor: float = DEFAULT_HEURISTIC_DIVISOR,
                 search_method=SearchMethod.ASTAR,
                 cancel_token: Optional[CancelToken] = None,
                 on_status: Optional[StatusCallback] = None):
        if heuristic_divisor <= 0:
            raise ValueError(t("error.solver.heuristic_divisor", value=heuristic_divisor))

        self.target = Shape.from_string(target_code)
        starting_shapes = [Shape.from_string(code) for code in starting_codes]
        for shape in starting_shapes:
            if shape.num_parts != self.target.num_parts:
                raise IncompatibleShapeArity(t("error.solver.num_parts", code=shape.to_code(),
                                               actual=shape.num_parts, expected=self.target.num_parts))

        self.operations = Operation.parse_list(operations)
        self.config = ShapeOperationConfig(max_layers)
        self.max_states_per_level = max_states_per_level
        self.prevent_waste = prevent_waste
        self.orientation_sensitive = orientation_sensitive
        self.monolayer_painting = monolayer_painting
        self.heuristic_divisor = heuristic_divisor
        self.search_method = SearchMethod.from_name(search_method)
        self.cancel_token = cancel_token or CancelToken()
        self.on_status = on_status

        self.acceptable = get_acceptable_codes(self.target, orientation_sensitive)
        self.target_crystal_colors = get_crystal_colors(self.target)
        self.max_possible_sim = get_similarity(self.target, self.target)

        self.shapes: Dict[int, str] = {}
        self.next_id = 0
        self._parsed: Dict[str, Shape] = {}
        self._best_sim_cache: Dict[str, float] = {}
        self._score_cache: Dict[str, float] = {}

        initial = []
        for shape in starting_shapes:
            initial.append(self._register(shape))
        self.initial_ids = tuple(initial)

    # ------------------------------------------------------------------
    #  id / 상태 관리
    # ------------------------------------------------------------------
    def _register(self, shape: Shape) -> int:
        new_id = self.next_id
        self.next_id += 1
        code = shape.to_code()
        self.shapes[new_id] = code
        self._parsed.setdefault(code, shape)
        return new_id

    def _shape(self, shape_id: int) -> Shape:
        code = self.shapes[shape_id]
        shape = self._parsed.get(code)
        if shape is None:
            shape = Shape.from_string(code)
            self._parsed[code] = shape
        return shape

    def state_key(self, ids: Sequence[int]) -> StateKey:
        return tuple(sorted(Counter(self.shapes[i] for i in ids).items()))

    def is_goal(self, ids: Sequence[int]) -> bool:
        codes = [self.shapes[i] for i in ids]
        has_target = any(code in self.acceptable for code in codes)
        all_target = all(code in self.acceptable for code in codes) if self.prevent_waste else True
        return has_target and all_target

    # ------------------------------------------------------------------
    #  휴리스틱 / 점수
    # ------------------------------------------------------------------
    def _best_similarity(self, code: str) -> float:
        sim = self._best_sim_cache.get(code)
        if sim is None:
            shape = self._parsed.get(code) or Shape.from_string(code)
            sim = get_similarity(shape, self.target)
            if not self.orientation_sensitive:
                for rcode in get_all_rotations(shape):
                    sim = max(sim, get_similarity(Shape.from_string(rcode), self.target))
            self._best_sim_cache[code] = sim
        return sim

    def heuristic(self, ids: Sequence[int]) -> float:
        """
        남은 작동 수의 하한.

        세 항목은 각각 독립적인 하한이므로 합이 아니라 최댓값을 사용합니다.
        - 층 부족분: 작동 하나로 최대 층 수는 많아야 두 배가 됩니다 (스태커)
        - 유사도 부족분: heuristic_divisor 가 1 이상이면 목표가 아닐 때 1
        - 낭비 방지: 작동 하나는 목표가 아닌 도형을 최대 두 개까지만 바꿉니다
        """
        if not ids:
            return math.inf

        best_sim = 0.0
        max_layers = 0
        for i in ids:
            max_layers = max(max_layers, self._shape(i).num_layers)
            best_sim = max(best_sim, self._best_similarity(self.shapes[i]))

        layer_term = 0
        layers = max_layers
        while layers < self.target.num_layers:
            layers *= 2
            layer_term += 1

        sim_term = math.ceil(max(0.0, self.max_possible_sim - best_sim) / self.heuristic_divisor)

        waste_term = 0
        if self.prevent_waste:
            extra = sum(1 for i in ids if self.shapes[i] not in self.acceptable)
            waste_term = (extra + 1) // 2
        return max(layer_term, sim_term, waste_term)

    def state_score(self, ids: Sequence[int]) -> float:
        """BFS 가지치기용 점수: 도형별 목표 유사도의 평균"""
        if not ids:
            return 0.0
        total = 0.0
        for i in ids:
            code = self.shapes[i]
            score = self._score_cache.get(code)
            if score is None:
                score = get_similarity(self._shape(i), self.target)
                self._score_cache[code] = score
            total += score
        return total / len(ids)

    # ------------------------------------------------------------------
    #  후속 상태 생성
    # ------------------------------------------------------------------
    def _colors_for(self, op: Operation, shape: Shape) -> List[Optional[str]]:
        if not op.needs_color:
            return [None]
        if op is Operation.PAINTER:
            if self.monolayer_painting and shape.num_layers != 1:
                return []
            return get_paint_colors(shape, self.target)
        return list(self.target_crystal_colors)

    def _make_successor(self, ids: Tuple[int, ...], consumed: Tuple[int, ...], op: Operation,
                        outputs: List[Shape], color: Optional[str]):
        new_ids = tuple(self._register(s) for s in outputs if not s.is_empty())
        remaining = tuple(i for i in ids if i not in consumed)
        if not new_ids and not (op is Operation.TRASH and remaining):
            return None
        step = OperationStep(op, consumed, new_ids, color)
        return remaining + new_ids, step

    def successors(self, ids: Tuple[int, ...]) -> Iterator[Tuple[Tuple[int, ...], OperationStep]]:
        token = self.cancel_token
        for op in self.operations:
            token.raise_if_cancelled()
            if op.input_count == 1:
                for shape_id in ids:
                    token.raise_if_cancelled()
                    shape = self._shape(shape_id)
                    for color in self._colors_for(op, shape):
                        outputs = apply_operation(op, [shape], color, self.config)
                        successor = self._make_successor(ids, (shape_id,), op, outputs, color)
                        if successor is not None:
                            yield successor
            else:
                for id1 in ids:
                    for id2 in ids:
                        token.raise_if_cancelled()
                        if id1 == id2:
                            continue
                        outputs = apply_operation(op, [self._shape(id1), self._shape(id2)], None, self.config)
                        successor = self._make_successor(ids, (id1, id2), op, outputs, None)
                        if successor is not None:
                            yield successor

    # ------------------------------------------------------------------
    #  탐색
    # ------------------------------------------------------------------
    def solve(self) -> SolveResult:
        """
        탐색을 실행합니다.

        Returns:
            SolveResult: 해답 경로, 깊이(작동 수), 탐색한 상태 수

        Raises:
            Cancelled: cancel_token 으로 취소된 경우
            NoSolutionFound: 탐색 공간을 모두 소진한 경우
        """
        _log(f"DEBUG: 탐색 시작 ({self.search_method.value}) 목표={self.target.to_code()} "
             f"시작={[self.shapes[i] for i in self.initial_ids]} 작동={[op.value for op in self.operations]}")
        if self.search_method is SearchMethod.ASTAR:
            return self._solve_astar()
        return self._solve_bfs()

    def _build_path(self, steps: Sequence[OperationStep]) -> List[SolutionStep]:
        path = []
        for step in steps:
            path.append(SolutionStep(
                operation=step.operation.value,
                inputs=[(i, self.shapes[i]) for i in step.input_ids],
                outputs=[(i, self.shapes[i]) for i in step.output_ids],
                params={"color": step.color} if step.color else {},
            ))
        return path

    def _solve_astar(self) -> SolveResult:
        throttle = _StatusThrottle(self.on_status, every_count=STATUS_EVERY_STATES)
        initial_key = self.state_key(self.initial_ids)
        nodes: Dict[StateKey, SearchNode] = {
            initial_key: SearchNode(initial_key, 0, self.heuristic(self.initial_ids), self.initial_ids)
        }
        open_heap = []
        sequence = 0
        heapq.heappush(open_heap, (nodes[initial_key].h, sequence, 0, initial_key))

        states_explored = 0
        while open_heap:
            self.cancel_token.raise_if_cancelled()
            _, _, g, key = heapq.heappop(open_heap)
            node = nodes[key]
            if g > node.g:
                # 더 짧은 경로로 갱신된 오래된 항목
                continue
            states_explored += 1

            if self.is_goal(node.available_ids):
                steps = []
                cur = node
                while cur.parent_key is not None:
                    steps.append(cur.step)
                    cur = nodes[cur.parent_key]
                steps.reverse()
                _log(f"DEBUG: A* 목표 도달. 깊이={len(steps)}, 탐색 상태 수={states_explored}")
                return SolveResult(self._build_path(steps), len(steps), states_explored)

            for new_ids, step in self.successors(node.available_ids):
                new_key = self.state_key(new_ids)
                new_g = node.g + 1
                existing = nodes.get(new_key)
                if existing is not None and new_g >= existing.g:
                    continue
                h = existing.h if existing is not None else self.heuristic(new_ids)
                if math.isinf(h):
                    continue
                nodes[new_key] = SearchNode(new_key, new_g, h, new_ids, key, step)
                sequence += 1
                heapq.heappush(open_heap, (new_g + h, sequence, new_g, new_key))

            throttle.maybe_emit(states_explored, lambda: t(
                "solver.status.astar", g=node.g, open=len(open_heap),
                explored=states_explored, visited=len(nodes)))

        _log(f"DEBUG: A* 탐색 공간 소진. 탐색 상태 수={states_explored}")
        raise NoSolutionFound(states_explored)

    def _prune(self, states: list) -> list:
        limit = self.max_states_per_level
        if limit is None or len(states) <= limit:
            return states
        # 점수가 높은 순서 (안정 정렬)
        return sorted(states, key=lambda s: s[2], reverse=True)[:limit]

    def _solve_bfs(self) -> SolveResult:
        throttle = _StatusThrottle(self.on_status)
        visited = {self.state_key(self.initial_ids)}
        current_level = [(self.initial_ids, [], self.state_score(self.initial_ids))]
        depth = 0

        while current_level:
            next_level = []
            for ids, path, _ in current_level:
                self.cancel_token.raise_if_cancelled()
                if self.is_goal(ids):
                    _log(f"DEBUG: BFS 목표 도달. 깊이={depth}, 방문 상태 수={len(visited)}")
                    return SolveResult(self._build_path(path), depth, len(visited))

                for new_ids, step in self.successors(ids):
                    key = self.state_key(new_ids)
                    if key in visited:
                        continue
                    visited.add(key)
                    next_level.append((new_ids, path + [step], self.state_score(new_ids)))

            pruned = self._prune(next_level)
            pruned_count = len(next_level) - len(pruned)
            current_level = pruned
            depth += 1
            if pruned_count:
                _log(f"DEBUG: BFS 깊이 {depth}: {pruned_count}개 상태 가지치기")
            throttle.maybe_emit(0, lambda: t(
                "solver.status.bfs", depth=depth, states=len(current_level), visited=len(visited),
                pruned=pruned_count))

        _log(f"DEBUG: BFS 탐색 공간 소진. 방문 상태 수={len(visited)}")
        raise NoSolutionFound(len(visited))


def solve_shape(target_code: str, starting_codes: Sequence[str], operations: Sequence,
                **options) -> SolveResult:
    """
    ShapeSolver 를 만들어 바로 실행하는 편의 함수

    Args:
        target_code (str): 목표 도형 코드
        starting_codes: 시작 도형 코드 목록
        operations: 허용할 작동 (Operation 또는 프로토콜 이름)
        **options: ShapeSolver 의 나머지 설정

    Returns:
        SolveResult: 탐색 결과
    """
    return ShapeSolver(target_code, starting_codes, operations, **options).solve()
