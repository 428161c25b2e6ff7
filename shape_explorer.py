"""
도형 공간 탐험기 - 깊이 제한 안에서 도달 가능한 모든 도형과 작동을 그래프로 만듭니다.

목표를 찾는 탐색이 아니라 시각화용 도달 그래프를 만드는 것이 목적입니다.
색상이 필요한 작동은 그래프 크기를 제한하기 위해 대표 색상 하나로만 시험합니다.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Sequence

from i18n import t
from shape import Shape
from shape_operations import (
    Operation, ShapeOperationConfig, IncompatibleShapeArity, apply_operation, DEFAULT_MAX_LAYERS,
)
from shape_solver import CancelToken, StatusCallback, _log

DEFAULT_DEPTH_LIMIT = 999
REPRESENTATIVE_COLOR = "r"
# 두 순서를 모두 시험하는 2입력 작동 (출력이 같으면 작은 id 가 먼저인 순서만 유지)
ORDER_SENSITIVE_OPERATIONS = (Operation.STACKER,)


class ShapeExplorer:
    """도달 그래프를 만드는 탐험기"""

    def __init__(self, starting_codes: Sequence[str], operations: Sequence,
                 depth_limit: int = DEFAULT_DEPTH_LIMIT, max_layers: int = DEFAULT_MAX_LAYERS,
                 cancel_token: Optional[CancelToken] = None,
                 on_status: Optional[StatusCallback] = None):
        starting_shapes = [Shape.from_string(code) for code in starting_codes]
        if starting_shapes:
            expected = starting_shapes[0].num_parts
            for shape in starting_shapes[1:]:
                if shape.num_parts != expected:
                    raise IncompatibleShapeArity(t("error.solver.num_parts", code=shape.to_code(),
                                                   actual=shape.num_parts, expected=expected))

        self.starting_shapes = starting_shapes
        self.operations = Operation.parse_list(operations)
        self.depth_limit = depth_limit
        self.config = ShapeOperationConfig(max_layers)
        self.cancel_token = cancel_token or CancelToken()
        self.on_status = on_status

        self.shape_code_to_id: Dict[str, int] = {}
        self.shapes_list: List[Shape] = []
        self.ops_list: List[dict] = []
        self.edges: List[dict] = []

    def _add_shape_if_new(self, shape: Shape):
        code = shape.to_code()
        if code in self.shape_code_to_id:
            return self.shape_code_to_id[code], False
        new_id = len(self.shapes_list)
        self.shape_code_to_id[code] = new_id
        self.shapes_list.append(shape)
        return new_id, True

    def _record(self, op: Operation, input_ids: Sequence[int], outputs: List[Shape],
                color: Optional[str], newly_discovered: List[int]):
        op_id = f"op-{len(self.ops_list)}"
        self.ops_list.append({"id": op_id, "type": op.value, "params": {"color": color} if color else {}})
        for input_id in input_ids:
            self.edges.append({"source": f"shape-{input_id}", "target": op_id})
        for output in outputs:
            out_id, added = self._add_shape_if_new(output)
            if added:
                newly_discovered.append(out_id)
            self.edges.append({"source": op_id, "target": f"shape-{out_id}"})

    def _try_unary(self, op: Operation, primary_ids: List[int], newly_discovered: List[int]):
        color = REPRESENTATIVE_COLOR if op.needs_color else None
        for shape_id in primary_ids:
            self.cancel_token.raise_if_cancelled()
            shape = self.shapes_list[shape_id]
            if shape.is_empty():
                continue
            outputs = apply_operation(op, [shape], color, self.config)
            # 자기 자신을 만드는 결과는 건너뜁니다
            if any(o == shape for o in outputs):
                continue
            self._record(op, [shape_id], outputs, color, newly_discovered)

    def _binary_pairs(self, op: Operation, all_ids: List[int], primary_ids: List[int]):
        primary = set(primary_ids)
        if op in ORDER_SENSITIVE_OPERATIONS:
            for id2 in primary_ids:
                for id1 in all_ids:
                    yield id1, id2
                    if id1 not in primary:
                        yield id2, id1
        else:
            for id2 in primary_ids:
                for id1 in all_ids:
                    if id1 < id2:
                        yield id1, id2

    def _try_binary(self, op: Operation, all_ids: List[int], primary_ids: List[int],
                      newly_discovered: List[int]):
        for id1, id2 in self._binary_pairs(op, all_ids, primary_ids):
            self.cancel_token.raise_if_cancelled()
            s1 = self.shapes_list[id1]
            s2 = self.shapes_list[id2]
            if s1.is_empty() or s2.is_empty():
                continue

            outputs = apply_operation(op, [s1, s2], None, self.config)
            if op in ORDER_SENSITIVE_OPERATIONS and id1 > id2:
                reversed_outputs = apply_operation(op, [s2, s1], None, self.config)
                if reversed_outputs == outputs:
                    continue

            if any(o == s1 or o == s2 for o in outputs):
                continue
            self._record(op, [id1, id2], outputs, None, newly_discovered)

    def explore(self) -> dict:
        """
        깊이별로 새로 발견된 도형만 주 입력으로 사용해 그래프를 확장합니다.

        Returns:
            dict: {"shapes": [{id, code}], "ops": [{id, type, params}], "edges": [{source, target}]}

        Raises:
            Cancelled: cancel_token 으로 취소된 경우
        """
        frontier = []
        for shape in self.starting_shapes:
            shape_id, added = self._add_shape_if_new(shape)
            if added:
                frontier.append(shape_id)

        for depth in range(1, self.depth_limit + 1):
            self.cancel_token.raise_if_cancelled()
            if not frontier:
                break
            all_ids = list(range(len(self.shapes_list)))
            newly_discovered: List[int] = []

            for op in self.operations:
                self.cancel_token.raise_if_cancelled()
                if op.input_count == 1:
                    self._try_unary(op, frontier, newly_discovered)
                else:
                    self._try_binary(op, all_ids, frontier, newly_discovered)

            _log(f"DEBUG: 탐험 깊이 {depth}: 새 도형 {len(newly_discovered)}개, 총 {len(self.shapes_list)}개")
            if self.on_status is not None:
                self.on_status(t("explorer.status.depth", depth=depth,
                                 new=len(newly_discovered), shapes=len(self.shapes_list)))
            frontier = newly_discovered

        if self.on_status is not None:
            self.on_status(t("explorer.status.complete", shapes=len(self.shapes_list), ops=len(self.ops_list)))
        return self.to_graph()

    def to_graph(self) -> dict:
        return {
            "shapes": [{"id": f"shape-{i}", "code": s.to_code()} for i, s in enumerate(self.shapes_list)],
            "ops": list(self.ops_list),
            "edges": list(self.edges),
        }


def explore_shape_space(starting_codes: Sequence[str], operations: Sequence,
                        depth_limit: int = DEFAULT_DEPTH_LIMIT, max_layers: int = DEFAULT_MAX_LAYERS,
                        cancel_token: Optional[CancelToken] = None,
                        on_status: Optional[StatusCallback] = None) -> dict:
    return ShapeExplorer(starting_codes, operations, depth_limit, max_layers,
                         cancel_token, on_status).explore()
