"""
도형 연산 엔진 - 회전, 커터, 스와퍼, 스태커, 페인터, 핀 푸셔, 크리스탈 생성기 등
모든 건물 작동과 그 안에서 쓰이는 낙하(물리)/연결성 시뮬레이션을 담당하는 모듈

모든 연산은 입력 도형을 변경하지 않고 새 Shape 목록을 반환합니다.
"""

from __future__ import annotations
from enum import Enum
from typing import List, Optional, Sequence, Set, Tuple, Callable

from i18n import t
from shape import (
    Shape, Part, NOTHING, NOTHING_CHAR, PIN_CHAR, CRYSTAL_CHAR,
    UNPAINTABLE_SHAPES, REPLACED_BY_CRYSTAL, empty_layer,
)

DEFAULT_MAX_LAYERS = 4

Grid = List[List[Part]]
Coord = Tuple[int, int]


class IncompatibleShapeArity(ValueError):
    """레이어당 칸 수가 서로 다른 도형으로 2입력 연산을 시도한 경우"""
    pass


class ShapeOperationConfig:
    """연산 설정. max_layers 는 스태커/핀 푸셔가 허용하는 최대 층 수입니다."""

    def __init__(self, max_layers: int = DEFAULT_MAX_LAYERS):
        if max_layers < 1:
            raise ValueError(t("error.config.max_layers", max_layers=max_layers))
        self.max_layers = max_layers

    def __repr__(self) -> str:
        return f"ShapeOperationConfig(max_layers={self.max_layers})"


class Operation(Enum):
    """
    건물 작동 종류. 값은 외부 메시지 프로토콜에서 쓰는 이름입니다.
    input_count 와 needs_color 는 데이터로 들고 다닙니다.
    """
    ROTATE_CW = "Rotator CW"
    ROTATE_CCW = "Rotator CCW"
    ROTATE_180 = "Rotator 180"
    HALF_DESTROYER = "Half Destroyer"
    CUTTER = "Cutter"
    SWAPPER = "Swapper"
    STACKER = "Stacker"
    PAINTER = "Painter"
    PIN_PUSHER = "Pin Pusher"
    CRYSTAL_GENERATOR = "Crystal Generator"
    TRASH = "Trash"
    BELT_SPLIT = "Belt Split"

    @property
    def input_count(self) -> int:
        return 2 if self in (Operation.SWAPPER, Operation.STACKER) else 1

    @property
    def needs_color(self) -> bool:
        return self in (Operation.PAINTER, Operation.CRYSTAL_GENERATOR)

    @classmethod
    def from_name(cls, name: str) -> Optional[Operation]:
        try:
            return cls(name)
        except ValueError:
            return None

    @classmethod
    def parse_list(cls, names: Sequence[str]) -> List[Operation]:
        """프로토콜 이름 목록을 변환합니다. 알 수 없는 이름은 건너뜁니다."""
        result = []
        for name in names:
            op = name if isinstance(name, Operation) else cls.from_name(name)
            if op is not None and op not in result:
                result.append(op)
        return result


# ==============================================================================
#  연결성 / 낙하 시뮬레이션
# ==============================================================================
def _gravity_connected(part1: Part, part2: Part) -> bool:
    if part1.shape in (NOTHING_CHAR, PIN_CHAR) or part2.shape in (NOTHING_CHAR, PIN_CHAR):
        return False
    return True


def _crystals_fused(part1: Part, part2: Part) -> bool:
    return part1.shape == CRYSTAL_CHAR and part2.shape == CRYSTAL_CHAR


def _get_connected_single_layer(layer: Sequence[Part], index: int,
                                connected_func: Callable[[Part, Part], bool]) -> List[int]:
    """
    한 레이어 안에서 index 부터 양쪽으로 원형으로 걸어가며 연결된 칸을 모읍니다.
    각 방향에서 처음 끊기는 지점에서 멈춥니다 (전이적 폐포가 아님).
    """
    if layer[index].shape == NOTHING_CHAR:
        return []

    n = len(layer)
    connected = [index]

    previous = index
    for i in range(index + 1, index + n):
        cur = i % n
        if not connected_func(layer[previous], layer[cur]):
            break
        connected.append(cur)
        previous = cur

    previous = index
    for i in range(index - 1, index - n, -1):
        cur = i % n
        if cur in connected:
            break
        if not connected_func(layer[previous], layer[cur]):
            break
        connected.append(cur)
        previous = cur

    return connected


def _get_connected_multi_layer(layers: Grid, layer_index: int, part_index: int,
                               connected_func: Callable[[Part, Part], bool]) -> List[Coord]:
    if layers[layer_index][part_index].shape == NOTHING_CHAR:
        return []

    connected = [(layer_index, part_index)]
    seen = {(layer_index, part_index)}
    # connected 를 작업 목록으로 사용 (순회 중 뒤에 추가됨)
    i = 0
    while i < len(connected):
        cur_layer, cur_part = connected[i]
        i += 1

        for idx in _get_connected_single_layer(layers[cur_layer], cur_part, connected_func):
            if (cur_layer, idx) not in seen:
                seen.add((cur_layer, idx))
                connected.append((cur_layer, idx))

        for neighbor_layer in (cur_layer - 1, cur_layer + 1):
            if not 0 <= neighbor_layer < len(layers):
                continue
            coord = (neighbor_layer, cur_part)
            if coord in seen:
                continue
            if connected_func(layers[cur_layer][cur_part], layers[neighbor_layer][cur_part]):
                seen.add(coord)
                connected.append(coord)

    return connected


def _break_crystals(layers: Grid, layer_index: int, part_index: int):
    """(layer_index, part_index) 에서 융합된 크리스탈 전체를 파괴합니다. layers 를 직접 수정합니다."""
    for cur_layer, cur_part in _get_connected_multi_layer(layers, layer_index, part_index, _crystals_fused):
        layers[cur_layer][cur_part] = NOTHING


def _compute_supported(layers: Grid) -> Set[Coord]:
    """
    지지된 칸 집합을 계산합니다.

    바닥층의 도형에서 시작하는 작업 목록 방식의 최소 고정점입니다. 어떤 칸이 지지되면
    - 바로 위 칸 (비어있지 않으면)
    - 같은 층에서 중력 연결된 양옆 칸
    - 바로 아래 칸 (둘 다 크리스탈이라 융합된 경우)
    도 지지됩니다.
    """
    supported: Set[Coord] = set()
    if not layers:
        return supported

    num_parts = len(layers[0])
    worklist = []
    for p in range(num_parts):
        if layers[0][p].shape != NOTHING_CHAR:
            supported.add((0, p))
            worklist.append((0, p))

    while worklist:
        l, p = worklist.pop()
        part = layers[l][p]
        candidates = []

        if l + 1 < len(layers):
            candidates.append((l + 1, p))
        for np_ in ((p + 1) % num_parts, (p - 1) % num_parts):
            if _gravity_connected(part, layers[l][np_]):
                candidates.append((l, np_))
        if l > 0 and _crystals_fused(part, layers[l - 1][p]):
            candidates.append((l - 1, p))

        for coord in candidates:
            if coord in supported:
                continue
            cl, cp = coord
            if layers[cl][cp].shape == NOTHING_CHAR:
                continue
            supported.add(coord)
            worklist.append(coord)

    return supported


def _sep_in_groups(layer: Sequence[Part]) -> List[List[int]]:
    handled = set()
    groups = []
    for part_index in range(len(layer)):
        if part_index in handled:
            continue
        group = _get_connected_single_layer(layer, part_index, _gravity_connected)
        if group:
            groups.append(group)
            handled.update(group)
    return groups


def _make_layers_fall(layers: Grid) -> Grid:
    """
    낙하 시뮬레이션. layers 를 직접 수정하고 반환합니다.

    1. 지지되지 않은 크리스탈은 떨어지면서 깨집니다.
    2. 지지를 다시 계산하고, 지지되지 않은 같은 층 그룹은 한 덩어리로 떨어집니다.
    """
    supported = _compute_supported(layers)

    for l, layer in enumerate(layers):
        for p, part in enumerate(layer):
            if part.shape == CRYSTAL_CHAR and (l, p) not in supported:
                layer[p] = NOTHING

    supported = _compute_supported(layers)

    for layer_index in range(1, len(layers)):
        layer = layers[layer_index]
        for group in _sep_in_groups(layer):
            if any((layer_index, p) in supported for p in group):
                continue

            fall_to = layer_index
            while fall_to > 0 and all(layers[fall_to - 1][p].shape == NOTHING_CHAR for p in group):
                fall_to -= 1

            if fall_to == layer_index:
                continue
            for p in group:
                layers[fall_to][p] = layer[p]
                layer[p] = NOTHING

    return layers


def _clean_up_empty_upper_layers(layers: Grid) -> Grid:
    if not layers:
        return []
    for i in range(len(layers) - 1, -1, -1):
        if any(p.shape != NOTHING_CHAR for p in layers[i]):
            return layers[:i + 1]
    # 최소 한 층은 남깁니다
    return [layers[0]]


def _check_same_num_parts(op_name: str, *shapes: Shape):
    expected = shapes[0].num_parts
    for shape in shapes[1:]:
        if shape.num_parts != expected:
            raise IncompatibleShapeArity(t("error.operation.num_parts",
                                           operation=op_name, expected=expected, actual=shape.num_parts))


def apply_physics(shape: Shape) -> Shape:
    """도형에 낙하 시뮬레이션을 적용하고 위쪽 빈 층을 정리한 결과를 반환합니다."""
    return Shape(_clean_up_empty_upper_layers(_make_layers_fall(shape.as_lists())))


def is_stable(shape: Shape) -> bool:
    return apply_physics(shape) == shape


# ==============================================================================
#  건물 작동
# ==============================================================================
def cut(shape: Shape, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    """
    도형을 두 개의 대칭 경계에서 자릅니다.

    Returns:
        List[Shape]: [큰 절반 (뒤쪽 ceil(n/2)칸), 나머지 (앞쪽 칸)]
    """
    n = shape.num_parts
    take = (n + 1) // 2
    layers = shape.as_lists()

    # 경계를 가로지르는 크리스탈 융합은 자르기 전에 깨집니다
    if n >= 2:
        cut_points = [(0, n - 1), (n - take, n - take - 1)]
        for layer_index in range(len(layers)):
            for start, end in cut_points:
                if _crystals_fused(layers[layer_index][start], layers[layer_index][end]):
                    _break_crystals(layers, layer_index, start)

    shape_a = []
    shape_b = []
    for layer in layers:
        shape_a.append([NOTHING] * (n - take) + layer[n - take:])
        shape_b.append(layer[:n - take] + [NOTHING] * take)

    return [
        Shape(_clean_up_empty_upper_layers(_make_layers_fall(shape_a))),
        Shape(_clean_up_empty_upper_layers(_make_layers_fall(shape_b))),
    ]


def half_cut(shape: Shape, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    return [cut(shape, config)[1]]


def rotate_cw(shape: Shape, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    return [Shape([(layer[-1],) + layer[:-1] for layer in shape.layers])]


def rotate_ccw(shape: Shape, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    return [Shape([layer[1:] + (layer[0],) for layer in shape.layers])]


def rotate_180(shape: Shape, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    take = (shape.num_parts + 1) // 2
    return [Shape([layer[take:] + layer[:take] for layer in shape.layers])]


def swap_halves(shape_a: Shape, shape_b: Shape,
                config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    _check_same_num_parts(Operation.SWAPPER.value, shape_a, shape_b)
    n = shape_a.num_parts
    num_layers = max(shape_a.num_layers, shape_b.num_layers)
    take = (n + 1) // 2
    a_large, a_rest = cut(shape_a, config)
    b_large, b_rest = cut(shape_b, config)

    def layer_or_empty(s: Shape, i: int):
        return list(s.layers[i]) if i < s.num_layers else list(empty_layer(n))

    result_a = []
    result_b = []
    for i in range(num_layers):
        result_a.append(layer_or_empty(a_rest, i)[:n - take] + layer_or_empty(b_large, i)[n - take:])
        result_b.append(layer_or_empty(b_rest, i)[:n - take] + layer_or_empty(a_large, i)[n - take:])

    return [
        Shape(_clean_up_empty_upper_layers(result_a)),
        Shape(_clean_up_empty_upper_layers(result_b)),
    ]


def stack(bottom: Shape, top: Shape, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    config = config or ShapeOperationConfig()
    _check_same_num_parts(Operation.STACKER.value, bottom, top)
    new_layers = bottom.as_lists() + [list(empty_layer(bottom.num_parts))] + top.as_lists()
    processed = _clean_up_empty_upper_layers(_make_layers_fall(new_layers))
    return [Shape(processed[:config.max_layers])]


def top_paint(shape: Shape, color: str, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    new_layers = list(shape.layers[:-1])
    new_layers.append(tuple(
        p if p.shape in UNPAINTABLE_SHAPES else Part(p.shape, color)
        for p in shape.layers[-1]
    ))
    return [Shape(new_layers)]


def push_pin(shape: Shape, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    config = config or ShapeOperationConfig()
    layers = shape.as_lists()
    added_pins = [NOTHING if p.shape == NOTHING_CHAR else Part(PIN_CHAR, NOTHING_CHAR) for p in layers[0]]

    if len(layers) < config.max_layers:
        new_layers = [added_pins] + layers
    else:
        new_layers = [added_pins] + layers[:config.max_layers - 1]
        removed_layer = layers[config.max_layers - 1]
        top_index = len(new_layers) - 1
        for part_index in range(len(new_layers[top_index])):
            if _crystals_fused(new_layers[top_index][part_index], removed_layer[part_index]):
                _break_crystals(new_layers, top_index, part_index)

    return [Shape(_clean_up_empty_upper_layers(_make_layers_fall(new_layers)))]


def gen_crystal(shape: Shape, color: str, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    # 핀과 빈 칸만 크리스탈로 바뀌고 나머지는 칠하지 않고 그대로 둡니다
    return [Shape([
        tuple(Part(CRYSTAL_CHAR, color) if p.shape in REPLACED_BY_CRYSTAL else p for p in layer)
        for layer in shape.layers
    ])]


def trash(shape: Shape, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    return []


def belt_split(shape: Shape, config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    return [shape, shape]


def apply_operation(op: Operation, shapes: Sequence[Shape], color: Optional[str] = None,
                    config: Optional[ShapeOperationConfig] = None) -> List[Shape]:
    """
    Operation 종류에 맞는 건물 작동을 실행합니다.

    Args:
        op (Operation): 실행할 작동
        shapes: 입력 도형 (op.input_count 개)
        color: 색상이 필요한 작동(페인터, 크리스탈 생성기)의 색상
        config: 연산 설정

    Returns:
        List[Shape]: 출력 도형 목록 (0~2개, 순서 의미 있음)
    """
    config = config or ShapeOperationConfig()
    if len(shapes) != op.input_count:
        raise ValueError(t("error.operation.input_count",
                           operation=op.value, expected=op.input_count, actual=len(shapes)))
    if op.needs_color and color is None:
        raise ValueError(t("error.operation.color_required", operation=op.value))

    if op is Operation.ROTATE_CW:
        return rotate_cw(shapes[0], config)
    elif op is Operation.ROTATE_CCW:
        return rotate_ccw(shapes[0], config)
    elif op is Operation.ROTATE_180:
        return rotate_180(shapes[0], config)
    elif op is Operation.HALF_DESTROYER:
        return half_cut(shapes[0], config)
    elif op is Operation.CUTTER:
        return cut(shapes[0], config)
    elif op is Operation.SWAPPER:
        return swap_halves(shapes[0], shapes[1], config)
    elif op is Operation.STACKER:
        return stack(shapes[0], shapes[1], config)
    elif op is Operation.PAINTER:
        return top_paint(shapes[0], color, config)
    elif op is Operation.PIN_PUSHER:
        return push_pin(shapes[0], config)
    elif op is Operation.CRYSTAL_GENERATOR:
        return gen_crystal(shapes[0], color, config)
    elif op is Operation.TRASH:
        return trash(shapes[0], config)
    elif op is Operation.BELT_SPLIT:
        return belt_split(shapes[0], config)
    raise ValueError(t("error.operation.unknown", operation=op))
