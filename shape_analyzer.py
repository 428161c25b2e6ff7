"""
솔버용 도형 분석 함수 모음
회전 변형, 유사도 점수, 칠할 색상 후보, 레이어 추출 등을 계산합니다.
"""

from __future__ import annotations
from collections import Counter
from typing import Dict, List, Optional, Sequence

from i18n import t
from shape import (
    Shape, Part, NOTHING_CHAR, PIN_CHAR, CRYSTAL_CHAR, UNCOLORED_CHAR, UNPAINTABLE_SHAPES,
)
from shape_operations import rotate_cw

DEFAULT_SIMILARITY_WEIGHTS = {"type": 0.5, "color": 0.3, "order": 0.2}
EXTRACT_MODES = ("layer", "part", "color", "part-color")


def get_all_rotations(shape: Shape) -> List[str]:
    """
    도형의 모든 회전 변형 코드를 반환합니다 (칸 수만큼 시계방향 회전, 중복 제거).

    Args:
        shape (Shape): 원본 도형

    Returns:
        List[str]: 원본부터 시작하는 회전 코드 목록
    """
    rotations = []
    current = shape
    for _ in range(shape.num_parts):
        code = current.to_code()
        if code not in rotations:
            rotations.append(code)
        current = rotate_cw(current)[0]
    return rotations


def get_rotation_shapes(shape: Shape) -> List[Shape]:
    rotations = []
    current = shape
    for _ in range(shape.num_parts):
        rotations.append(current)
        current = rotate_cw(current)[0]
    return rotations


def extract_layers(shape: Shape, mode: str = 'part', include_pins: bool = True,
                   include_color: bool = True) -> List[str]:
    """
    목표 도형의 각 층을 단층 시작 도형들로 나눕니다.

    Args:
        shape (Shape): 목표 도형
        mode (str): 'layer' (층 하나씩), 'part' (종류별), 'color' (색상별), 'part-color' (종류+색상별)
        include_pins (bool): False 면 핀을 건너뜁니다
        include_color (bool): False 면 모든 도형을 무색(u)으로 만듭니다

    Returns:
        List[str]: 단층 도형 코드 목록
    """
    if mode not in EXTRACT_MODES:
        raise ValueError(t("error.extract.mode", mode=mode))

    num_parts = shape.num_parts
    grouped_layers = []

    for layer in shape.layers:
        seen: Dict[str, List] = {}
        for part_index, part in enumerate(layer):
            if not include_pins and part.shape == PIN_CHAR:
                continue
            if part.shape in (NOTHING_CHAR, CRYSTAL_CHAR):
                continue

            if mode == 'layer':
                key = "valid"
            elif mode == 'part':
                key = part.shape
            elif mode == 'color':
                key = part.color
            else:
                key = f"{part.shape}-{part.color}"
            seen.setdefault(key, []).append((part_index, part))

        for entries in seen.values():
            new_layer = [Part(NOTHING_CHAR, NOTHING_CHAR)] * num_parts
            for index, part in entries:
                if include_color or part.shape == PIN_CHAR:
                    new_layer[index] = part
                else:
                    new_layer[index] = Part(part.shape, UNCOLORED_CHAR)
            grouped_layers.append("".join(p.shape + p.color for p in new_layer))

    return grouped_layers


def filter_starting_shapes(starting_codes: Sequence[str], target_code: str) -> List[str]:
    """
    목표 도형에 쓰이는 종류를 하나도 갖지 않은 시작 도형을 제거합니다.

    핀과 크리스탈은 목표 도형에 있을 때만 쓰이는 것으로 봅니다.
    """
    target = Shape.from_string(target_code)
    target_kinds = {p.shape for layer in target.layers for p in layer if p.shape != NOTHING_CHAR}

    result = []
    for code in starting_codes:
        shape = Shape.from_string(code)
        kinds = {p.shape for layer in shape.layers for p in layer if p.shape != NOTHING_CHAR}
        if kinds & target_kinds:
            result.append(code)
    return result


def get_paint_colors(input_shape: Shape, target_shape: Shape) -> List[str]:
    """
    페인터 색상 후보: 입력 도형 맨 윗층의 칠할 수 있는 각 도형에 대해,
    목표 도형이 같은 종류에 쓰는 색상 중 그 칸이 아직 갖지 않은 색상들.
    """
    target_color_map: Dict[str, List[str]] = {}
    for layer in target_shape.layers:
        for part in layer:
            if part.shape not in UNPAINTABLE_SHAPES and part.color != UNCOLORED_CHAR:
                colors = target_color_map.setdefault(part.shape, [])
                if part.color not in colors:
                    colors.append(part.color)

    valid_colors = []
    for part in input_shape.layers[-1]:
        if part.shape in UNPAINTABLE_SHAPES:
            continue
        for color in target_color_map.get(part.shape, []):
            if color != part.color and color not in valid_colors:
                valid_colors.append(color)
    return valid_colors


def get_crystal_colors(shape: Shape) -> List[str]:
    colors = []
    for layer in shape.layers:
        for part in layer:
            if part.shape == CRYSTAL_CHAR and part.color not in colors:
                colors.append(part.color)
    return colors if colors else [UNCOLORED_CHAR]


def _get_part_type_counts(shape: Shape) -> Counter:
    return Counter(p.shape for layer in shape.layers for p in layer)


def _get_part_counts(shape: Shape) -> Counter:
    return Counter(f"{p.shape}:{p.color}" for layer in shape.layers for p in layer)


def _compare_counts(counts_a: Counter, counts_b: Counter) -> float:
    total = 0
    match = 0
    for key in set(counts_a) | set(counts_b):
        a = counts_a.get(key, 0)
        b = counts_b.get(key, 0)
        match += min(a, b)
        total += max(a, b)
    # 둘 다 비어있는 경우
    return 1.0 if total == 0 else match / total


def _compare_part_order(shape1: Shape, shape2: Shape) -> float:
    if shape1.num_layers != shape2.num_layers:
        return 0.0

    best_ratio = 0.0
    for rotated in get_rotation_shapes(shape1):
        total = 0
        correct = 0
        for layer_a, layer_b in zip(rotated.layers, shape2.layers):
            length = min(len(layer_a), len(layer_b))
            total += length
            correct += sum(1 for i in range(length) if layer_a[i].shape == layer_b[i].shape)
        if total > 0:
            best_ratio = max(best_ratio, correct / total)
    return best_ratio


def get_similarity(shape1: Shape, shape2: Shape, weights: Optional[Dict[str, float]] = None) -> float:
    """
    두 도형의 유사도 (0~1).

    종류 개수 겹침, 종류+색상 개수 겹침, 가장 잘 맞는 회전에서의 위치별 종류 일치율을
    가중 합산합니다.
    """
    weights = weights or DEFAULT_SIMILARITY_WEIGHTS
    type_sim = _compare_counts(_get_part_type_counts(shape1), _get_part_type_counts(shape2))
    color_sim = _compare_counts(_get_part_counts(shape1), _get_part_counts(shape2))
    order_sim = _compare_part_order(shape1, shape2)
    return type_sim * weights["type"] + color_sim * weights["color"] + order_sim * weights["order"]
