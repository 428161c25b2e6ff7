from __future__ import annotations

import pytest

from shape import Shape
from shape_analyzer import (
    extract_layers, filter_starting_shapes, get_all_rotations, get_crystal_colors,
    get_paint_colors, get_similarity,
)


def S(code: str) -> Shape:
    return Shape.from_string(code)


def test_all_rotations_are_deduplicated():
    assert get_all_rotations(S("CuCuCuCu")) == ["CuCuCuCu"]
    assert get_all_rotations(S("CuRuCuRu")) == ["CuRuCuRu", "RuCuRuCu"]
    assert get_all_rotations(S("CuRuSuWu")) == ["CuRuSuWu", "WuCuRuSu", "SuWuCuRu", "RuSuWuCu"]


def test_similarity_of_identical_shapes_is_max():
    shape = S("CuRuSuWu:P-P-----")
    assert get_similarity(shape, shape) == pytest.approx(1.0)


def test_similarity_bounds_and_order():
    target = S("CrCrCrCr")
    close = S("CrCrCrCu")
    far = S("RuRuRuRu")
    assert 0.0 <= get_similarity(far, target) < get_similarity(close, target) < 1.0


def test_similarity_ignores_rotation_for_order_term():
    # 위치 점수는 가장 잘 맞는 회전으로 계산합니다
    assert get_similarity(S("CuRuCuRu"), S("RuCuRuCu")) == pytest.approx(1.0)


def test_similarity_layer_mismatch_has_no_order_score():
    one = S("CuCuCuCu")
    two = S("CuCuCuCu:CuCuCuCu")
    # 종류 4/8, 종류+색상 4/8, 위치 0
    assert get_similarity(one, two) == pytest.approx(0.5 * 0.5 + 0.3 * 0.5)


def test_paint_colors():
    target = S("CrCgRbRb:Cy------")
    assert get_paint_colors(S("CuCuCuCu"), target) == ["r", "g", "y"]
    assert get_paint_colors(S("CrCrCrCr"), target) == ["g", "y"]
    assert get_paint_colors(S("SuSuSuSu"), target) == []
    # 맨 윗층만 봅니다
    assert get_paint_colors(S("CuCuCuCu:RuRuRuRu"), target) == ["b"]


def test_crystal_colors():
    assert get_crystal_colors(S("CuCuCuCu")) == ["u"]
    assert get_crystal_colors(S("crcg----:crCu----")) == ["r", "g"]


def test_extract_layers_modes():
    target = S("CuRuCrP-:CuCuCuCu")
    assert extract_layers(target, "layer") == ["CuRuCrP-", "CuCuCuCu"]
    assert extract_layers(target, "part") == ["Cu--Cr--", "--Ru----", "------P-", "CuCuCuCu"]
    assert extract_layers(target, "color") == ["CuRu----", "----Cr--", "------P-", "CuCuCuCu"]
    assert extract_layers(target, "part-color") == [
        "Cu------", "--Ru----", "----Cr--", "------P-", "CuCuCuCu",
    ]


def test_extract_layers_options():
    target = S("CuRuCrP-:crcrCuCu")
    assert extract_layers(target, "part", include_pins=False) == ["Cu--Cr--", "--Ru----", "----CuCu"]
    assert extract_layers(target, "layer", include_color=False) == ["CuRuCuP-", "----CuCu"]


def test_extract_layers_rejects_unknown_mode():
    with pytest.raises(ValueError):
        extract_layers(S("CuCuCuCu"), "diagonal")


def test_filter_starting_shapes():
    starting = ["CuCuCuCu", "RuRuRuRu", "P-P-P-P-", "CrSuSuSu"]
    assert filter_starting_shapes(starting, "CuCuCuCu") == ["CuCuCuCu", "CrSuSuSu"]
    assert filter_starting_shapes(starting, "P-P-CuCu") == ["CuCuCuCu", "P-P-P-P-", "CrSuSuSu"]
