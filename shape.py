from __future__ import annotations
from typing import List, Tuple, NamedTuple, Sequence

from i18n import t

# ==============================================================================
#  1. 도형 모델 상수
# ==============================================================================
NOTHING_CHAR = "-"
SHAPE_LAYER_SEPARATOR = ":"
PIN_CHAR = "P"
CRYSTAL_CHAR = "c"
UNCOLORED_CHAR = "u"

# 일반 도형 (칠할 수 있는 도형)
REGULAR_SHAPES = ['C', 'R', 'S', 'W', 'H', 'F', 'G']
VALID_SHAPES = REGULAR_SHAPES + [PIN_CHAR, CRYSTAL_CHAR, NOTHING_CHAR]
VALID_COLORS = ['u', 'r', 'g', 'b', 'c', 'm', 'y', 'w']

UNPAINTABLE_SHAPES = [CRYSTAL_CHAR, PIN_CHAR, NOTHING_CHAR]
REPLACED_BY_CRYSTAL = [PIN_CHAR, NOTHING_CHAR]
# 색상이 없는 도형은 색상 자리에 '-'를 사용합니다.
COLORLESS_SHAPES = [PIN_CHAR, NOTHING_CHAR]


class MalformedShapeCode(ValueError):
    """구조적으로 잘못된 도형 코드"""
    pass


class Part(NamedTuple):
    """한 층의 한 칸. shape 는 종류 문자, color 는 색상 문자입니다."""
    shape: str
    color: str

    def __repr__(self) -> str:
        return self.shape + self.color

    @property
    def is_nothing(self) -> bool:
        return self.shape == NOTHING_CHAR


NOTHING = Part(NOTHING_CHAR, NOTHING_CHAR)

Layer = Tuple[Part, ...]


def empty_layer(num_parts: int) -> Layer:
    return (NOTHING,) * num_parts


def find_shape_code_errors(code: str) -> List[str]:
    """
    도형 코드의 모든 문제를 찾아 사용자에게 보여줄 메시지 목록으로 반환합니다.

    Args:
        code (str): 콜론으로 구분된 레이어 문자열 (예: "CuCuCuCu:P-P-P-P-")

    Returns:
        List[str]: 오류 메시지 목록. 비어 있으면 유효한 코드입니다.
    """
    if not isinstance(code, str) or not code:
        return [t("error.shape_code.empty")]

    errors = []
    layer_codes = code.split(SHAPE_LAYER_SEPARATOR)
    expected_length = None

    for layer_index, layer_code in enumerate(layer_codes):
        layer_num = layer_index + 1
        if not layer_code:
            errors.append(t("error.shape_code.empty_layer", layer=layer_num))
            continue
        if len(layer_code) % 2 != 0:
            errors.append(t("error.shape_code.odd_length", layer=layer_num, length=len(layer_code)))
            continue
        if expected_length is None:
            expected_length = len(layer_code)
        elif len(layer_code) != expected_length:
            errors.append(t("error.shape_code.layer_length",
                            layer=layer_num, length=len(layer_code), expected=expected_length))

        for i in range(0, len(layer_code), 2):
            s, c = layer_code[i], layer_code[i + 1]
            position = i // 2 + 1
            if s not in VALID_SHAPES:
                errors.append(t("error.shape_code.invalid_shape", layer=layer_num, position=position, shape=s))
                continue
            if s in COLORLESS_SHAPES:
                if c != NOTHING_CHAR:
                    errors.append(t("error.shape_code.colored_colorless", layer=layer_num, position=position, shape=s))
            elif c not in VALID_COLORS:
                errors.append(t("error.shape_code.invalid_color", layer=layer_num, position=position, color=c))
    return errors


def is_valid_shape_code(code: str) -> bool:
    return not find_shape_code_errors(code)


class Shape:
    """
    불변 도형 값 객체.

    layers 는 아래층부터 위층 순서의 레이어 튜플이며, 모든 레이어는 같은 칸 수
    (num_parts)를 가집니다. 연산은 항상 새로운 Shape 를 만들고 기존 도형을
    변경하지 않습니다.
    """
    __slots__ = ("_layers", "_code")

    def __init__(self, layers: Sequence[Sequence[Part]]):
        if not layers:
            raise MalformedShapeCode(t("error.shape.no_layers"))
        frozen = tuple(tuple(layer) for layer in layers)
        num_parts = len(frozen[0])
        if num_parts == 0:
            raise MalformedShapeCode(t("error.shape_code.empty_layer", layer=1))
        for index, layer in enumerate(frozen):
            if len(layer) != num_parts:
                raise MalformedShapeCode(t("error.shape.layer_parts",
                                           layer=index + 1, length=len(layer), expected=num_parts))
        self._layers = frozen
        self._code = None

    @classmethod
    def from_string(cls, code: str) -> Shape:
        errors = find_shape_code_errors(code)
        if errors:
            raise MalformedShapeCode(errors[0])
        return cls.from_layers(code.split(SHAPE_LAYER_SEPARATOR))

    @classmethod
    def from_layers(cls, layer_codes: Sequence[str]) -> Shape:
        """레이어 코드 목록(각각 '종류+색상' 쌍의 연속)으로 도형을 만듭니다."""
        layers = []
        for layer_code in layer_codes:
            if len(layer_code) % 2 != 0:
                raise MalformedShapeCode(t("error.shape_code.odd_length",
                                           layer=len(layers) + 1, length=len(layer_code)))
            layers.append(tuple(Part(layer_code[i], layer_code[i + 1]) for i in range(0, len(layer_code), 2)))
        return cls(layers)

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return self._layers

    @property
    def num_layers(self) -> int:
        return len(self._layers)

    @property
    def num_parts(self) -> int:
        return len(self._layers[0])

    def layer_codes(self) -> List[str]:
        return ["".join(p.shape + p.color for p in layer) for layer in self._layers]

    def to_code(self) -> str:
        if self._code is None:
            self._code = SHAPE_LAYER_SEPARATOR.join(self.layer_codes())
        return self._code

    def is_empty(self) -> bool:
        return all(p.shape == NOTHING_CHAR for layer in self._layers for p in layer)

    def get_part(self, layer: int, index: int) -> Part:
        return self._layers[layer][index]

    def as_lists(self) -> List[List[Part]]:
        """연산용 변경 가능한 복사본 (레이어 목록)"""
        return [list(layer) for layer in self._layers]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Shape):
            return NotImplemented
        return self._layers == other._layers

    def __hash__(self) -> int:
        return hash(self._layers)

    def __repr__(self) -> str:
        return self.to_code()

    __str__ = __repr__
