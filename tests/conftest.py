from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

import i18n


@pytest.fixture(autouse=True)
def english_messages():
    """메시지 비교가 시스템 로케일에 영향받지 않도록 영어로 고정합니다."""
    previous = i18n._current_lang
    i18n.set_language("en")
    yield
    i18n._current_lang = previous
