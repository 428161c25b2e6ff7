import json
import locale
import os
import sys
import sysconfig
from typing import Any, Dict, Iterable, Optional


def find_locales_dir(candidates: Optional[Iterable[str]] = None) -> str:
    """
    locales 디렉터리를 찾습니다.
    소스 트리에서는 모듈 옆, 설치된 경우에는 data-files 가 놓이는 <prefix>/locales 입니다.
    """
    module_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "locales")
    if candidates is None:
        candidates = [
            module_dir,
            os.path.join(sysconfig.get_path("data"), "locales"),
            os.path.join(sys.prefix, "locales"),
        ]
    for path in candidates:
        if os.path.isdir(path):
            return path
    return module_dir


LOCALES_DIR = find_locales_dir()

_current_lang = None
_translations: Dict[str, Dict[str, str]] = {}
_fallback_lang = "en"
_locales_loaded = False

# Map raw protocol strings (operation names) to stable keys so they can be localized
_ALIASES: Dict[str, str] = {
    "Rotator CW": "operation.rotator_cw",
    "Rotator CCW": "operation.rotator_ccw",
    "Rotator 180": "operation.rotator_180",
    "Half Destroyer": "operation.half_destroyer",
    "Cutter": "operation.cutter",
    "Swapper": "operation.swapper",
    "Stacker": "operation.stacker",
    "Painter": "operation.painter",
    "Pin Pusher": "operation.pin_pusher",
    "Crystal Generator": "operation.crystal_generator",
    "Trash": "operation.trash",
    "Belt Split": "operation.belt_split",
}


def detect_system_language() -> str:
    # 'ko_KR' -> 'ko'
    lang, _ = locale.getlocale() or (None, None)
    if not lang:
        return _fallback_lang
    return lang.split("_")[0].lower()


def set_language(lang: str):
    global _current_lang
    _current_lang = lang


def get_language() -> str:
    return _current_lang or detect_system_language()


def load_locales(locales_dir: str = LOCALES_DIR):
    global _translations, _locales_loaded
    _translations.clear()
    _locales_loaded = True
    if not os.path.isdir(locales_dir):
        return
    for fname in os.listdir(locales_dir):
        if not fname.endswith('.json'):
            continue
        lang = os.path.splitext(fname)[0]
        path = os.path.join(locales_dir, fname)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                _translations[lang] = json.load(f)
        except (OSError, ValueError):
            _translations[lang] = {}


def translate(key: str, **vars: Any) -> str:
    if not _locales_loaded:
        load_locales()

    key_to_lookup = _ALIASES.get(key, key)

    lang = get_language()
    entry = None

    if lang in _translations:
        entry = _translations[lang].get(key_to_lookup)
    if entry is None and _fallback_lang in _translations:
        entry = _translations[_fallback_lang].get(key_to_lookup)

    if entry is None:
        # 번역이 없으면 원래 키를 그대로 사용
        entry = key

    try:
        return entry.format(**vars)
    except (KeyError, IndexError, ValueError):
        # 변수가 빠진 경우 원문 반환
        return entry


# Convenience aliases
_ = translate
t = translate
