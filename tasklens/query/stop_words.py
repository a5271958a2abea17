"""Stop-word filtering for query keywords.

The built-in set covers English and Chinese function words. Users add their
own through Settings.stop_words. Single non-CJK characters are always
treated as stop words; a single CJK character can carry meaning on its own.
"""

import re
from typing import Iterable, List


INTERNAL_STOP_WORDS = frozenset(
    [
        # English
        "the", "a", "an", "but", "for", "of", "with", "by", "from", "as",
        "is", "was", "are", "were", "me", "my", "all",
        "how", "what", "when", "where", "why", "which", "who", "whom", "whose",
        "do", "does", "did", "can", "could", "should", "would", "will",
        "have", "has", "had",
        # Chinese
        "我", "的", "了", "吗", "呢", "啊",
        "如何", "怎么", "怎样", "什么", "哪些", "哪个", "哪里", "为什么",
    ]
)

_CJK_RE = re.compile(
    "[\u4e00-\u9fff\u3400-\u4dbf\U00020000-\U0002a6df\uf900-\ufaff\u3040-\u309f\u30a0-\u30ff]"
)


def contains_cjk(text: str) -> bool:
    """True if text contains any Chinese, Japanese kana or CJK compatibility character."""
    return bool(_CJK_RE.search(text or ""))


def is_stop_word(word: str, extra: Iterable[str] = ()) -> bool:
    """Check a single word against the built-in and user stop words."""
    normalized = (word or "").strip().lower()
    if not normalized:
        return True
    if normalized in INTERNAL_STOP_WORDS:
        return True
    if normalized in {w.strip().lower() for w in extra}:
        return True
    return len(normalized) == 1 and not contains_cjk(normalized)


def filter_stop_words(words: Iterable[str], extra: Iterable[str] = ()) -> List[str]:
    """Drop stop words and duplicates, keeping first-seen order and original case."""
    extra = [w.strip().lower() for w in extra if w and w.strip()]
    out: List[str] = []
    seen = set()
    for word in words:
        if not isinstance(word, str):
            continue
        stripped = word.strip()
        key = stripped.lower()
        if key in seen or is_stop_word(stripped, extra):
            continue
        seen.add(key)
        out.append(stripped)
    return out


# Separators between words; '#', '+', '.', '-' and '_' stay inside words (c#, c++, v1.2, follow-up)
_SEPARATOR_RE = re.compile(r"[\s,;:!?()\[\]{}<>\"'`|\\/~@$%^&*=　-〿！-／：-＠‘-‟]+")
_CJK_RUN_RE = re.compile("(" + _CJK_RE.pattern + "+)")


def _segment_cjk(run: str) -> List[str]:
    """Two-character words plus their characters: 修复登录 -> 修复 修 复 登录 登 录."""
    words: List[str] = []
    for i in range(0, len(run), 2):
        pair = run[i:i + 2]
        words.append(pair)
        if len(pair) == 2:
            words.extend(pair)
    return words


def drop_cjk_fragments(words: Iterable[str]) -> List[str]:
    """Drop CJK words contained in a longer CJK word of the same list.

    Keeps order and case; Latin words are never dropped ("fix" and "fixed"
    are different words).
    """
    words = list(words)
    cjk = [w for w in words if contains_cjk(w)]
    return [
        w for w in words
        if not (contains_cjk(w) and any(len(other) > len(w) and w in other for other in cjk))
    ]


def split_words(text: str) -> List[str]:
    """Split text into words on whitespace and punctuation, segmenting CJK runs."""
    words: List[str] = []
    for chunk in _SEPARATOR_RE.split(text or ""):
        for piece in _CJK_RUN_RE.split(chunk):
            piece = piece.strip(".-_")
            if not piece:
                continue
            if contains_cjk(piece):
                words.extend(_segment_cjk(piece))
            else:
                words.append(piece)
    return drop_cjk_fragments(words)


def tokenize(text: str, extra: Iterable[str] = ()) -> List[str]:
    """Split text into words and stop-word filter them.

    Stop words are removed after overlap removal so that 如何 is filtered as
    a whole word rather than leaving 如 and 何 behind.
    """
    return filter_stop_words(split_words(text), extra)
