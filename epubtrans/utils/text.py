"""
Text measurement helpers shared by the batcher, the token estimator and the validator.
"""

import re

# Scripts written without spaces: every character counts as a word
_CJK_CHAR = re.compile(
    r'[\u3040-\u30ff'   # hiragana, katakana
    r'\u3400-\u4dbf'    # CJK extension A
    r'\u4e00-\u9fff'    # CJK unified ideographs
    r'\uf900-\ufaff'    # CJK compatibility ideographs
    r'\uac00-\ud7af]'   # hangul syllables
)
_TAG = re.compile(r'<[^>]+>')


def strip_tags(html: str) -> str:
    """Drop markup, keeping the text between tags."""
    return _TAG.sub(' ', html)


def count_words(text: str) -> int:
    """
    Count words in ``text``.

    Whitespace separated runs count as one word each; CJK, kana and hangul
    characters count as one word per character.

    Example:
        >>> count_words("Hello brave world")
        3
        >>> count_words("你好 world")
        3
    """
    if not text:
        return 0
    cjk = len(_CJK_CHAR.findall(text))
    rest = _CJK_CHAR.sub(' ', text)
    return cjk + len(rest.split())
