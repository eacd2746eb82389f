"""
Answer Normalizer
Canonicalizes raw answer strings so that superficially different but
equivalent answers compare equal without a remote judge call.
"""
import re
from typing import Any

_WHITESPACE = re.compile(r"\s+")

FULLWIDTH_PUNCTUATION = {
    "。": ".",
    "，": ",",
    "！": "!",
    "？": "?",
    "、": ",",
    "；": ";",
    "：": ":",
    "“": '"',
    "”": '"',
    "（": "(",
    "）": ")",
}

_PUNCTUATION_TABLE = str.maketrans(FULLWIDTH_PUNCTUATION)

TRUE_TOKEN = "正确"
FALSE_TOKEN = "错误"

# Whole-answer spellings of true/false, compared after upper-casing.
BOOLEAN_ALIASES = {
    "对": TRUE_TOKEN,
    "TRUE": TRUE_TOKEN,
    "错": FALSE_TOKEN,
    "FALSE": FALSE_TOKEN,
}


def normalize(raw: Any) -> str:
    """
    Normalizes an answer for comparison. Never raises.

    Args:
        raw: The answer; None becomes "" and other non-strings are coerced with str().

    Returns:
        The trimmed, whitespace-free, upper-cased answer with full-width
        punctuation folded and true/false spellings mapped to 正确/错误.
    """
    if raw is None:
        text = ""
    elif isinstance(raw, str):
        text = raw
    else:
        text = str(raw)

    text = _WHITESPACE.sub("", text.strip()).upper()
    text = text.translate(_PUNCTUATION_TABLE)
    return BOOLEAN_ALIASES.get(text, text)
