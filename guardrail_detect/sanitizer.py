"""
guardrail_detect/sanitizer.py - Best-effort strip pass

The sanitized string is a display/logging fallback. It is NOT a security
boundary: never re-execute or re-interpret sanitized output.
"""
import re

from . import patterns as p


_REMOVE_WORDS = re.compile(r"\b(eval|alert|script|exec|system|rm|del)\b", re.IGNORECASE)

_CYRILLIC_TO_LATIN = {
    "а": "a",
    "е": "e",
    "о": "o",
    "р": "p",
    "с": "c",
    "у": "y",
    "х": "x",
}

_GREEK_TO_LATIN = {
    "α": "a",
    "ο": "o",
    "ρ": "p",
    "υ": "y",
    "Α": "A",
    "Ο": "O",
    "Ρ": "P",
}

# Removal passes, applied in order.
_STRIP_SEQUENCE = (
    # traversal and null bytes (UNC/drive/root/tilde anchors are left intact)
    *p.PATH_TRAVERSAL_REGEXES[:10],
    p.NULL_BYTE,
    # script / query / template injection
    p.JAVASCRIPT_EVAL,
    p.JAVASCRIPT_FUNCTION,
    p.SCRIPT_TAG,
    p.SQL_KEYWORDS,
    p.NOSQL_OPERATORS,
    p.TEMPLATE_INJECTION,
    # shell
    p.SHELL_METACHARACTERS,
    p.DANGEROUS_COMMANDS,
    _REMOVE_WORDS,
    p.PATH_MANIPULATION,
    p.IFS_BYPASS,
    # unicode and object abuse
    p.BIDI_OVERRIDE,
    p.ZERO_WIDTH_CHARS,
    p.PROTOTYPE_POLLUTION,
)


def sanitize(value) -> str:
    """
    Strip dangerous constructs from a string.

    Non-string input yields "". Homograph characters are folded to their
    Latin look-alikes where one exists and dropped otherwise.
    """
    if not isinstance(value, str):
        return ""

    sanitized = value
    for rx in _STRIP_SEQUENCE:
        sanitized = rx.sub("", sanitized)

    sanitized = p.HOMOGRAPH_CYRILLIC.sub(
        lambda m: _CYRILLIC_TO_LATIN.get(m.group(0).lower(), ""), sanitized
    )
    sanitized = p.HOMOGRAPH_GREEK.sub(
        lambda m: _GREEK_TO_LATIN.get(m.group(0), ""), sanitized
    )
    return sanitized
