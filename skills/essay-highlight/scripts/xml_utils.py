#!/usr/bin/env python3
"""
ABOUTME: XML helpers shared by the container model and marker rendering
ABOUTME: Strips characters lxml refuses in text and attribute values
"""

import re

# XML 1.0 Char production, minus the C0 controls other than tab/LF/CR
_ILLEGAL_XML_CHARS = re.compile(
    '[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]'
)


def sanitize_xml_string(text: str) -> str:
    """
    Remove characters that lxml rejects in element text or attributes.

    Keeps tab, LF and CR. Removes other C0 control characters, lone
    surrogates and the U+FFFE/U+FFFF noncharacters.

    Args:
        text: Text that may contain illegal characters

    Returns:
        Sanitized text; '' for None, non-strings unchanged
    """
    if text is None:
        return ''
    if not isinstance(text, str) or not text:
        return text
    return _ILLEGAL_XML_CHARS.sub('', text)


def attr_to_bool(value) -> bool:
    """
    Read a boolean marker attribute ("true"/"false").

    Examples:
        "true" -> True
        "TRUE" -> True
        None -> False
    """
    return (value or '').strip().lower() in ('true', '1', 'yes')
