"""Markdown marker removal for streamed model fragments.

Every fragment is cleaned on its own. A construct that the upstream splits
across two fragments (half a code fence, an unmatched ``**``) is left as is.
"""

import re

_FENCED_CODE_RE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`([^`]+)`")
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC_RE = re.compile(r"\*([^*]+)\*")
# Line start, or a marker following a blank inside the line ("and # Title").
# The inline form never eats a newline.
_HEADING_RE = re.compile(r"^#+\s|(?<=[ \t])#+[ \t]", re.MULTILINE)
_LIST_BULLET_RE = re.compile(r"^[-*]\s", re.MULTILINE)


def sanitize(fragment: str) -> str:
    text = _FENCED_CODE_RE.sub("", fragment)
    text = _INLINE_CODE_RE.sub(r"\1", text)
    text = _BOLD_RE.sub(r"\1", text)
    text = _ITALIC_RE.sub(r"\1", text)
    text = _HEADING_RE.sub("", text)
    text = _LIST_BULLET_RE.sub("", text)
    return text.strip()
