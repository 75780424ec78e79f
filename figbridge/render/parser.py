"""Parser for the Frame/Text markup.

Grammar::

    <Frame name="Card" w={320} bg="#ffffff">
      <Text size={18} weight="bold">Title</Text>
      <Text w="fill">Body</Text>
    </Frame>

Attribute values are either "quoted" literals or {braced} raw values. Only
Text children are allowed and they hold literal text (HTML entities such as
&lt; are decoded).
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field

from loguru import logger

from figbridge.utils.exceptions import CompileError

CONTAINER_TAG = "Frame"
LABEL_TAG = "Text"

_ATTR = r'(\w+)\s*=\s*(?:"([^"]*)"|\{([^}]*)\})'
_ATTR_RE = re.compile(_ATTR)
_OPEN_RE = re.compile(r'<(\w+)((?:\s+\w+\s*=\s*(?:"[^"]*"|\{[^}]*\}))*)\s*>')
_CONTAINER_CLOSE = f"</{CONTAINER_TAG}>"
_LABEL_CLOSE = f"</{LABEL_TAG}>"


@dataclass
class ParsedElement:
    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    children: list["ParsedElement"] = field(default_factory=list)
    text: str | None = None


def parse_attributes(raw: str, *, tag: str = "") -> dict[str, str]:
    """Extract name/value pairs in source order; the first of a duplicate name wins."""
    attrs: dict[str, str] = {}
    for match in _ATTR_RE.finditer(raw):
        name = match.group(1)
        value = match.group(2) if match.group(2) is not None else match.group(3).strip()
        if name in attrs:
            logger.warning(f"Duplicate attribute {name!r} on <{tag}>: keeping first value {attrs[name]!r}")
            continue
        attrs[name] = value
    return attrs


def parse_markup(source: str) -> ParsedElement:
    """Parse markup into a Frame element with Text children.

    Raises CompileError on anything outside the grammar.
    """
    if not isinstance(source, str):
        raise CompileError("Markup must be a string")
    text = source.strip()
    root = _OPEN_RE.match(text)
    if not root or root.group(1) != CONTAINER_TAG:
        raise CompileError(f"Invalid markup: must start with <{CONTAINER_TAG}>", source)
    if not text.endswith(_CONTAINER_CLOSE):
        raise CompileError(f"Invalid markup: missing closing {_CONTAINER_CLOSE}", source)

    body = text[root.end():len(text) - len(_CONTAINER_CLOSE)]
    element = ParsedElement(tag=CONTAINER_TAG, attributes=parse_attributes(root.group(2), tag=CONTAINER_TAG))
    element.children = _parse_children(body, source)
    return element


def _parse_children(body: str, source: str) -> list[ParsedElement]:
    children: list[ParsedElement] = []
    pos = 0
    while True:
        while pos < len(body) and body[pos].isspace():
            pos += 1
        if pos >= len(body):
            return children
        opening = _OPEN_RE.match(body, pos)
        if not opening:
            raise CompileError(f"Invalid markup: unexpected content {body[pos:pos + 20]!r}", source)
        tag = opening.group(1)
        if tag != LABEL_TAG:
            raise CompileError(f"Invalid markup: unsupported child <{tag}>", source)
        end = body.find(_LABEL_CLOSE, opening.end())
        if end < 0:
            raise CompileError(f"Invalid markup: missing closing {_LABEL_CLOSE}", source)
        content = body[opening.end():end]
        if "<" in content:
            raise CompileError("Invalid markup: nested elements inside <Text> are not supported", source)
        children.append(
            ParsedElement(
                tag=LABEL_TAG,
                attributes=parse_attributes(opening.group(2), tag=LABEL_TAG),
                text=html.unescape(content),
            )
        )
        pos = end + len(_LABEL_CLOSE)
