"""Lower a parsed Frame element into one self-contained plugin script.

Statement order inside the script is fixed:

1. every distinct font style is loaded (awaited together),
2. the frame is created and styled at its resolved position,
3. each text node is created, given its font, size and characters, filled,
   appended to the frame, and only then sized against the frame's layout.

The host rejects ``characters`` before the font is loaded and ignores
``layoutSizingHorizontal`` on nodes outside an auto-layout parent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from figbridge.render.encoding import js_number, js_string, solid_paint
from figbridge.render.parser import CONTAINER_TAG, ParsedElement, parse_markup
from figbridge.utils.exceptions import CompileError

DEFAULT_CLEARANCE = 100.0
DEFAULT_FONT_FAMILY = "Inter"

FONT_STYLES = {
    "bold": "Bold",
    "medium": "Medium",
    "semibold": "Semi Bold",
}
REGULAR_STYLE = "Regular"


@dataclass(frozen=True)
class SiblingBox:
    """Geometry of one existing node on the target canvas."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SiblingBox":
        return cls(
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
            width=float(data.get("width") or 0),
            height=float(data.get("height") or 0),
        )


@dataclass(frozen=True)
class CompiledScript:
    source: str
    name: str
    x: float
    y: float
    width: float
    height: float
    font_styles: tuple[str, ...] = ()
    label_count: int = 0

    def __str__(self) -> str:
        return self.source


def font_style(weight: str | None) -> str:
    return FONT_STYLES.get((weight or "").strip().lower(), REGULAR_STYLE)


def resolve_placement(
    attributes: dict[str, str],
    siblings: Iterable[SiblingBox] = (),
    clearance: float = DEFAULT_CLEARANCE,
) -> tuple[float, float]:
    """Explicit x wins; otherwise place right of the rightmost sibling.

    Best effort only: the canvas may change between the read and the write.
    """
    y = _number(attributes, "y", 0)
    if "x" in attributes:
        return _number(attributes, "x", 0), y
    rights = [box.right for box in siblings]
    if not rights:
        return 0.0, y
    return max(rights) + clearance, y


def lower(
    element: ParsedElement,
    siblings: Sequence[SiblingBox] = (),
    *,
    clearance: float = DEFAULT_CLEARANCE,
    font_family: str = DEFAULT_FONT_FAMILY,
) -> CompiledScript:
    if element.tag != CONTAINER_TAG:
        raise CompileError(f"Root element must be <{CONTAINER_TAG}>, got <{element.tag}>")
    attrs = element.attributes
    labels = element.children
    family = js_string(font_family)

    styles: list[str] = []
    for label in labels:
        style = font_style(label.attributes.get("weight"))
        if style not in styles:
            styles.append(style)

    name = _first(attrs, ("name",), "Frame")
    width = _number(attrs, ("w", "width"), 320)
    height = _number(attrs, ("h", "height"), 200)
    x, y = resolve_placement(attrs, siblings, clearance)
    padding = _number(attrs, ("p", "padding"), 0)
    pad_x = _number(attrs, "px", padding)
    pad_y = _number(attrs, "py", padding)

    lines: list[str] = ["(async function() {"]
    if styles:
        loads = ", ".join(
            f"figma.loadFontAsync({{family:{family},style:{js_string(s)}}})" for s in styles
        )
        lines.append(f"  await Promise.all([{loads}]);")

    lines += [
        "  const frame = figma.createFrame();",
        f"  frame.name = {js_string(name)};",
        f"  frame.resize({js_number(width)}, {js_number(height)});",
        f"  frame.x = {js_number(x)};",
        f"  frame.y = {js_number(y)};",
        f"  frame.cornerRadius = {js_number(_number(attrs, ('rounded', 'radius'), 0))};",
        f"  frame.fills = {_paint(attrs, ('bg', 'fill'), '#ffffff')};",
    ]
    if "stroke" in attrs:
        lines.append(f"  frame.strokes = {_paint(attrs, ('stroke',), '#000000')};")
        lines.append(f"  frame.strokeWeight = {js_number(_number(attrs, 'strokeWidth', 1))};")
    layout = "HORIZONTAL" if attrs.get("flex") == "row" else "VERTICAL"
    lines += [
        f"  frame.layoutMode = '{layout}';",
        f"  frame.itemSpacing = {js_number(_number(attrs, 'gap', 0))};",
        f"  frame.paddingTop = {js_number(pad_y)};",
        f"  frame.paddingBottom = {js_number(pad_y)};",
        f"  frame.paddingLeft = {js_number(pad_x)};",
        f"  frame.paddingRight = {js_number(pad_x)};",
        "  frame.primaryAxisSizingMode = 'FIXED';",
        "  frame.counterAxisSizingMode = 'FIXED';",
        "  frame.clipsContent = true;",
    ]

    for i, label in enumerate(labels):
        lines += _label_statements(f"text{i}", label, family)

    lines += [
        "  return {id: frame.id, name: frame.name, x: frame.x, y: frame.y, width: frame.width, height: frame.height};",
        "})()",
    ]
    return CompiledScript(
        source="\n".join(lines),
        name=name,
        x=x,
        y=y,
        width=width,
        height=height,
        font_styles=tuple(styles),
        label_count=len(labels),
    )


def compile_markup(
    source: str,
    siblings: Sequence[SiblingBox] = (),
    *,
    clearance: float = DEFAULT_CLEARANCE,
    font_family: str = DEFAULT_FONT_FAMILY,
) -> CompiledScript:
    """Parse and lower markup in one step."""
    return lower(parse_markup(source), siblings, clearance=clearance, font_family=font_family)


def _label_statements(var: str, label: ParsedElement, family: str) -> list[str]:
    attrs = label.attributes
    style = font_style(attrs.get("weight"))
    lines = [
        f"  const {var} = figma.createText();",
        f"  {var}.fontName = {{family:{family},style:{js_string(style)}}};",
        f"  {var}.fontSize = {js_number(_number(attrs, 'size', 14))};",
        f"  {var}.characters = {js_string(label.text or '')};",
        f"  {var}.fills = {_paint(attrs, ('color',), '#000000')};",
        f"  frame.appendChild({var});",
    ]
    if attrs.get("w") == "fill":
        lines.append(f"  {var}.layoutSizingHorizontal = 'FILL';")
        lines.append(f"  {var}.textAutoResize = 'HEIGHT';")
    return lines


def _first(attrs: dict[str, str], names: tuple[str, ...], default: str) -> str:
    for name in names:
        if name in attrs:
            return attrs[name]
    return default


def _number(attrs: dict[str, str], names: str | tuple[str, ...], default: float) -> float:
    if isinstance(names, str):
        names = (names,)
    for name in names:
        if name in attrs:
            try:
                return float(js_number(attrs[name]))
            except ValueError as exc:
                raise CompileError(f"Attribute {name!r} must be a number, got {attrs[name]!r}") from exc
    return float(default)


def _paint(attrs: dict[str, str], names: tuple[str, ...], default: str) -> str:
    value = _first(attrs, names, default)
    try:
        return solid_paint(value)
    except ValueError as exc:
        raise CompileError(f"Attribute {names[0]!r} must be a hex color, got {value!r}") from exc


__all__ = [
    "CompiledScript",
    "SiblingBox",
    "compile_markup",
    "font_style",
    "lower",
    "resolve_placement",
]
