"""Markup-to-script compiler for Frame/Text compositions."""

from figbridge.render.encoding import hex_to_rgb, js_number, js_string, js_value, rgb_literal, solid_paint
from figbridge.render.lowering import (
    CompiledScript,
    SiblingBox,
    compile_markup,
    font_style,
    lower,
    resolve_placement,
)
from figbridge.render.parser import ParsedElement, parse_attributes, parse_markup

__all__ = [
    "CompiledScript",
    "ParsedElement",
    "SiblingBox",
    "compile_markup",
    "font_style",
    "hex_to_rgb",
    "js_number",
    "js_string",
    "js_value",
    "lower",
    "parse_attributes",
    "parse_markup",
    "resolve_placement",
    "rgb_literal",
    "solid_paint",
]
