"""Figma client: per-feature script builders on top of a Connection.

Each method builds one plugin script and evaluates it. Ids and user text are
always encoded as literals.
"""

from __future__ import annotations

from typing import Any, Sequence

from loguru import logger

from figbridge.cdp.connection import Connection
from figbridge.cdp.discovery import TargetSelector
from figbridge.config.schema import Config
from figbridge.render.encoding import js_number, js_string, js_value, solid_paint
from figbridge.render.lowering import SiblingBox, lower
from figbridge.render.parser import ParsedElement, parse_markup
from figbridge.utils.exceptions import CompileError

_CANVAS_SNAPSHOT = """
figma.currentPage.children.map(function(n) {
  return {x: n.x, y: n.y, width: n.width, height: n.height};
})
"""

_NODE_GUARD = """
  const n = figma.getNodeById({node_id});
  if (!n) return {{ success: false, error: 'Node not found' }};
"""


class FigmaClient:
    """High-level operations against the open Figma design file."""

    def __init__(self, connection: Connection | None = None, config: Config | None = None):
        self.config = config or Config()
        self.connection = connection or Connection(self.config.debug)

    async def connect(self, page_title: str | None = None) -> "FigmaClient":
        selector = TargetSelector(url_filters=list(self.config.debug.url_filters), title=page_title)
        await self.connection.connect(selector)
        return self

    @property
    def page_title(self) -> str | None:
        target = self.connection.target
        return target.title if target else None

    async def close(self) -> None:
        await self.connection.close()

    async def eval(self, script: str) -> Any:
        return await self.connection.evaluate(script)

    # ---- canvas ----

    async def get_page_info(self) -> dict[str, Any]:
        return await self.eval(
            """
            (function() {
              return {
                name: figma.currentPage.name,
                id: figma.currentPage.id,
                childCount: figma.currentPage.children.length,
                fileKey: figma.fileKey
              };
            })()
            """
        )

    async def canvas_snapshot(self) -> list[SiblingBox]:
        """Geometry of every top-level node on the current page."""
        boxes = await self.eval(_CANVAS_SNAPSHOT) or []
        return [SiblingBox.from_dict(b) for b in boxes if isinstance(b, dict)]

    async def get_canvas_bounds(self) -> dict[str, Any]:
        boxes = await self.canvas_snapshot()
        if not boxes:
            return {"minX": 0, "minY": 0, "maxX": 0, "maxY": 0, "isEmpty": True, "elements": 0}
        return {
            "minX": min(b.x for b in boxes),
            "minY": min(b.y for b in boxes),
            "maxX": max(b.right for b in boxes),
            "maxY": max(b.y + b.height for b in boxes),
            "isEmpty": False,
            "elements": len(boxes),
        }

    async def next_free_position(self, gap: float | None = None, direction: str = "right") -> dict[str, float]:
        """Next spot that does not overlap existing nodes, to the right or below."""
        gap = self.config.render.clearance if gap is None else gap
        bounds = await self.get_canvas_bounds()
        if bounds["isEmpty"]:
            return {"x": 0, "y": 0}
        if direction == "below":
            return {"x": 0, "y": round(bounds["maxY"] + gap)}
        return {"x": round(bounds["maxX"] + gap), "y": 0}

    async def list_nodes(self, limit: int = 50) -> list[dict[str, Any]]:
        return await self.eval(
            f"""
            figma.currentPage.children.slice(0, {js_number(limit)}).map(function(n) {{
              return {{
                id: n.id, type: n.type, name: n.name || '',
                x: Math.round(n.x), y: Math.round(n.y),
                width: Math.round(n.width), height: Math.round(n.height)
              }};
            }})
            """
        )

    async def arrange_nodes(self, gap: float = 100, columns: int | None = None) -> dict[str, Any]:
        cols = js_number(columns) if columns else "null"
        return await self.eval(
            f"""
            (function() {{
              const nodes = figma.currentPage.children.filter(n => n.type === 'FRAME' || n.type === 'COMPONENT');
              if (nodes.length === 0) return {{ arranged: 0 }};
              const cols = {cols} || nodes.length;
              let x = 0, y = 0, rowHeight = 0, col = 0;
              nodes.forEach(n => {{
                n.x = x;
                n.y = y;
                rowHeight = Math.max(rowHeight, n.height);
                col++;
                if (col >= cols) {{
                  col = 0; x = 0; y += rowHeight + {js_number(gap)}; rowHeight = 0;
                }} else {{
                  x += n.width + {js_number(gap)};
                }}
              }});
              return {{ arranged: nodes.length }};
            }})()
            """
        )

    # ---- nodes ----

    async def get_node(self, node_id: str) -> dict[str, Any] | None:
        return await self.eval(
            f"""
            (function() {{
              const n = figma.getNodeById({js_string(node_id)});
              if (!n) return null;
              return {{
                id: n.id, type: n.type, name: n.name || '',
                x: n.x, y: n.y, width: n.width, height: n.height,
                visible: n.visible, opacity: n.opacity
              }};
            }})()
            """
        )

    async def _node_op(self, node_id: str, body: str) -> dict[str, Any]:
        guard = _NODE_GUARD.format(node_id=js_string(node_id))
        return await self.eval(f"(function() {{{guard}{body}\n}})()")

    async def delete_node(self, node_id: str) -> dict[str, Any]:
        return await self._node_op(node_id, "  n.remove();\n  return { success: true };")

    async def move_node(self, node_id: str, x: float, y: float) -> dict[str, Any]:
        return await self._node_op(
            node_id,
            f"  n.x = {js_number(x)};\n  n.y = {js_number(y)};\n  return {{ success: true, x: n.x, y: n.y }};",
        )

    async def resize_node(self, node_id: str, width: float, height: float) -> dict[str, Any]:
        return await self._node_op(
            node_id,
            f"  if (n.resize) n.resize({js_number(width)}, {js_number(height)});\n"
            "  return { success: true, width: n.width, height: n.height };",
        )

    async def rename_node(self, node_id: str, name: str) -> dict[str, Any]:
        return await self._node_op(
            node_id,
            f"  n.name = {js_string(name)};\n  return {{ success: true, name: n.name }};",
        )

    async def set_fill(self, node_id: str, hex_color: str) -> dict[str, Any]:
        try:
            paint = solid_paint(hex_color)
        except ValueError as exc:
            raise CompileError(str(exc)) from exc
        return await self._node_op(node_id, f"  n.fills = {paint};\n  return {{ success: true }};")

    async def set_radius(self, node_id: str, radius: float) -> dict[str, Any]:
        return await self._node_op(
            node_id,
            f"  if ('cornerRadius' in n) n.cornerRadius = {js_number(radius)};\n  return {{ success: true }};",
        )

    async def duplicate_node(self, node_id: str, offset_x: float = 50, offset_y: float = 0) -> dict[str, Any] | None:
        return await self.eval(
            f"""
            (function() {{
              const node = figma.getNodeById({js_string(node_id)});
              if (!node) return null;
              const clone = node.clone();
              clone.x = node.x + {js_number(offset_x)};
              clone.y = node.y + {js_number(offset_y)};
              return {{ id: clone.id, name: clone.name, x: clone.x, y: clone.y }};
            }})()
            """
        )

    async def to_component(self, node_ids: str | Sequence[str]) -> list[dict[str, Any]]:
        ids = [node_ids] if isinstance(node_ids, str) else list(node_ids)
        return await self.eval(
            f"""
            (function() {{
              const results = [];
              {js_value(ids)}.forEach(id => {{
                const node = figma.getNodeById(id);
                if (node && node.type === 'FRAME') {{
                  const component = figma.createComponentFromNode(node);
                  results.push({{ id: component.id, name: component.name }});
                }}
              }});
              return results;
            }})()
            """
        )

    async def get_node_tree(self, node_id: str | None = None, max_depth: int = 10) -> dict[str, Any] | None:
        root = f"figma.getNodeById({js_string(node_id)})" if node_id else "figma.currentPage"
        return await self.eval(
            f"""
            (function() {{
              function buildTree(node, depth) {{
                if (depth > {js_number(max_depth)}) return null;
                const result = {{
                  id: node.id, type: node.type, name: node.name || '',
                  x: Math.round(node.x || 0), y: Math.round(node.y || 0),
                  width: Math.round(node.width || 0), height: Math.round(node.height || 0)
                }};
                if (node.children) {{
                  result.children = node.children.map(c => buildTree(c, depth + 1)).filter(c => c);
                }}
                return result;
              }}
              const node = {root};
              if (!node) return null;
              return buildTree(node, 0);
            }})()
            """
        )

    # ---- selection ----

    async def get_selection(self) -> list[dict[str, Any]]:
        return await self.eval(
            "figma.currentPage.selection.map(n => ({ id: n.id, type: n.type, name: n.name || '' }))"
        )

    async def set_selection(self, node_ids: str | Sequence[str]) -> list[str]:
        ids = [node_ids] if isinstance(node_ids, str) else list(node_ids)
        return await self.eval(
            f"""
            (function() {{
              const nodes = {js_value(ids)}.map(id => figma.getNodeById(id)).filter(n => n);
              figma.currentPage.selection = nodes;
              return nodes.map(n => n.id);
            }})()
            """
        )

    # ---- variables ----

    async def get_variables(self, var_type: str | None = None) -> list[dict[str, Any]]:
        type_filter = js_string(var_type) if var_type else "null"
        return await self.eval(
            f"""
            (function() {{
              return figma.variables.getLocalVariables({type_filter}).map(v => ({{
                id: v.id, name: v.name, resolvedType: v.resolvedType
              }}));
            }})()
            """
        )

    async def get_collections(self) -> list[dict[str, Any]]:
        return await self.eval(
            """
            (function() {
              return figma.variables.getLocalVariableCollections().map(c => ({
                id: c.id, name: c.name, modes: c.modes, variableIds: c.variableIds
              }));
            })()
            """
        )

    # ---- markup ----

    def _checked(self, markup: str) -> ParsedElement:
        """Parse and lower once against an empty canvas.

        Every attribute error surfaces here, before any request is sent.
        """
        element = parse_markup(markup)
        lower(element, font_family=self.config.render.font_family)
        return element

    async def render(
        self,
        markup: str,
        *,
        smart_position: bool = True,
        clearance: float | None = None,
    ) -> dict[str, Any]:
        """Compile markup and create the frame.

        Without an explicit x, the canvas is read first and the frame goes to
        the right of the rightmost node. The read and the write are separate
        round-trips, so placement is best effort.
        """
        element = self._checked(markup)
        siblings: list[SiblingBox] = []
        if smart_position and "x" not in element.attributes:
            siblings = await self.canvas_snapshot()
        compiled = lower(
            element,
            siblings,
            clearance=self.config.render.clearance if clearance is None else clearance,
            font_family=self.config.render.font_family,
        )
        logger.debug(f"Rendering {compiled.name!r} at ({compiled.x}, {compiled.y})")
        return await self.eval(compiled.source)

    async def render_batch(self, markups: Sequence[str], gap: float = 40) -> list[dict[str, Any]]:
        """Render several frames left to right, each `gap` apart.

        All markup is compiled before the first frame is created, so a bad
        item leaves the canvas untouched.
        """
        elements = [self._checked(m) for m in markups]
        results = []
        for element in elements:
            siblings = await self.canvas_snapshot()
            compiled = lower(element, siblings, clearance=gap, font_family=self.config.render.font_family)
            results.append(await self.eval(compiled.source))
        return results
