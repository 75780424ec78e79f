"""Tests for FigmaClient script building against a fake connection."""

import json

import pytest

from figbridge.client import FigmaClient
from figbridge.config.schema import Config
from figbridge.utils.exceptions import CompileError, RemoteFault
from fakes import FakeTransport, open_fake_connection, script_responder

SNAPSHOT_MARKER = "figma.currentPage.children.map"

CANVAS = [
    {"x": 0, "y": 0, "width": 50, "height": 10},
    {"x": 200, "y": 40, "width": 100, "height": 10},
]


def canvas_handler(boxes=CANVAS, created=None):
    def handle(expression):
        if SNAPSHOT_MARKER in expression:
            return boxes
        if created is not None:
            created.append(expression)
        return {"id": "1:2", "name": "Card"}

    return handle


async def make_client(transport: FakeTransport) -> FigmaClient:
    connection = await open_fake_connection(transport)
    return FigmaClient(connection=connection, config=Config())


@pytest.mark.asyncio
async def test_render_places_right_of_existing_nodes():
    created = []
    transport = FakeTransport(script_responder(canvas_handler(created=created)))
    client = await make_client(transport)
    try:
        result = await client.render('<Frame name="Card"><Text>Hi</Text></Frame>')
    finally:
        await client.close()

    assert result == {"id": "1:2", "name": "Card"}
    assert len(transport.sent) == 2
    assert SNAPSHOT_MARKER in transport.sent[0]["params"]["expression"]
    assert "frame.x = 400;" in created[0]


@pytest.mark.asyncio
async def test_render_with_explicit_x_skips_snapshot():
    created = []
    transport = FakeTransport(script_responder(canvas_handler(created=created)))
    client = await make_client(transport)
    try:
        await client.render('<Frame x={20} y={5}></Frame>')
    finally:
        await client.close()

    assert len(transport.sent) == 1
    assert "frame.x = 20;" in created[0]
    assert "frame.y = 5;" in created[0]


@pytest.mark.asyncio
async def test_render_without_smart_position_uses_origin():
    created = []
    transport = FakeTransport(script_responder(canvas_handler(created=created)))
    client = await make_client(transport)
    try:
        await client.render("<Frame></Frame>", smart_position=False)
    finally:
        await client.close()

    assert len(transport.sent) == 1
    assert "frame.x = 0;" in created[0]


@pytest.mark.asyncio
async def test_bad_markup_sends_nothing():
    transport = FakeTransport(script_responder(canvas_handler()))
    client = await make_client(transport)
    try:
        with pytest.raises(CompileError):
            await client.render("<Frame><Rect></Rect></Frame>")
    finally:
        await client.close()
    assert transport.sent == []


@pytest.mark.asyncio
async def test_render_propagates_remote_fault():
    def respond(frame):
        expression = frame["params"]["expression"]
        if SNAPSHOT_MARKER in expression:
            return {"id": frame["id"], "result": {"result": {"type": "object", "value": []}}}
        return {
            "id": frame["id"],
            "result": {
                "result": {"type": "object"},
                "exceptionDetails": {"exception": {"value": "font not loaded"}},
            },
        }

    client = await make_client(FakeTransport(respond))
    try:
        with pytest.raises(RemoteFault) as info:
            await client.render("<Frame><Text>Hi</Text></Frame>")
    finally:
        await client.close()
    assert info.value.message == "font not loaded"


@pytest.mark.asyncio
async def test_render_batch_places_each_frame_after_the_previous():
    boxes = []
    created = []

    def handle(expression):
        if SNAPSHOT_MARKER in expression:
            return list(boxes)
        created.append(expression)
        x = 0 if not boxes else max(b["x"] + b["width"] for b in boxes) + 40
        boxes.append({"x": x, "y": 0, "width": 100, "height": 100})
        return {"id": f"1:{len(boxes)}"}

    client = await make_client(FakeTransport(script_responder(handle)))
    try:
        results = await client.render_batch(
            ['<Frame w={100} h={100}></Frame>', '<Frame w={100} h={100}></Frame>'], gap=40
        )
    finally:
        await client.close()

    assert results == [{"id": "1:1"}, {"id": "1:2"}]
    assert "frame.x = 0;" in created[0]
    assert "frame.x = 140;" in created[1]


@pytest.mark.asyncio
async def test_render_batch_validates_all_markup_first():
    transport = FakeTransport(script_responder(canvas_handler()))
    client = await make_client(transport)
    try:
        with pytest.raises(CompileError):
            await client.render_batch(["<Frame></Frame>", "<Text>no</Text>"])
    finally:
        await client.close()
    assert transport.sent == []


@pytest.mark.asyncio
async def test_canvas_bounds_and_next_position():
    client = await make_client(FakeTransport(script_responder(canvas_handler())))
    try:
        bounds = await client.get_canvas_bounds()
        right = await client.next_free_position()
        below = await client.next_free_position(gap=20, direction="below")
    finally:
        await client.close()

    assert bounds == {"minX": 0, "minY": 0, "maxX": 300, "maxY": 50, "isEmpty": False, "elements": 2}
    assert right == {"x": 400, "y": 0}
    assert below == {"x": 0, "y": 70}


@pytest.mark.asyncio
async def test_empty_canvas_bounds():
    client = await make_client(FakeTransport(script_responder(canvas_handler(boxes=[]))))
    try:
        assert (await client.get_canvas_bounds())["isEmpty"] is True
        assert await client.next_free_position() == {"x": 0, "y": 0}
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_node_operations_encode_ids_and_text_as_literals():
    transport = FakeTransport(script_responder(lambda expression: {"success": True}))
    client = await make_client(transport)
    name = "Hero'); figma.closePlugin(); ('"
    try:
        await client.rename_node("12:34", name)
        await client.move_node("12:34", 10, 20.5)
    finally:
        await client.close()

    rename, move = (frame["params"]["expression"] for frame in transport.sent)
    assert 'figma.getNodeById("12:34")' in rename
    assert f"n.name = {json.dumps(name)};" in rename
    assert "n.x = 10;" in move
    assert "n.y = 20.5;" in move


@pytest.mark.asyncio
async def test_set_fill_rejects_bad_color_before_sending():
    transport = FakeTransport(script_responder(lambda expression: {"success": True}))
    client = await make_client(transport)
    try:
        with pytest.raises(CompileError):
            await client.set_fill("1:2", "not-a-color")
        await client.set_fill("1:2", "#FF0000")
    finally:
        await client.close()

    assert len(transport.sent) == 1
    assert "n.fills = [{type:'SOLID',color:{r:1,g:0,b:0}}];" in transport.sent[0]["params"]["expression"]


@pytest.mark.asyncio
async def test_selection_ids_are_json_encoded():
    transport = FakeTransport(script_responder(lambda expression: ["1:2", "3:4"]))
    client = await make_client(transport)
    try:
        assert await client.set_selection(["1:2", "3:4"]) == ["1:2", "3:4"]
    finally:
        await client.close()
    assert '["1:2", "3:4"]' in transport.sent[0]["params"]["expression"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "markup",
    ['<Frame bg="tomato"></Frame>', "<Frame w={wide}></Frame>", '<Frame><Text color="#12">x</Text></Frame>'],
)
async def test_render_attribute_errors_send_nothing(markup):
    transport = FakeTransport(script_responder(canvas_handler()))
    client = await make_client(transport)
    try:
        with pytest.raises(CompileError):
            await client.render(markup)
    finally:
        await client.close()
    assert transport.sent == []


@pytest.mark.asyncio
async def test_render_batch_attribute_error_leaves_canvas_untouched():
    created = []
    transport = FakeTransport(script_responder(canvas_handler(created=created)))
    client = await make_client(transport)
    try:
        with pytest.raises(CompileError):
            await client.render_batch(["<Frame></Frame>", "<Frame w={wide}></Frame>"])
    finally:
        await client.close()
    assert transport.sent == []
    assert created == []


# ---- script shape of the node and page helpers ----


async def _script_for(call, reply=None):
    """Run one client call against a fake host and return the script it sent."""
    transport = FakeTransport(script_responder(lambda expression: reply))
    client = await make_client(transport)
    try:
        result = await call(client)
    finally:
        await client.close()
    assert len(transport.sent) == 1
    assert transport.sent[0]["method"] == "Runtime.evaluate"
    return transport.sent[0]["params"]["expression"], result


@pytest.mark.asyncio
async def test_get_page_info_script():
    info = {"name": "Page 1", "id": "0:1", "childCount": 3, "fileKey": "abc"}
    script, result = await _script_for(lambda c: c.get_page_info(), info)
    assert "figma.currentPage.name" in script
    assert "figma.currentPage.children.length" in script
    assert result == info


@pytest.mark.asyncio
async def test_list_nodes_limits_children():
    script, _ = await _script_for(lambda c: c.list_nodes(limit=5), [])
    assert "figma.currentPage.children.slice(0, 5)" in script


@pytest.mark.asyncio
async def test_arrange_nodes_script():
    script, result = await _script_for(lambda c: c.arrange_nodes(gap=24, columns=3), {"arranged": 4})
    assert "const cols = 3 || nodes.length;" in script
    assert "y += rowHeight + 24;" in script
    assert "x += n.width + 24;" in script
    assert result == {"arranged": 4}

    script, _ = await _script_for(lambda c: c.arrange_nodes(), {"arranged": 0})
    assert "const cols = null || nodes.length;" in script


@pytest.mark.asyncio
async def test_get_node_encodes_id():
    script, result = await _script_for(lambda c: c.get_node('1:2"); figma.closePlugin("'), None)
    assert 'figma.getNodeById("1:2\\"); figma.closePlugin(\\"")' in script
    assert result is None


@pytest.mark.asyncio
async def test_guarded_node_operations():
    script, _ = await _script_for(lambda c: c.delete_node("1:2"), {"success": True})
    assert 'const n = figma.getNodeById("1:2");' in script
    assert "if (!n) return { success: false, error: 'Node not found' };" in script
    assert "n.remove();" in script

    script, _ = await _script_for(lambda c: c.resize_node("1:2", 320, 240.5), {"success": True})
    assert "if (n.resize) n.resize(320, 240.5);" in script

    script, _ = await _script_for(lambda c: c.set_radius("1:2", 12), {"success": True})
    assert "n.cornerRadius = 12;" in script


@pytest.mark.asyncio
async def test_duplicate_node_offsets():
    script, _ = await _script_for(lambda c: c.duplicate_node("1:2", 40, 10), {"id": "1:3"})
    assert "node.clone();" in script
    assert "clone.x = node.x + 40;" in script
    assert "clone.y = node.y + 10;" in script


@pytest.mark.asyncio
async def test_to_component_accepts_one_or_many_ids():
    script, _ = await _script_for(lambda c: c.to_component("1:2"), [])
    assert '["1:2"].forEach' in script
    script, _ = await _script_for(lambda c: c.to_component(["1:2", "3:4"]), [])
    assert '["1:2", "3:4"].forEach' in script
    assert "figma.createComponentFromNode(node)" in script


@pytest.mark.asyncio
async def test_node_tree_root_and_depth():
    script, _ = await _script_for(lambda c: c.get_node_tree(), None)
    assert "const node = figma.currentPage;" in script
    assert "if (depth > 10) return null;" in script

    script, _ = await _script_for(lambda c: c.get_node_tree("1:2", max_depth=2), None)
    assert 'const node = figma.getNodeById("1:2");' in script
    assert "if (depth > 2) return null;" in script


@pytest.mark.asyncio
async def test_get_selection_script():
    script, result = await _script_for(lambda c: c.get_selection(), [{"id": "1:2"}])
    assert "figma.currentPage.selection.map" in script
    assert result == [{"id": "1:2"}]


@pytest.mark.asyncio
async def test_variables_and_collections_scripts():
    script, _ = await _script_for(lambda c: c.get_variables(), [])
    assert "figma.variables.getLocalVariables(null)" in script
    script, _ = await _script_for(lambda c: c.get_variables("COLOR"), [])
    assert 'figma.variables.getLocalVariables("COLOR")' in script
    script, _ = await _script_for(lambda c: c.get_collections(), [])
    assert "figma.variables.getLocalVariableCollections()" in script
