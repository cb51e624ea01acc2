from chat_ai_gateway.schemas import CANONICAL_TOOL_TYPES, ToolSpec
from chat_ai_gateway.tools import TOOL_TYPE_MAP, canonical_tool_type, normalize_tools


def test_normalize_tools_collapses_aliases_in_first_seen_order():
    tools = [
        {"type": "fetch_url"},
        {"type": "web_search"},
        {"type": "image_modification"},
        {"type": "web_search_preview"},
        {"type": "image_modify"},
    ]
    assert normalize_tools(tools) == [
        {"type": "fetch_url"},
        {"type": "web_search_preview"},
        {"type": "image_modify"},
    ]


def test_normalize_tools_keeps_single_web_search_entry_at_first_position():
    normalized = normalize_tools(
        [{"type": "web_search_preview"}, {"type": "audio_generation"}, {"type": "web_search"}]
    )
    assert normalized == [{"type": "web_search_preview"}, {"type": "audio_generation"}]


def test_normalize_tools_drops_unknown_types():
    assert normalize_tools([{"type": "bogus"}]) == []
    assert normalize_tools([{"type": None}, {}, {"type": 3}]) == []


def test_normalize_tools_empty_or_missing_input():
    assert normalize_tools(None) == []
    assert normalize_tools([]) == []


def test_normalize_tools_is_idempotent_on_canonical_set():
    canonical = sorted(set(TOOL_TYPE_MAP.values()))
    once = normalize_tools([{"type": value} for value in canonical])
    twice = normalize_tools(once)
    assert once == twice
    assert [item["type"] for item in once] == canonical


def test_normalize_tools_accepts_validated_tool_specs():
    specs = [ToolSpec(type="runRscript"), ToolSpec(type="run_rscript"), ToolSpec(type="video_generation")]
    assert normalize_tools(specs) == [{"type": "run_rscript"}, {"type": "video_generation"}]


def test_canonical_tool_type_lookup():
    assert canonical_tool_type("web_search") == "web_search_preview"
    assert canonical_tool_type("image_modification") == "image_modify"
    assert canonical_tool_type("unknown") is None
    assert canonical_tool_type(None) is None


def test_normalized_output_only_contains_canonical_types():
    inputs = [{"type": value} for value in TOOL_TYPE_MAP] + [{"type": "bogus"}]
    normalized = normalize_tools(inputs)
    assert {item["type"] for item in normalized} == set(CANONICAL_TOOL_TYPES)
    assert set(TOOL_TYPE_MAP.values()) == set(CANONICAL_TOOL_TYPES)
