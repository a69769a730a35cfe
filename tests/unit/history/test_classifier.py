import json

from langchain_core.messages import AIMessage, HumanMessage, ToolMessage, message_to_dict

from agent_api.server.history.classifier import classify, inspect_content
from agent_api.server.history.models import ContentType


def _dump(payload) -> str:
    return json.dumps(payload)


def test_plain_text_message_is_text():
    classified = inspect_content(_dump({"role": "user", "text": "hi"}))
    assert classified.content_type is ContentType.TEXT
    assert classified.text_content == "hi"
    assert classified.raw_content is None


def test_function_call_wins_over_text():
    payload = {
        "role": "assistant",
        "text": "let me look that up",
        "functionCall": {"name": "lookup", "arguments": {"q": "paris"}},
    }
    classified = inspect_content(_dump(payload))
    assert classified.content_type is ContentType.FUNCTION_CALL
    assert classified.function_call_name == "lookup"
    assert classified.function_call_arguments == {"q": "paris"}
    assert classified.text_content is None


def test_function_call_arguments_are_kept_verbatim():
    payload = {"function_call": {"name": "add", "arguments": '{"a": 1, "b": 2}'}}
    classified = inspect_content(_dump(payload))
    assert classified.content_type is ContentType.FUNCTION_CALL
    assert classified.function_call_arguments == '{"a": 1, "b": 2}'


def test_function_call_without_usable_name_falls_through():
    payload = {"functionCall": {"name": 5}, "text": "hello"}
    assert classify(_dump(payload)) is ContentType.TEXT


def test_tool_response_wins_over_image_and_text():
    payload = {
        "toolResponse": {"name": "weather", "response": {"temp": 21}},
        "image": {"url": "https://example.com/sun.png"},
        "text": "sunny",
    }
    classified = inspect_content(_dump(payload))
    assert classified.content_type is ContentType.TOOL_RESPONSE
    assert classified.tool_name == "weather"
    assert classified.tool_response == {"temp": 21}


def test_image_with_nested_url():
    payload = {"text": "look at this", "image": {"source": {"url": "https://example.com/cat.png"}}}
    classified = inspect_content(_dump(payload))
    assert classified.content_type is ContentType.IMAGE
    assert classified.image_url == "https://example.com/cat.png"


def test_image_without_url_is_still_an_image():
    payload = {"images": [{"source": {"data": "aGVsbG8="}}]}
    classified = inspect_content(_dump(payload))
    assert classified.content_type is ContentType.IMAGE
    assert classified.image_url is None


def test_structured_document_without_known_shape_is_other():
    payload = {"role": "user", "text": "   ", "attachment": {"kind": "pdf"}}
    classified = inspect_content(_dump(payload))
    assert classified.content_type is ContentType.OTHER
    assert classified.raw_content == payload


def test_json_array_is_other():
    assert classify("[1, 2, 3]") is ContentType.OTHER


def test_unparseable_and_empty_messages_are_unknown():
    for serialized in (None, "", "not json{", "42", "{}"):
        classified = inspect_content(serialized)
        assert classified.content_type is ContentType.UNKNOWN
        assert classified.raw_content is None


def test_langchain_tool_calls_are_function_calls():
    message = AIMessage(
        content="",
        tool_calls=[{"name": "lookup", "args": {"q": "paris"}, "id": "call_1"}],
    )
    classified = inspect_content(json.dumps(message_to_dict(message)))
    assert classified.content_type is ContentType.FUNCTION_CALL
    assert classified.function_call_name == "lookup"
    assert classified.function_call_arguments == {"q": "paris"}


def test_langchain_tool_message_is_tool_response():
    message = ToolMessage(content="21C and sunny", name="weather", tool_call_id="call_1")
    classified = inspect_content(json.dumps(message_to_dict(message)))
    assert classified.content_type is ContentType.TOOL_RESPONSE
    assert classified.tool_name == "weather"
    assert classified.tool_response == "21C and sunny"


def test_langchain_image_part_is_image():
    message = HumanMessage(
        content=[
            {"type": "text", "text": "what is this?"},
            {"type": "image_url", "image_url": {"url": "https://example.com/a.png"}},
        ]
    )
    classified = inspect_content(json.dumps(message_to_dict(message)))
    assert classified.content_type is ContentType.IMAGE
    assert classified.image_url == "https://example.com/a.png"


def test_langchain_plain_messages_are_text():
    for message in (HumanMessage(content="hello"), AIMessage(content="hi there")):
        classified = inspect_content(json.dumps(message_to_dict(message)))
        assert classified.content_type is ContentType.TEXT
        assert classified.text_content == message.content


def test_text_parts_are_joined():
    payload = {"role": "user", "content": [{"type": "text", "text": "hello "}, {"type": "text", "text": "world"}]}
    classified = inspect_content(_dump(payload))
    assert classified.content_type is ContentType.TEXT
    assert classified.text_content == "hello world"


def test_inline_image_payload_leaves_url_blank():
    classified = inspect_content(_dump({"role": "user", "image": "iVBORw0KGgoAAAANSUhEUgAAAAEAAAAB"}))
    assert classified.content_type is ContentType.IMAGE
    assert classified.image_url is None


def test_image_string_with_scheme_is_the_url():
    for url in ("https://example.com/a.png", "data:image/png;base64,iVBORw0KGgo="):
        classified = inspect_content(_dump({"image": url}))
        assert classified.content_type is ContentType.IMAGE
        assert classified.image_url == url


def test_image_url_key_is_taken_verbatim():
    classified = inspect_content(_dump({"image_url": "images/cat.png"}))
    assert classified.content_type is ContentType.IMAGE
    assert classified.image_url == "images/cat.png"


def test_image_key_without_a_reference_falls_through():
    classified = inspect_content(_dump({"image": True, "text": "no picture"}))
    assert classified.content_type is ContentType.TEXT
    assert classified.text_content == "no picture"


def test_unknown_type_data_pair_is_not_unwrapped():
    payload = {"type": "image", "data": {"url": "https://example.com/cat.png"}}
    classified = inspect_content(_dump(payload))
    assert classified.content_type is ContentType.IMAGE
    assert classified.image_url == "https://example.com/cat.png"

    payload = {"type": "note", "data": {"text": "kept as a document"}}
    classified = inspect_content(_dump(payload))
    assert classified.content_type is ContentType.OTHER
    assert classified.raw_content == payload
