"""Content classification for stored conversation messages.

A snapshot is decoded once and then matched against a fixed list of shapes; the
first shape that decodes wins:

1. function call (``function_call`` / ``functionCall`` / ``tool_calls``)
2. tool response (``tool_response`` / ``toolResponse`` / ``type == "tool"``)
3. image (``image`` / ``images`` / ``image_url`` keys, image content parts, ``type == "image"``)
4. non-blank text (``text`` or ``content``)
5. any other JSON object or array -> ``other``
6. anything that is not a JSON document -> ``unknown``

Classification only feeds the queryable columns. It never raises.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from typing import Annotated, Any, Callable, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StringConstraints, ValidationError, model_validator

from .models import ClassifiedContent, ContentType

logger = logging.getLogger(__name__)

_MAX_URL_DEPTH = 8
_URL_KEYS = ("url", "image_url", "imageUrl", "uri", "src")
_IMAGE_KEYS = ("image", "images", "image_url", "imageUrl")
_IMAGE_PART_TYPES = {"image", "image_url", "input_image"}
_TEXT_PART_TYPES = {"text", "input_text", "output_text"}
_URL_PREFIXES = ("http://", "https://", "data:", "file:", "blob:")

# ``type`` values LangChain's ``message_to_dict`` can emit.
LANGCHAIN_MESSAGE_TYPES = frozenset(
    {
        "human",
        "ai",
        "system",
        "chat",
        "tool",
        "function",
        "remove",
        "HumanMessageChunk",
        "AIMessageChunk",
        "SystemMessageChunk",
        "ChatMessageChunk",
        "ToolMessageChunk",
        "FunctionMessageChunk",
    }
)

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _Shape(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class FunctionCallShape(_Shape):
    name: NonBlankStr
    arguments: Any = Field(default=None, validation_alias=AliasChoices("arguments", "args"))


class ToolResponseShape(_Shape):
    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("name", "tool_name", "toolName"))
    response: Any = Field(default=None, validation_alias=AliasChoices("response", "result", "content"))


class ImageShape(_Shape):
    """An image reference; ``url`` stays empty for inline payloads."""

    url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _locate_url(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"url": value if _looks_like_url(value) else None}
        if isinstance(value, (Mapping, list)):
            return {"url": _find_url(value)}
        raise ValueError("image reference must be a string, object or list")


def classify(serialized_message: Optional[str]) -> ContentType:
    """Return the content category of a serialized message."""
    return inspect_content(serialized_message).content_type


def inspect_content(serialized_message: Optional[str]) -> ClassifiedContent:
    """Classify a serialized message and extract the columns for its category."""
    if serialized_message is None:
        return ClassifiedContent(ContentType.UNKNOWN)
    try:
        document = json.loads(serialized_message)
    except (TypeError, ValueError) as exc:
        logger.debug("Message snapshot is not a JSON document: %s", exc)
        return ClassifiedContent(ContentType.UNKNOWN)

    try:
        return classify_document(document)
    except Exception as exc:  # noqa: BLE001 - classification must not abort persistence
        logger.debug("Content classification failed: %s", exc)
        return ClassifiedContent(ContentType.UNKNOWN)


def classify_document(document: Any) -> ClassifiedContent:
    if not isinstance(document, (Mapping, list)) or not document:
        return ClassifiedContent(ContentType.UNKNOWN)

    view = _message_view(document)
    if view is not None:
        for decode in _DECODERS:
            classified = decode(view)
            if classified is not None:
                return classified

    return ClassifiedContent(ContentType.OTHER, raw_content=document)


def is_langchain_envelope(document: Any) -> bool:
    """True for the ``{"type": ..., "data": {...}}`` shape written by ``message_to_dict``."""
    return (
        isinstance(document, Mapping)
        and set(document) == {"type", "data"}
        and isinstance(document["type"], str)
        and document["type"] in LANGCHAIN_MESSAGE_TYPES
        and isinstance(document["data"], Mapping)
    )


def _message_view(document: Any) -> Optional[Mapping[str, Any]]:
    if not isinstance(document, Mapping):
        return None
    if is_langchain_envelope(document):
        return document["data"]
    return document


def _first_valid(model: type[_Shape], candidates: Iterator[Any]) -> Optional[_Shape]:
    for candidate in candidates:
        try:
            return model.model_validate(candidate)
        except ValidationError:
            continue
    return None


def _function_call_candidates(view: Mapping[str, Any]) -> Iterator[Any]:
    for key in ("function_call", "functionCall"):
        if key in view:
            yield view[key]
    extra = view.get("additional_kwargs")
    if isinstance(extra, Mapping) and "function_call" in extra:
        yield extra["function_call"]
    tool_calls = view.get("tool_calls")
    if isinstance(tool_calls, list):
        for call in tool_calls:
            # OpenAI wire format nests the call under "function"
            if isinstance(call, Mapping) and isinstance(call.get("function"), Mapping):
                yield call["function"]
            else:
                yield call


def _decode_function_call(view: Mapping[str, Any]) -> Optional[ClassifiedContent]:
    shape = _first_valid(FunctionCallShape, _function_call_candidates(view))
    if shape is None:
        return None
    return ClassifiedContent(
        ContentType.FUNCTION_CALL,
        function_call_name=shape.name,
        function_call_arguments=shape.arguments,
    )


def _tool_response_candidates(view: Mapping[str, Any]) -> Iterator[Any]:
    for key in ("tool_response", "toolResponse"):
        value = view.get(key)
        if isinstance(value, Mapping):
            yield value
        elif value is not None:
            yield {"response": value}
    if view.get("type") == "tool" or view.get("role") == "tool":
        yield view


def _decode_tool_response(view: Mapping[str, Any]) -> Optional[ClassifiedContent]:
    shape = _first_valid(ToolResponseShape, _tool_response_candidates(view))
    if shape is None:
        return None
    return ClassifiedContent(
        ContentType.TOOL_RESPONSE,
        tool_name=shape.name,
        tool_response=shape.response,
    )


def _image_candidates(view: Mapping[str, Any]) -> Iterator[Any]:
    for key in _IMAGE_KEYS:
        value = view.get(key)
        if value in (None, "", [], {}):
            continue
        # a bare string under a URL key is a reference whatever its scheme
        yield {key: value} if key in _URL_KEYS and isinstance(value, str) else value
    content = view.get("content")
    if isinstance(content, list):
        for part in content:
            if isinstance(part, Mapping) and _part_type(part) in _IMAGE_PART_TYPES:
                yield part
    if _part_type(view) in _IMAGE_PART_TYPES:
        yield view


def _part_type(part: Mapping[str, Any]) -> Optional[str]:
    value = part.get("type")
    return value if isinstance(value, str) else None


def _decode_image(view: Mapping[str, Any]) -> Optional[ClassifiedContent]:
    shape = _first_valid(ImageShape, _image_candidates(view))
    if shape is None:
        return None
    return ClassifiedContent(ContentType.IMAGE, image_url=shape.url)


def _looks_like_url(value: str) -> bool:
    return value.strip().lower().startswith(_URL_PREFIXES)


def _find_url(node: Any, depth: int = 0) -> Optional[str]:
    """Search ``node`` for an image location.

    Strings under one of ``_URL_KEYS`` are taken as-is. Any other string only
    counts when it carries a URL scheme, so inline base64 payloads are ignored.
    """
    if depth > _MAX_URL_DEPTH:
        return None
    if isinstance(node, Mapping):
        for key in _URL_KEYS:
            value = node.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if isinstance(value, (Mapping, list)):
                found = _find_url(value, depth + 1)
                if found:
                    return found
        children = list(node.values())
    elif isinstance(node, list):
        children = node
    else:
        return None

    for child in children:
        if isinstance(child, str):
            if _looks_like_url(child):
                return child.strip()
        elif isinstance(child, (Mapping, list)):
            found = _find_url(child, depth + 1)
            if found:
                return found
    return None


def _decode_text(view: Mapping[str, Any]) -> Optional[ClassifiedContent]:
    text = view.get("text")
    if isinstance(text, str) and text.strip():
        return ClassifiedContent(ContentType.TEXT, text_content=text)

    content = view.get("content")
    if isinstance(content, str) and content.strip():
        return ClassifiedContent(ContentType.TEXT, text_content=content)
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, Mapping) and _part_type(part) in _TEXT_PART_TYPES:
                value = part.get("text")
                if isinstance(value, str):
                    parts.append(value)
        joined = "".join(parts)
        if joined.strip():
            return ClassifiedContent(ContentType.TEXT, text_content=joined)
    return None


_DECODERS: tuple[Callable[[Mapping[str, Any]], Optional[ClassifiedContent]], ...] = (
    _decode_function_call,
    _decode_tool_response,
    _decode_image,
    _decode_text,
)
