"""Command envelope codec.

Commands travel as JSON objects tagged with the name of their variant:

    {"tag": "GetFib", "n": 10, "returns": {"tag": "Returns"}}

Decoding goes from raw JSON text to an instance of one of the registered
variant classes and is all-or-nothing: values are not coerced between JSON
types, and a command must carry exactly the fields of its variant. Only the
``returns`` marker may be omitted or sent as ``null``. Encoding goes from any result value
to JSON and only needs a forward conversion, so result types do not have to
be registered anywhere.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import types
import typing
from collections.abc import Mapping
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

from ..errors import UnencodableResult, UnparseableCommand
from ..returns import WIRE_TAG, Returns

logger = logging.getLogger(__name__)

T = TypeVar("T")

TAG_KEY = "tag"


def to_wire(value: Any) -> Any:
    """Convert a value to its portable JSON representation."""
    if isinstance(value, Returns):
        return {TAG_KEY: WIRE_TAG}
    if isinstance(value, Enum):
        return to_wire(value.value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        data: dict[str, Any] = {TAG_KEY: type(value).__name__}
        for f in dataclasses.fields(value):
            data[f.name] = to_wire(getattr(value, f.name))
        return data
    if isinstance(value, BaseModel):
        data = {TAG_KEY: type(value).__name__}
        data.update(value.model_dump(mode="json"))
        return data
    if isinstance(value, Mapping):
        return {str(k): to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_wire(v) for v in value]
    # Anything else only has to be showable
    return to_jsonable_python(value, fallback=str)


_MARKER = {TAG_KEY: WIRE_TAG}


def matches_wire(sent: Any, expected: Any) -> bool:
    """Whether a received JSON value is exactly the wire form ``expected``.

    ``expected`` is the ``to_wire`` form of the decoded value. Numbers must
    keep their JSON kind (no float where an int was decoded), object keys
    must match, and a nested ``tag`` may be omitted but not contradicted.
    Markers may be ``null``, ``{}`` or missing.
    """
    if expected == _MARKER:
        return sent is None or sent == {} or sent == _MARKER
    if isinstance(expected, dict):
        if not isinstance(sent, dict):
            return False
        keys = set(sent)
        wanted = set(expected)
        if TAG_KEY in expected:
            if TAG_KEY in sent and sent[TAG_KEY] != expected[TAG_KEY]:
                return False
            keys.discard(TAG_KEY)
            wanted.discard(TAG_KEY)
        required = {k for k in wanted if expected[k] != _MARKER}
        if not required <= keys <= wanted:
            return False
        return all(matches_wire(sent[k], expected[k]) for k in keys)
    if isinstance(expected, list):
        return (
            isinstance(sent, list)
            and len(sent) == len(expected)
            and all(matches_wire(s, e) for s, e in zip(sent, expected))
        )
    if isinstance(expected, bool) or isinstance(sent, bool):
        return sent is expected
    if isinstance(expected, int):
        return type(sent) is int and sent == expected
    if isinstance(expected, float):
        # JavaScript sends whole floats as integers
        return isinstance(sent, (int, float)) and sent == expected
    return type(sent) is type(expected) and sent == expected


def variants_of(union: Any) -> tuple[type, ...]:
    """Unpack ``A | B`` or ``Union[A, B]`` into its member classes."""
    origin = typing.get_origin(union)
    if origin is typing.Union or origin is types.UnionType:
        return typing.get_args(union)
    return (union,)


class CommandCodec:
    """Decodes commands and encodes results for one command union.

    Usage:
        Command = GetFib | Echo
        codec = CommandCodec.for_union(Command)

        command = codec.decode('{"tag": "Echo", "contents": "hi"}')
        body = codec.encode("hi", Returns())
    """

    def __init__(self, *variants: type) -> None:
        if not variants:
            raise ValueError("A command codec needs at least one variant")

        self._variants: dict[str, type] = {}
        self._adapters: dict[str, TypeAdapter[Any]] = {}
        for variant in variants:
            name = variant.__name__
            if name in self._variants:
                raise ValueError(f"Duplicate command variant name: {name}")
            self._variants[name] = variant
            self._adapters[name] = TypeAdapter(variant)

    @classmethod
    def for_union(cls, union: Any) -> CommandCodec:
        """Create a codec from a union type alias."""
        return cls(*variants_of(union))

    @property
    def variant_names(self) -> list[str]:
        return list(self._variants)

    def decode(self, raw: str | bytes) -> Any:
        """Decode a raw JSON payload into a command.

        Raises:
            UnparseableCommand: if the text is not JSON or the JSON does not
                match any command variant.
        """
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise UnparseableCommand(text, f"malformed JSON: {e}") from e
        return self.decode_value(data, raw=text)

    def decode_value(self, data: Any, raw: str | None = None) -> Any:
        """Decode an already-parsed JSON value into a command."""
        if raw is None:
            raw = json.dumps(data, default=str)

        if not isinstance(data, dict):
            raise UnparseableCommand(raw, f"expected a JSON object, got {type(data).__name__}")

        tag = data.get(TAG_KEY)
        if not isinstance(tag, str):
            raise UnparseableCommand(raw, f"missing '{TAG_KEY}'")
        adapter = self._adapters.get(tag)
        if adapter is None:
            raise UnparseableCommand(raw, f"unrecognized command: {tag}")

        fields = {k: v for k, v in data.items() if k != TAG_KEY}
        try:
            command = adapter.validate_json(json.dumps(fields), strict=True)
        except ValidationError as e:
            raise UnparseableCommand(raw, f"invalid {tag}: {e.error_count()} validation error(s)") from e

        if not matches_wire(data, to_wire(command)):
            raise UnparseableCommand(raw, f"invalid {tag}: unexpected or missing fields")

        logger.debug(f"Decoded command {tag}")
        return command

    def encode(self, value: T, returns: Returns[T]) -> bytes:
        """Encode a result value as JSON bytes.

        ``returns`` only pins the result type for the type checker.

        Raises:
            UnencodableResult: if the value has no JSON form, such as NaN,
                infinity, or a self-referencing container.
        """
        try:
            text = json.dumps(
                to_wire(value),
                ensure_ascii=False,
                allow_nan=False,
                separators=(",", ":"),
            )
        except (ValueError, TypeError, RecursionError) as e:
            raise UnencodableResult(str(e)) from e
        return text.encode("utf-8")
