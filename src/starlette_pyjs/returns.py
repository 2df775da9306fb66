"""The ``Returns`` marker.

A command that expects an answer carries a ``Returns[T]`` field naming the
type of that answer. The server handler passes the marker back to the
responder together with the value, which lets a type checker confirm that
the value matches what the client is waiting for. At runtime the marker has
no data: all instances are equal.

Example:
    @dataclass
    class GetFib:
        n: int = 0
        returns: Returns[int] = Returns()

    async def handle(respond, command):
        if isinstance(command, GetFib):
            return respond(command.returns, fib(command.n))
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic_core import core_schema

T = TypeVar("T")

WIRE_TAG = "Returns"


class Returns(Generic[T]):
    """Phantom marker pinning the expected result type of a command."""

    def __repr__(self) -> str:
        return "Returns()"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Returns)

    def __hash__(self) -> int:
        return hash(Returns)

    @classmethod
    def from_wire(cls, value: Any) -> Returns[Any]:
        """Accept the marker as sent by a client.

        Raises:
            ValueError: for anything other than ``null``, ``{}`` or
                ``{"tag": "Returns"}``.
        """
        if value is None or isinstance(value, Returns):
            return cls()
        if isinstance(value, dict) and value in ({}, {"tag": WIRE_TAG}):
            return cls()
        raise ValueError(f"not a Returns marker: {value!r}")

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        # A missing marker falls back to the field default
        return core_schema.no_info_plain_validator_function(
            cls.from_wire,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda _value: {"tag": WIRE_TAG}
            ),
        )
