"""Client/server command protocol.

Defines how commands issued by compiled client code reach server handlers:

- Codec: tagged JSON <-> command values, result values -> JSON
- Handler: decode the ``json`` form field, dispatch, answer exactly once
"""

from .codec import CommandCodec, to_wire
from .handler import CommandDispatcher, CommandHandler, Responder, run_command_handler

__all__ = [
    "CommandCodec",
    "CommandDispatcher",
    "CommandHandler",
    "Responder",
    "run_command_handler",
    "to_wire",
]
