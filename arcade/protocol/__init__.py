"""Binary client protocol: envelope codec, request dispatcher and TCP server."""

from arcade.protocol.dispatcher import ProtocolDispatcher
from arcade.protocol.envelope import (
    ErrorResp,
    Message,
    MessageType,
    ProtocolError,
    decode_envelope,
    decode_message,
    encode_envelope,
)
from arcade.protocol.server import EnvelopeServer

__all__ = [
    "EnvelopeServer",
    "ProtocolDispatcher",
    "ErrorResp",
    "Message",
    "MessageType",
    "ProtocolError",
    "decode_envelope",
    "decode_message",
    "encode_envelope",
]
