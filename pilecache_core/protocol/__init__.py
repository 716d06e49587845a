"""Protocol module - Serialization and codecs."""

from pilecache_core.protocol.serializer import (
    Serializer,
    SerializationError,
    JSONSerializer,
    MsgPackSerializer,
    RawSerializer,
    get_serializer,
    register_serializer,
)

__all__ = [
    "Serializer",
    "SerializationError",
    "JSONSerializer",
    "MsgPackSerializer",
    "RawSerializer",
    "get_serializer",
    "register_serializer",
]
