"""PileCache Serializer - Value Serialization.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class SerializationError(ValueError):
    """Value could not be encoded or decoded."""


class Serializer(ABC):
    """Abstract serializer for cache values.

    Implementations handle different serialization formats. None of them
    may give stored data code-execution semantics on load.
    """

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Get format name."""
        pass

    @abstractmethod
    def serialize(self, value: Any) -> bytes:
        """Serialize value to bytes.

        Args:
            value: Value to serialize

        Returns:
            Serialized bytes
        """
        pass

    @abstractmethod
    def deserialize(self, data: bytes) -> Any:
        """Deserialize bytes to value.

        Args:
            data: Serialized bytes

        Returns:
            Deserialized value
        """
        pass


class JSONSerializer(Serializer):
    """JSON serializer.

    Handles scalars, nested mappings and lists. Keys and strings are
    escaped by the encoder, so delimiters inside values round-trip.
    """

    def __init__(self, indent: Optional[int] = None, sort_keys: bool = False):
        self.indent = indent
        self.sort_keys = sort_keys

    @property
    def format_name(self) -> str:
        return "json"

    def serialize(self, value: Any) -> bytes:
        """Serialize to JSON bytes.

        Args:
            value: Value to serialize

        Returns:
            JSON bytes

        Raises:
            SerializationError: If value is not JSON-compatible
        """
        try:
            return json.dumps(
                value,
                indent=self.indent,
                sort_keys=self.sort_keys,
                ensure_ascii=False,
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot encode {type(value).__name__}: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        """Deserialize from JSON bytes.

        Args:
            data: JSON bytes

        Returns:
            Deserialized value

        Raises:
            SerializationError: If data is not valid JSON
        """
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise SerializationError(f"Invalid JSON payload: {e}") from e


class MsgPackSerializer(Serializer):
    """MessagePack serializer.

    Compact binary format, faster than JSON.
    Requires msgpack package.
    """

    @property
    def format_name(self) -> str:
        return "msgpack"

    def serialize(self, value: Any) -> bytes:
        try:
            import msgpack
        except ImportError:
            raise ImportError("msgpack package not installed")
        try:
            return msgpack.packb(value, use_bin_type=True)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot encode {type(value).__name__}: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        try:
            import msgpack
        except ImportError:
            raise ImportError("msgpack package not installed")
        try:
            return msgpack.unpackb(data, raw=False)
        except ValueError as e:
            raise SerializationError(f"Invalid MessagePack payload: {e}") from e


class RawSerializer(Serializer):
    """Pass-through serializer for static mode.

    Only bytes-like values are accepted; they are stored verbatim and
    loading returns the stored bytes unchanged.
    """

    @property
    def format_name(self) -> str:
        return "raw"

    def serialize(self, value: Union[bytes, bytearray, memoryview]) -> bytes:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        # str is rejected so that loading returns what was stored
        raise SerializationError(
            f"Static values must be bytes, got {type(value).__name__}"
        )

    def deserialize(self, data: bytes) -> bytes:
        return data


class SerializerRegistry:
    """Registry of serializers."""

    def __init__(self):
        self._serializers: dict[str, Serializer] = {}
        self._default: str = "json"

        # Register default serializers
        self.register(JSONSerializer())
        self.register(MsgPackSerializer())
        self.register(RawSerializer())

    def register(self, serializer: Serializer) -> None:
        """Register a serializer.

        Args:
            serializer: Serializer to register
        """
        self._serializers[serializer.format_name] = serializer

    def get(self, format_name: str) -> Serializer:
        """Get serializer by format.

        Args:
            format_name: Format name

        Returns:
            Serializer instance

        Raises:
            KeyError: If format not found
        """
        if format_name not in self._serializers:
            raise KeyError(f"Unknown serializer format: {format_name}")
        return self._serializers[format_name]

    def get_default(self) -> Serializer:
        """Get default serializer."""
        return self._serializers[self._default]


# Global registry
_registry = SerializerRegistry()


def get_serializer(format_name: Optional[str] = None) -> Serializer:
    """Get serializer by format.

    Args:
        format_name: Format name or None for default

    Returns:
        Serializer instance
    """
    if format_name is None:
        return _registry.get_default()
    return _registry.get(format_name)


def register_serializer(serializer: Serializer) -> None:
    """Register a serializer in the global registry."""
    _registry.register(serializer)


__all__ = [
    "Serializer",
    "SerializationError",
    "JSONSerializer",
    "MsgPackSerializer",
    "RawSerializer",
    "SerializerRegistry",
    "get_serializer",
    "register_serializer",
]
