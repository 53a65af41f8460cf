"""Conversion between resource identifiers and database values.

Messages are plain objects or classes. A message's name is taken from a
``DESCRIPTOR.full_name`` attribute when present, otherwise from its class
name. A message with a ``resource_name()`` method names its own resource.
"""

from __future__ import annotations

import abc
import dataclasses
import re
import threading
from typing import Any, Optional

_DEFAULT_RESOURCE = "<default>"


class ResourceError(ValueError):
    """Raised when an identifier or value cannot be converted."""


@dataclasses.dataclass
class Identifier:
    """A resource identifier: application, resource type and resource id."""

    application_name: str = ""
    resource_type: str = ""
    resource_id: str = ""


class Codec(abc.ABC):
    """Converts identifiers to database values and back; must be thread safe."""

    @abc.abstractmethod
    def encode(self, value: Any) -> Optional[Identifier]:
        """Encode a database value into an identifier."""

    @abc.abstractmethod
    def decode(self, identifier: Optional[Identifier]) -> Any:
        """Decode an identifier into a database value."""


@dataclasses.dataclass
class _Settings:
    application: str = ""
    return_empty: bool = False
    plural: bool = False
    registry: dict = dataclasses.field(default_factory=dict)


_lock = threading.RLock()
_settings = _Settings()


def camel_to_snake(value: str) -> str:
    """Convert a CamelCase name into snake_case."""
    value = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", value)
    value = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", value)
    return value.lower()


def _message_type(message: Any) -> type:
    return message if isinstance(message, type) else type(message)


def _message_name(message: Any) -> str:
    cls = _message_type(message)
    descriptor = getattr(cls, "DESCRIPTOR", None)
    full_name = getattr(descriptor, "full_name", None)
    return full_name if isinstance(full_name, str) else cls.__name__


def _registry_key(message: Any) -> str:
    return _DEFAULT_RESOURCE if message is None else _message_name(message)


def _build_string(application: str, resource_type: str, resource_id: str) -> str:
    return f"{application}/{resource_type}/{resource_id}"


def _parse_string(value: str) -> tuple[str, str, str]:
    parts = value.split("/", 2)
    if len(parts) == 3:
        return parts[0], parts[1], parts[2]
    if len(parts) == 2:
        return "", parts[0], parts[1]
    return "", "", value


def _is_nil(identifier: Optional[Identifier]) -> bool:
    return identifier is None or not identifier.resource_id


def register_application(name: str) -> None:
    """Register the application name used when encoding identifiers."""
    with _lock:
        if _settings.application:
            raise ResourceError("resource: application name already registered")
        _settings.application = name


def application_name() -> str:
    """Return the registered application name."""
    with _lock:
        return _settings.application


def set_return_empty() -> None:
    """Make encoding of None return an empty identifier instead of None."""
    with _lock:
        _settings.return_empty = True


def return_empty() -> bool:
    """Tell whether encoding of None returns an empty identifier."""
    with _lock:
        return _settings.return_empty


def set_plural() -> None:
    """Make derived resource names plural."""
    with _lock:
        _settings.plural = True


def plural() -> bool:
    """Tell whether derived resource names are plural."""
    with _lock:
        return _settings.plural


def register_codec(codec: Optional[Codec], message: Any) -> None:
    """Register a codec for a message, or as the default when message is None."""
    with _lock:
        key = _registry_key(message)
        if codec is None:
            raise ResourceError(f"resource: register nil codec for resource {key}")
        if key in _settings.registry:
            raise ResourceError(f"resource: register codec called twice for resource {key}")
        _settings.registry[key] = codec


def reset_registry() -> None:
    """Forget all codecs, the application name and the flags."""
    global _settings
    with _lock:
        _settings = _Settings()


def _lookup_codec(message: Any) -> Optional[Codec]:
    with _lock:
        return _settings.registry.get(_registry_key(message))


def name(message: Any) -> str:
    """Return the resource name of a message."""
    if message is None:
        return ""
    resource_name = getattr(message, "resource_name", None)
    if callable(resource_name) and not isinstance(message, type):
        return resource_name()
    result = camel_to_snake(_message_name(message).split(".")[-1])
    if plural():
        result += "s"
    return result


def decode(message: Any, identifier: Optional[Identifier]) -> Any:
    """Decode an identifier with the codec registered for message.

    Without a codec, a nil identifier decodes to None, a None message yields
    the fully qualified string, and otherwise the resource id is returned.
    """
    codec = _lookup_codec(message)
    if codec is not None:
        return codec.decode(identifier)
    if _is_nil(identifier):
        return None
    assert identifier is not None
    if message is None:
        return _build_string(
            identifier.application_name, identifier.resource_type, identifier.resource_id
        )
    app = application_name()
    resource = name(message)
    if identifier.application_name not in (app, ""):
        raise ResourceError(
            f"resource: invalid application name - {identifier.application_name}, expected {app}"
        )
    if identifier.resource_type not in (resource, ""):
        raise ResourceError(
            f"resource: invalid resource name - {identifier.resource_type}, expected {resource}"
        )
    return identifier.resource_id


def decode_int64(message: Any, identifier: Optional[Identifier]) -> int:
    """Decode an identifier into an integer; None and empty give 0."""
    value = decode(message, identifier)
    if value is None:
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str):
        raise ResourceError("resource: invalid value type, expected int64")
    if value == "":
        return 0
    try:
        return int(value, 10)
    except ValueError:
        raise ResourceError("resource: invalid value type, expected int64") from None


def decode_bytes(message: Any, identifier: Optional[Identifier]) -> Optional[bytes]:
    """Decode an identifier into bytes; None and empty give None."""
    value = decode(message, identifier)
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise ResourceError("resource: invalid value type, expected []byte")
    if value == "":
        return None
    return value.encode()


def encode(message: Any, value: Any) -> Optional[Identifier]:
    """Encode a value into an identifier with the codec registered for message.

    Without a codec, values must be str, bytes or int. A None message parses
    the value as a fully qualified string; missing parts are filled from the
    registered application name and the message's resource name.
    """
    codec = _lookup_codec(message)
    if codec is not None:
        return codec.encode(value)
    if value is None:
        return Identifier() if return_empty() else None
    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).decode()
    elif isinstance(value, int) and not isinstance(value, bool):
        text = str(value)
    elif isinstance(value, str):
        text = value
    else:
        raise ResourceError(f"resource: unsupported value type {type(value).__name__}")
    if text == "":
        return Identifier()
    app, resource_type, resource_id = _parse_string(text) if message is None else ("", "", "")
    return Identifier(
        application_name=app or application_name(),
        resource_type=resource_type or name(message),
        resource_id=resource_id or text,
    )