"""
Message type registry: the lookup from a stored 'message_type' tag to the payload class.

The hosting application builds one registry at startup and injects it into the outbox
processor and the in-process bus. Resolution is a plain dict lookup, so there is no
process-wide cache to invalidate.
"""
import json
import logging
from typing import Any, Dict, Iterable, Optional, Type

from pydantic import BaseModel

log = logging.getLogger("message_registry")


class UnknownMessageType(KeyError):
    """Raised when a message type tag has no registered payload class."""


class MessageTypeRegistry:
    def __init__(self, payload_types: Iterable[Type[BaseModel]] = ()):
        self._types: Dict[str, Type[BaseModel]] = {}
        self._names: Dict[Type[BaseModel], str] = {}
        for payload_type in payload_types:
            self.register(payload_type)

    def register(self, payload_type: Type[BaseModel], message_type: Optional[str] = None):
        """
        Registers a payload class under its tag. Usable as a decorator.

        The tag defaults to the class-level 'message_type' attribute (see IntegrationEvent).
        Registering a different class under an existing tag is an error.
        """
        name = message_type or getattr(payload_type, "message_type", "")
        if not name:
            raise ValueError(f"{payload_type.__name__} has no message_type to register under.")

        existing = self._types.get(name)
        if existing is not None and existing is not payload_type:
            raise ValueError(f"Message type '{name}' is already registered to {existing.__name__}.")

        self._types[name] = payload_type
        self._names[payload_type] = name
        log.debug(f"Registered message type {name} -> {payload_type.__name__}")
        return payload_type

    def resolve(self, message_type: str) -> Optional[Type[BaseModel]]:
        return self._types.get(message_type)

    def resolve_or_raise(self, message_type: str) -> Type[BaseModel]:
        payload_type = self.resolve(message_type)
        if payload_type is None:
            raise UnknownMessageType(message_type)
        return payload_type

    def name_of(self, payload_type: Type[BaseModel]) -> str:
        try:
            return self._names[payload_type]
        except KeyError:
            raise UnknownMessageType(payload_type.__name__) from None

    def deserialize(self, payload_type: Type[BaseModel], content: str) -> Optional[BaseModel]:
        """
        Builds the payload from its JSON content. Returns None when the content carries no
        payload at all (empty or JSON null); invalid content raises.
        """
        if not content or not content.strip():
            return None
        data: Any = json.loads(content)
        if data is None:
            return None
        return payload_type.model_validate(data)

    def __contains__(self, message_type: str) -> bool:
        return message_type in self._types

    def __len__(self) -> int:
        return len(self._types)

    @property
    def message_types(self):
        return sorted(self._types)
