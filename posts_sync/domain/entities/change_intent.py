"""
Intenciones de cambio: valores transitorios producidos por la
reconciliación (y los workflows de enriquecimiento) y consumidos por el
BatchWriter. Nunca se persisten.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Union

from posts_sync.domain.entities.post import PostRecord


class IntentType(str, Enum):
    """Tipos de intención, en el orden en que el writer los aplica."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class InsertIntent:
    record: PostRecord

    @property
    def type(self) -> IntentType:
        return IntentType.INSERT

    @property
    def id(self) -> str:
        return self.record.id


@dataclass(frozen=True)
class UpdateIntent:
    id: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> IntentType:
        return IntentType.UPDATE


@dataclass(frozen=True)
class DeleteIntent:
    id: str

    @property
    def type(self) -> IntentType:
        return IntentType.DELETE


ChangeIntent = Union[InsertIntent, UpdateIntent, DeleteIntent]
