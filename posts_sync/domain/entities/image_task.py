"""
Estado de una tarea de generación de imagen.

La tarea no tiene tabla propia: vive embebida en `posts.image_task_id`.
Ciclo de vida: None -> PENDING -> {SUCCEEDED, FAILED}. Los estados
terminales siempre limpian `image_task_id` del post dueño.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ImageTaskState(str, Enum):
    """Estados reportados por el proveedor."""
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not ImageTaskState.PENDING


@dataclass(frozen=True)
class ImageTaskCreation:
    """Resultado de crear una tarea: task_id o error, nunca ambos."""

    task_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.task_id) and self.error is None


@dataclass(frozen=True)
class ImageTaskStatus:
    """Resultado de consultar una tarea."""

    state: ImageTaskState
    image_url: Optional[str] = None
    error: Optional[str] = None
