"""
DTOs de resultado de los workflows.

Son la única superficie visible para el operador: cada workflow retorna
uno de estos objetos en vez de propagar excepciones.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field


class SyncStatsDTO(BaseModel):
    """Conteo de filas de `posts` antes y después de una pasada."""

    before: int = Field(0, ge=0, description="Filas antes de la pasada")
    after: int = Field(0, ge=0, description="Filas después de la pasada")

    @computed_field
    @property
    def delta(self) -> int:
        return self.after - self.before


class ReconcileResultDTO(BaseModel):
    """Resultado de una pasada de reconciliación."""

    success: bool = Field(..., description="False si la pasada se abortó")
    processed: int = Field(0, ge=0, description="Intents escritos (inserts + updates + deletes)")
    inserted: int = Field(0, ge=0)
    updated: int = Field(0, ge=0)
    deleted: int = Field(0, ge=0)
    skipped: int = Field(0, ge=0, description="Documentos omitidos (inválidos o sin cambios)")
    errors: List[str] = Field(default_factory=list, description="Errores por documento: '<id>: <mensaje>'")
    error: Optional[str] = Field(None, description="Error que abortó la pasada")
    stats: Optional[SyncStatsDTO] = None


class CollectResultDTO(BaseModel):
    """Resultado de una invocación del colector de tareas de imagen."""

    success: bool
    processed: int = Field(0, ge=0, description="Tareas consultadas")
    completed: int = Field(0, ge=0, description="Tareas terminadas con imagen")
    failed: int = Field(0, ge=0, description="Tareas fallidas o con excepción")
    pending: int = Field(0, ge=0, description="Tareas aún en curso")
    uploaded: int = Field(0, ge=0, description="Imágenes copiadas al blob storage")
    error: Optional[str] = None


class EnrichmentResultDTO(BaseModel):
    """Resultado de una pasada de enriquecimiento."""

    success: bool
    processed: int = Field(0, ge=0, description="Posts examinados")
    updated: int = Field(0, ge=0, description="Posts con al menos un campo completado")
    tasks_created: int = Field(0, ge=0, description="Tareas de imagen creadas")
    errors: List[str] = Field(default_factory=list)
    error: Optional[str] = None
