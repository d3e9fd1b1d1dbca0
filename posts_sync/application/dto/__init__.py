"""
Data Transfer Objects (DTOs) de los workflows.
"""
from .sync_dto import (
    CollectResultDTO,
    EnrichmentResultDTO,
    ReconcileResultDTO,
    SyncStatsDTO,
)

__all__ = [
    "CollectResultDTO",
    "EnrichmentResultDTO",
    "ReconcileResultDTO",
    "SyncStatsDTO",
]
