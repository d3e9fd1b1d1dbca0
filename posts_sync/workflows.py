"""
Puntos de entrada de los workflows.

`build_services` arma todas las dependencias a partir de Settings y las
inyecta explícitamente; ningún componente lee la configuración global.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from posts_sync.application.dto.sync_dto import (
    CollectResultDTO,
    EnrichmentResultDTO,
    ReconcileResultDTO,
)
from posts_sync.application.use_cases.enrichment_use_cases import EnrichmentUseCases
from posts_sync.application.use_cases.image_collection_use_cases import TaskLifecycleManager
from posts_sync.application.use_cases.reconciliation_use_cases import ReconciliationEngine
from posts_sync.core.config import Settings
from posts_sync.infrastructure.database.batch_writer import BatchWriter
from posts_sync.infrastructure.database.schema import init_db
from posts_sync.infrastructure.database.session import create_engine
from posts_sync.infrastructure.external.ai.image_generator import DashScopeImageGenerator
from posts_sync.infrastructure.external.ai.text_generator import TextGenerator
from posts_sync.infrastructure.external.notion.notion_client import NotionClient
from posts_sync.infrastructure.external.storage.blob_storage import R2BlobStorage
from posts_sync.infrastructure.repositories.post_repository import PostRepository
from posts_sync.shared.constants.sync_constants import CRON_SCHEDULE, Workflow
from posts_sync.shared.exceptions import ValidationError

WorkflowResult = Union[ReconcileResultDTO, CollectResultDTO, EnrichmentResultDTO]


@dataclass
class ServiceContainer:
    settings: Settings
    engine: AsyncEngine
    repository: PostRepository
    writer: BatchWriter
    notion: NotionClient
    text_generator: TextGenerator
    image_generator: DashScopeImageGenerator
    blob_storage: Optional[R2BlobStorage] = None

    async def aclose(self) -> None:
        """Cierra clientes HTTP y el pool de conexiones."""
        await self.notion.aclose()
        await self.image_generator.aclose()
        if self.blob_storage is not None:
            await self.blob_storage.aclose()
        await self.engine.dispose()


def build_services(settings: Settings, *, engine: Optional[AsyncEngine] = None) -> ServiceContainer:
    engine = engine or create_engine(settings)
    timeout = settings.HTTP_TIMEOUT_S

    blob_storage = None
    if settings.r2_enabled:
        blob_storage = R2BlobStorage(
            endpoint_url=settings.R2_ENDPOINT_URL,
            access_key_id=settings.R2_ACCESS_KEY_ID,
            secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            bucket=settings.R2_BUCKET,
            public_url=settings.R2_PUBLIC_URL,
            timeout_s=timeout,
        )
    else:
        logger.info("R2 no configurado: las imágenes no se copiarán al blob storage")

    return ServiceContainer(
        settings=settings,
        engine=engine,
        repository=PostRepository(engine),
        writer=BatchWriter(engine),
        notion=NotionClient(
            settings.NOTION_TOKEN,
            base_url=settings.NOTION_BASE_URL,
            api_version=settings.NOTION_API_VERSION,
            timeout_s=timeout,
        ),
        text_generator=TextGenerator(
            settings.DEEPSEEK_API_KEY,
            base_url=settings.DEEPSEEK_BASE_URL,
            model=settings.DEEPSEEK_MODEL,
            timeout_s=timeout,
        ),
        image_generator=DashScopeImageGenerator(
            settings.DASHSCOPE_API_KEY,
            base_url=settings.DASHSCOPE_BASE_URL,
            model=settings.DASHSCOPE_IMAGE_MODEL,
            size=settings.DASHSCOPE_IMAGE_SIZE,
            timeout_s=timeout,
        ),
        blob_storage=blob_storage,
    )


async def run_sync_workflow(
    services: ServiceContainer,
    *,
    prune_missing: bool = False,
    batch_size: Optional[int] = None,
) -> ReconcileResultDTO:
    try:
        services.settings.validate_for(Workflow.SYNC)
        engine = ReconciliationEngine(
            services.notion,
            services.repository,
            services.writer,
            root_page_id=services.settings.NOTION_ROOT_PAGE_ID,
            batch_size=batch_size or services.settings.SYNC_BATCH_SIZE,
        )
    except ValidationError as e:
        logger.error(f"Sync no iniciado: {e.message}")
        return ReconcileResultDTO(success=False, error=e.message)

    await init_db(services.engine)
    return await engine.reconcile(prune_missing=prune_missing)


async def run_image_collection_workflow(services: ServiceContainer) -> CollectResultDTO:
    try:
        services.settings.validate_for(Workflow.IMAGES)
        manager = TaskLifecycleManager(
            services.repository,
            services.image_generator,
            services.writer,
            blob_storage=services.blob_storage,
            max_tasks=services.settings.IMAGE_COLLECTION_MAX_TASKS,
        )
    except ValidationError as e:
        logger.error(f"Recolección no iniciada: {e.message}")
        return CollectResultDTO(success=False, error=e.message)

    await init_db(services.engine)
    return await manager.collect()


async def run_enrichment_workflow(services: ServiceContainer) -> EnrichmentResultDTO:
    try:
        services.settings.validate_for(Workflow.ENRICH)
        use_cases = EnrichmentUseCases(
            services.repository,
            services.notion,
            services.text_generator,
            services.image_generator,
            services.writer,
            limit=services.settings.ENRICHMENT_LIMIT,
        )
    except ValidationError as e:
        logger.error(f"Enriquecimiento no iniciado: {e.message}")
        return EnrichmentResultDTO(success=False, error=e.message)

    await init_db(services.engine)
    return await use_cases.enrich()


async def run_workflow(services: ServiceContainer, workflow: Workflow) -> WorkflowResult:
    workflow = Workflow(workflow)
    if workflow is Workflow.SYNC:
        return await run_sync_workflow(services)
    if workflow is Workflow.IMAGES:
        return await run_image_collection_workflow(services)
    return await run_enrichment_workflow(services)


async def run_scheduled(cron: str, services: ServiceContainer) -> WorkflowResult:
    """
    Despacha el workflow asociado a un patrón cron.

    Raises:
        ValidationError: patrón sin workflow asociado
    """
    workflow = CRON_SCHEDULE.get(cron.strip())
    if workflow is None:
        raise ValidationError(f"Patrón cron sin workflow: {cron!r}", field="cron")
    logger.info(f"Cron '{cron}' -> workflow {workflow.value}")
    return await run_workflow(services, workflow)
