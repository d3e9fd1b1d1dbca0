"""
Configuracion central del sync.
Gestiona variables de entorno y credenciales de los servicios externos.

Cada componente recibe sus dependencias de forma explicita; la instancia
global `settings` solo se usa en los puntos de entrada (workflows y CLI).
"""
from typing import Dict, List

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings

from posts_sync.shared.constants.sync_constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_ENRICHMENT_LIMIT,
    MAX_CONCURRENT_TASKS,
    Workflow,
)
from posts_sync.shared.exceptions import ValidationError


class Settings(BaseSettings):
    """
    Clase de configuracion del sync.
    Lee variables de entorno y proporciona valores por defecto.
    """

    APP_NAME: str = Field(default="posts-sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)

    # Base de datos
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./posts.db")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=10)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/posts_sync.log")

    # Notion (document store)
    NOTION_TOKEN: str = Field(default="")
    NOTION_ROOT_PAGE_ID: str = Field(default="")
    NOTION_API_VERSION: str = Field(default="2022-06-28")
    NOTION_BASE_URL: str = Field(default="https://api.notion.com/v1")

    # DeepSeek (generacion de texto, API compatible con OpenAI)
    DEEPSEEK_API_KEY: str = Field(default="")
    DEEPSEEK_BASE_URL: str = Field(default="https://api.deepseek.com")
    DEEPSEEK_MODEL: str = Field(default="deepseek-chat")

    # DashScope (generacion de imagenes)
    DASHSCOPE_API_KEY: str = Field(default="")
    DASHSCOPE_BASE_URL: str = Field(default="https://dashscope.aliyuncs.com/api/v1")
    DASHSCOPE_IMAGE_MODEL: str = Field(default="wanx2.1-t2i-turbo")
    DASHSCOPE_IMAGE_SIZE: str = Field(default="1024*1024")

    # R2 (blob storage compatible con S3). Opcional.
    R2_ENDPOINT_URL: str = Field(default="")
    R2_ACCESS_KEY_ID: str = Field(default="")
    R2_SECRET_ACCESS_KEY: str = Field(default="")
    R2_BUCKET: str = Field(default="")
    R2_PUBLIC_URL: str = Field(default="")

    # Workflows
    SYNC_BATCH_SIZE: int = Field(default=DEFAULT_BATCH_SIZE)
    IMAGE_COLLECTION_MAX_TASKS: int = Field(default=MAX_CONCURRENT_TASKS)
    ENRICHMENT_LIMIT: int = Field(default=DEFAULT_ENRICHMENT_LIMIT)
    HTTP_TIMEOUT_S: float = Field(default=30.0)

    @computed_field
    @property
    def r2_enabled(self) -> bool:
        """Indica si hay credenciales completas de R2."""
        return all((
            self.R2_ENDPOINT_URL,
            self.R2_ACCESS_KEY_ID,
            self.R2_SECRET_ACCESS_KEY,
            self.R2_BUCKET,
            self.R2_PUBLIC_URL,
        ))

    def missing_for(self, workflow: Workflow) -> List[str]:
        """Lista las variables requeridas por `workflow` que estan vacias."""
        required: Dict[Workflow, List[str]] = {
            Workflow.SYNC: ["DATABASE_URL", "NOTION_TOKEN", "NOTION_ROOT_PAGE_ID"],
            Workflow.IMAGES: ["DATABASE_URL", "DASHSCOPE_API_KEY"],
            Workflow.ENRICH: ["DATABASE_URL", "NOTION_TOKEN", "DEEPSEEK_API_KEY", "DASHSCOPE_API_KEY"],
        }
        return [name for name in required[Workflow(workflow)] if not getattr(self, name)]

    def validate_for(self, workflow: Workflow) -> None:
        """
        Verifica que la configuracion requerida por el workflow este presente.

        Raises:
            ValidationError: si falta alguna variable
        """
        missing = self.missing_for(workflow)
        if missing:
            raise ValidationError(
                f"Configuracion incompleta para '{Workflow(workflow).value}': {', '.join(missing)}",
                field=missing[0],
            )

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Instancia global de configuracion
settings = Settings()
