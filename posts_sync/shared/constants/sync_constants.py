"""
Constantes del sync: tamaños de lote, límites de tareas y nombres de
propiedades del document store.
"""
from enum import Enum


# Límite duro del BatchWriter (filas por transacción)
MAX_BATCH_SIZE = 100

# Lote por defecto (filas por transacción)
DEFAULT_BATCH_SIZE = 50

# Máximo de tareas de imagen que el colector procesa por invocación
MAX_CONCURRENT_TASKS = 50

# Posts por pasada de enriquecimiento
DEFAULT_ENRICHMENT_LIMIT = 50

# Prefijo de las claves en el blob storage
BLOB_KEY_PREFIX = "posts"


class DocumentProperty(str, Enum):
    """Nombres de las propiedades que el sync lee de cada documento."""
    TITLE = "Title"
    CATEGORY = "Category"
    AUTHOR = "Author"
    CONTENT_KEY = "Content Key"
    EXCERPT = "Excerpt"
    PARENT = "Parent"
    CHILD_PAGES = "Child Pages"


class Workflow(str, Enum):
    """Workflows programables."""
    SYNC = "sync"
    IMAGES = "images"
    ENRICH = "enrich"


# Patrón cron -> workflow (horarios UTC del job)
CRON_SCHEDULE = {
    "0 5 * * *": Workflow.SYNC,
    "30 5 * * *": Workflow.IMAGES,
    "0 6 * * *": Workflow.ENRICH,
}
