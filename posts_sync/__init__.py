"""
Sync incremental Notion -> base relacional.

Componentes:
- reconciliación (diff + escritura por lotes)
- enriquecimiento con texto generado y tareas de imagen
- colector de tareas de imagen

Diseñado para ejecutarse como job programado (cron), no dentro de un API.
"""

__version__ = "1.0.0"
