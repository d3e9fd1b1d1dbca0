"""
CLI: workflows de posts-sync.

Uso recomendado:
  - Ejecutar como job (cron/systemd timer), un subcomando por horario.

Ejecución:
  python scripts/run_workflow.py sync
  python scripts/run_workflow.py sync --prune-missing --batch-size 100
  python scripts/run_workflow.py images
  python scripts/run_workflow.py enrich
  python scripts/run_workflow.py schema
  python scripts/run_workflow.py cron "30 5 * * *"
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

# Cargar variables desde .env antes de construir Settings
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(_PROJECT_ROOT / ".env", override=False)

from posts_sync.core.config import Settings
from posts_sync.core.events import configure_logging
from posts_sync.infrastructure.database.schema import init_db
from posts_sync.shared.exceptions import AppException
from posts_sync.workflows import (
    build_services,
    run_enrichment_workflow,
    run_image_collection_workflow,
    run_scheduled,
    run_sync_workflow,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync Notion -> posts")
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Reconciliación Notion -> posts")
    sync.add_argument(
        "--prune-missing",
        action="store_true",
        help="Elimina posts que ya no aparecen en Notion (solo tras un recorrido completo).",
    )
    sync.add_argument("--batch-size", type=int, default=None, help="Filas por transacción (1..100).")

    sub.add_parser("images", help="Recolecta tareas de imagen pendientes")
    sub.add_parser("enrich", help="Completa campos extendidos en null")
    sub.add_parser("schema", help="Crea la tabla posts y sus índices si no existen")

    cron = sub.add_parser("cron", help="Ejecuta el workflow asociado a un patrón cron")
    cron.add_argument("pattern")
    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> bool:
    services = build_services(settings)
    try:
        if args.command == "schema":
            await init_db(services.engine)
            logger.success("Esquema creado/verificado")
            return True

        if args.command == "sync":
            result = await run_sync_workflow(
                services,
                prune_missing=args.prune_missing,
                batch_size=args.batch_size,
            )
        elif args.command == "images":
            result = await run_image_collection_workflow(services)
        elif args.command == "enrich":
            result = await run_enrichment_workflow(services)
        else:
            result = await run_scheduled(args.pattern, services)

        print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))
        return result.success
    finally:
        await services.aclose()


def main() -> int:
    args = _build_parser().parse_args()
    settings = Settings()
    configure_logging(settings)

    try:
        ok = asyncio.run(_run(args, settings))
    except AppException as e:
        logger.error(f"{e.error_code}: {e.message}")
        print(json.dumps(e.to_dict(), indent=2, ensure_ascii=False))
        return 2
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
