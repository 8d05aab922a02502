#!/usr/bin/env python3
# main.py
"""
Главная точка входа CareMatch.
Запускает HTTP API или применяет схему БД в зависимости от аргументов.
"""

from __future__ import annotations

import asyncio
import sys

from carematch.config import settings
from carematch.common.logger import setup_logging, log_info, log_error
from carematch.common.constants import TypeMsg
from carematch.infra.database import init_db, close_db


MODES = ("api", "migrate")


async def run_api() -> None:
    """Запускает HTTP API (FastAPI + uvicorn)."""
    import uvicorn

    await log_info(
        f"Запуск CareMatch API на {settings.deployment.API_HOST}:{settings.deployment.API_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "carematch.api.app:app",
        host=settings.deployment.API_HOST,
        port=settings.deployment.API_PORT,
        workers=settings.deployment.API_WORKERS,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("CareMatch API: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_migrate() -> None:
    """Применяет migrations/init.sql и завершает работу."""
    try:
        await init_db()
    finally:
        await close_db()


async def main(mode: str = "api") -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (api, migrate)
    """
    setup_logging()

    await log_info(
        f"CareMatch v{settings.system.VERSION}: запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    try:
        if mode == "api":
            await run_api()
        elif mode == "migrate":
            await run_migrate()
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}", exc_info=True)
        raise


def print_usage() -> None:
    print("""
Использование: python main.py [режим]

Режимы:
    api        - HTTP API (по умолчанию)
    migrate    - применить схему БД (migrations/init.sql)
    """)


if __name__ == "__main__":
    mode = "api"

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in MODES:
            mode = arg
        else:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
