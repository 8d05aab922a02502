# carematch/api/app.py
"""
FastAPI приложение CareMatch.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from carematch.api.errors import register_exception_handlers
from carematch.api.routes import router
from carematch.api.schemas import HealthStatus
from carematch.common.constants import TypeMsg
from carematch.common.logger import log_info
from carematch.config import settings
from carematch.infra.database import get_db
from carematch.infra.event_bus import get_event_bus
from carematch.infra.redis_client import get_redis


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    await log_info("CareMatch API запускается...", type_msg=TypeMsg.INFO)

    from carematch.api.dependencies import close_dependencies, init_dependencies
    await init_dependencies()

    yield

    await close_dependencies()
    await log_info("CareMatch API остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

app = FastAPI(
    title="CareMatch",
    description="Подбор исполнителей и расчёт стоимости медицинских услуг на дому",
    version=settings.system.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(router)


# =============================================================================
# HEALTH CHECK
# =============================================================================

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    """Проверка здоровья сервиса."""
    deps = {
        "postgres": await get_db().health_check(),
        "redis": await get_redis().health_check(),
        "rabbitmq": await get_event_bus().health_check(),
    }
    states = {name: "healthy" if ok else "unhealthy" for name, ok in deps.items()}
    overall = "healthy" if all(deps.values()) else "degraded"

    return HealthStatus(
        service=settings.system.PROJECT_NAME,
        status=overall,
        version=settings.system.VERSION,
        dependencies=states,
    )
