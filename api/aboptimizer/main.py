from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aboptimizer.core.config import settings
from aboptimizer.core.logging import configure_logging
from aboptimizer.routers import health, webhooks

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(health.router)
app.include_router(webhooks.router, prefix=settings.API_V1_PREFIX)
