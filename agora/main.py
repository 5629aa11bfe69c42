from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI

from agora.config import settings
from agora.errors import register_exception_handlers
from agora.logging_config import configure_logging
from agora.metrics import metrics_endpoint
from agora.middleware.logging_middleware import RequestLoggingMiddleware
from agora.routers import comments, moderation, posts, reports, users, votes


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure structured logging before anything else
    configure_logging()

    # Startup: create Redis connection and store on app.state
    app.state.redis = aioredis.from_url(
        settings.redis_url, encoding="utf-8", decode_responses=True
    )
    try:
        yield
    finally:
        await app.state.redis.aclose()


app = FastAPI(title=f"{settings.app_name} API", version="0.1.0", lifespan=lifespan)

# Register request logging middleware (runs on every request)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(users.router)
app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(votes.router)
app.include_router(reports.router)
app.include_router(moderation.router)

# Prometheus metrics endpoint
app.get("/metrics")(metrics_endpoint)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
