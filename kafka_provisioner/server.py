# kafka_provisioner/server.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kafka_provisioner import __version__
from kafka_provisioner.api import provisioning as provisioning_router
from kafka_provisioner.api.dependencies import get_cluster_client
from kafka_provisioner.core.config import get_settings
from kafka_provisioner.core.errors import install_exception_handlers
from kafka_provisioner.core.logging_setup import setup_logging

settings = get_settings()
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        yield
    finally:
        # Only close a client that was actually built by a request.
        if get_cluster_client.cache_info().currsize:
            get_cluster_client().close()
            get_cluster_client.cache_clear()


app = FastAPI(
    title="Kafka Provisioner API",
    version=__version__,
    lifespan=lifespan,
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

# --- CORS: configurable via settings.cors_allow_origins ---
allow_origins = settings.cors_allow_origins or [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)

app.include_router(provisioning_router.router, prefix="/api/v1")


@app.get("/api/v1/health", tags=["health"])
def health() -> dict:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("kafka_provisioner.server:app", host="0.0.0.0", port=8000)
