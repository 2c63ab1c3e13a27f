import logging

from fastapi import FastAPI
from contextlib import asynccontextmanager

from gallery_pipeline.config import get_settings
from gallery_pipeline.models.base import init_db
from gallery_pipeline.api import directory, jobs, open_calls

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: make sure the pipeline tables exist
    await init_db()
    yield


app = FastAPI(
    title="Gallery Directory Pipeline API",
    description="Canonical gallery directory and open call validation",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(directory.router, prefix="/directory", tags=["directory"])
app.include_router(open_calls.router, prefix="/open-calls", tags=["open-calls"])
app.include_router(jobs.router, prefix="/jobs", tags=["jobs"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
