"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from imageboard.api import auth, images, search
from imageboard.config import get_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    yield


app = FastAPI(
    title="Image Board",
    description="Tagged image board with collections, votes and tag-query search",
    version="0.1.0",
    lifespan=lifespan,
)

# Stored media and thumbnails
app.mount(
    "/content",
    StaticFiles(directory=settings.image_directory, check_dir=False),
    name="content",
)
app.mount(
    "/thumbs",
    StaticFiles(directory=settings.thumbnail_directory, check_dir=False),
    name="thumbs",
)

# Register routers
app.include_router(auth.router)
app.include_router(images.router)
app.include_router(search.router)


@app.get("/", include_in_schema=False)
async def index():
    return RedirectResponse("/images", status_code=302)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
