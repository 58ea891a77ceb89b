"""
CampusDesk - FastAPI Backend
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campusdesk import __version__
from campusdesk.config import get_settings
from campusdesk.container import get_container
from campusdesk.exceptions import CampusDeskError
from campusdesk.middleware.logging_middleware import LoggingMiddleware
from campusdesk.routes import admin, ai, health, tickets
from campusdesk.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = get_container()
    await container.start()
    try:
        yield
    finally:
        await container.stop()


app = FastAPI(
    title="CampusDesk",
    description="Campus complaint routing, escalation and AI enrichment",
    version=__version__,
    lifespan=lifespan
)

# Middleware runs bottom-up: CORS first, then logging
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(CampusDeskError)
async def campusdesk_error_handler(request: Request, exc: CampusDeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message}
    )


app.include_router(tickets.router)
app.include_router(ai.router)
app.include_router(admin.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"message": "CampusDesk API", "version": __version__}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.fastapi_host, port=settings.fastapi_port)
