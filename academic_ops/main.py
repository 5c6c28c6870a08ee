from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

from .core.config import settings
from .core.database import close_db_connections
from .core.error_handlers import register_exception_handlers
from .core.logging import setup_logging

from .routers import health, academic_years, classes, timetable, attendance

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await close_db_connections()
    logger.info("Shutdown complete")

app = FastAPI(
    title="Academic Operations API",
    description="Academic years, class rosters, timetables and attendance for multi-branch schools",
    version=settings.app_version,
    lifespan=lifespan
)

@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {process_time:.3f}s")
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

register_exception_handlers(app)

app.include_router(health.router)
app.include_router(academic_years.router)
app.include_router(classes.router)
app.include_router(timetable.router)
app.include_router(attendance.router)

@app.get("/")
async def root():
    return {
        "message": f"{settings.app_name} v{settings.app_version}",
        "version": settings.app_version,
        "features": ["Academic years", "Class rollover", "Timetable", "Attendance"],
        "status": "active"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("academic_ops.main:app", host="0.0.0.0", port=8000, reload=True)
