"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from promptlab.config import settings
from promptlab.database import engine, get_db
from promptlab.errors import PromptLabError
from promptlab.models import Base

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Prompt Lab API started")

    yield

    await engine.dispose()


app = FastAPI(
    title="Prompt Lab API",
    version="1.0.0",
    description="Prompt templates with live project variables and version history.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PromptLabError)
async def prompt_lab_error_handler(request: Request, exc: PromptLabError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.get("/api/health")
async def health_check():
    """Verify API and database connectivity."""
    try:
        async for db in get_db():
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from promptlab.routes.prompts import router as prompts_router  # noqa: E402
from promptlab.routes.variables import router as variables_router  # noqa: E402

app.include_router(prompts_router)
app.include_router(variables_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("promptlab.main:app", host="0.0.0.0", port=settings.API_PORT, reload=True)
