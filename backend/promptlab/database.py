"""Async SQLAlchemy engine and session factory.

Routes take a session through `get_db` and hand it to the prompt service:

    @router.get("/{prompt_id}", response_model=PromptDetail)
    async def get_prompt(prompt_id: str, db: AsyncSession = Depends(get_db), ...):
        return await prompt_service.get_prompt_detail(db, gateway, user_id, prompt_id)

The same engine serves Postgres (asyncpg) in deployment and SQLite
(aiosqlite) in tests.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from promptlab.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()
