"""
Pytest Configuration and Shared Fixtures

SQLite (aiosqlite) file databases per test, fake check executors, and an
ASGI client with the database and executor dependencies overridden.
"""

import asyncio
import os
from contextlib import asynccontextmanager
from typing import List, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./visibility-test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from visibility_engine.adapters.execution.base import BaseCheckExecutor, CheckBatch
from visibility_engine.models import Base, Competitor, Keyword, Project, SubscriptionTier, User
from visibility_engine.schemas.visibility import CheckOutcome, CompetitorMention
from visibility_engine.services.errors import TransientError
from visibility_engine.services.store import VisibilityStore
from visibility_engine.utils.security import create_access_token


# ============================================================================
# Fake executor
# ============================================================================

class FakeExecutor(BaseCheckExecutor):
    """
    Answers every requested pair. Mentions the brand for providers in
    `mentioning`; competitors in `competitor_positions` are reported as
    mentioned at the given position.
    """

    def __init__(self, mentioning=("chatgpt",), competitor_positions=None):
        self.mentioning = set(mentioning)
        self.competitor_positions = dict(competitor_positions or {})
        self.batches: List[CheckBatch] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()
        self.drop_last = False
        self.failing_queries = set()

    async def run_batch(self, batch: CheckBatch) -> List[CheckOutcome]:
        self.batches.append(batch)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if any(c.query in self.failing_queries for c in batch.checks):
            raise TransientError("provider unavailable")

        outcomes = []
        for check in batch.checks:
            mentioned = check.provider in self.mentioning
            outcomes.append(CheckOutcome(
                query=check.query,
                provider=check.provider,
                brand_mentioned=mentioned,
                url_cited=mentioned,
                citation_position=1 if mentioned else None,
                response_text=f"{check.provider} answer to {check.query}",
                competitor_mentions=[
                    CompetitorMention(domain=domain, mentioned=True, position=position)
                    for domain, position in self.competitor_positions.items()
                ],
            ))
        if self.drop_last:
            outcomes = outcomes[:-1]
        return outcomes

    @property
    def calls(self) -> int:
        return len(self.batches)


@pytest.fixture
def fake_executor():
    return FakeExecutor()


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def session_factory(session_maker):
    """Same contract as utils.database.get_db_context"""
    @asynccontextmanager
    async def factory():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    return factory


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(db):
    return VisibilityStore(db)


# ============================================================================
# Data factories
# ============================================================================

@pytest.fixture
def create_user(session_factory):
    counter = {"n": 0}

    async def _create(tier: SubscriptionTier = SubscriptionTier.PRO) -> User:
        counter["n"] += 1
        async with session_factory() as db:
            user = User(
                email=f"user{counter['n']}@example.com",
                full_name="Test User",
                subscription_tier=tier,
                is_active=True,
            )
            db.add(user)
            await db.flush()
        return user
    return _create


@pytest.fixture
def create_project(session_factory):
    async def _create(
        owner: User,
        domain: str = "acme.com",
        competitors=("rival.com", "other.io"),
        keywords=(),
    ) -> Project:
        async with session_factory() as db:
            project = Project(owner_id=owner.id, name="Acme", domain=domain)
            db.add(project)
            await db.flush()
            for competitor in competitors:
                db.add(Competitor(project_id=project.id, name=competitor, domain=competitor))
            for text in keywords:
                db.add(Keyword(project_id=project.id, keyword=text))
            await db.flush()
        return project
    return _create


@pytest.fixture
def project_keywords(session_factory):
    """Keywords of a project as {text: id}"""
    async def _get(project: Project) -> dict:
        async with session_factory() as db:
            result = await db.execute(select(Keyword).where(Keyword.project_id == project.id))
            return {k.keyword: str(k.id) for k in result.scalars().all()}
    return _get


# ============================================================================
# API client
# ============================================================================

@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers


@pytest.fixture
async def client(session_maker, session_factory, fake_executor, monkeypatch):
    from visibility_engine.api.dependencies import get_check_executor, get_session_factory
    from visibility_engine.main import create_app
    from visibility_engine.utils import get_db, rate_limit

    app = create_app()

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def allow_all(*args, **kwargs):
        return True, 1

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_check_executor] = lambda: fake_executor
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    monkeypatch.setattr(rate_limit, "check_rate_limit", allow_all)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
