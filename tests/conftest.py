"""Shared fixtures: in-memory SQLite engine/session and a seeded data set."""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from database import init_db
from database.models import Ad, Comment, CommentCluster


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Two brands; Acme has a January 2024 window plus two December comments."""
    async with session_factory() as session:
        session.add_all([
            Ad(ad_id="A1", brand="Acme", ad_name="Summer Sale", angle_type="UGC",
               image_url="https://cdn.example.com/a1.jpg", platform="facebook",
               created_at=utc(2024, 1, 5)),
            Ad(ad_id="A2", brand="Acme", ad_title="Winter Promo",
               extra_data={"Angel Type": "Testimonial"},
               created_at=utc(2023, 12, 20)),
            Ad(ad_id="A3", brand="Acme", ad_name="New Year",
               created_at=utc(2024, 1, 20)),
            Ad(ad_id="G1", brand="Globex", ad_name="Launch",
               created_at=utc(2024, 1, 10)),
        ])
        session.add_all([
            Comment(comment_id="c1", ad_id="A1", brand="Acme", message="Great price",
                    sentiment="Positive", theme="Price", created_time=utc(2024, 1, 6, 9)),
            Comment(comment_id="c2", ad_id="A1", brand="Acme", message="Too expensive",
                    sentiment="negative", created_time=utc(2024, 1, 7, 12)),
            Comment(comment_id="c3", ad_id="A1", brand="Acme", message="Love the quality",
                    sentiment="positive", theme="Quality", created_time=utc(2024, 1, 10)),
            Comment(comment_id="c4", ad_id="A2", brand="Acme", message="Nice",
                    sentiment="positive", created_time=utc(2024, 1, 15)),
            Comment(comment_id="c5", ad_id="A3", brand="Acme", message="ok",
                    sentiment="neutral", created_time=utc(2024, 1, 21)),
            Comment(comment_id="c6", ad_id="A2", brand="Acme", message="Cozy",
                    sentiment="positive", created_time=utc(2023, 12, 25)),
            Comment(comment_id="c7", ad_id="A2", brand="Acme", message="Meh",
                    sentiment="negative", created_time=utc(2023, 12, 26)),
            Comment(comment_id="g1", ad_id="G1", brand="Globex", message="Cool launch",
                    sentiment="positive", created_time=utc(2024, 1, 11)),
        ])
        session.add(CommentCluster(comment_id="c2", cluster_name="Price", ad_id="A1"))
        await session.commit()
