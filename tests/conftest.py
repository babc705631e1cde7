"""
Test infrastructure for the Newsdesk API.

Strategy
--------
- SQLite in-memory via aiosqlite with a StaticPool, so every session in a
  test sees the same database.  Foreign keys are switched on per
  connection, otherwise SQLite ignores the CASCADE / RESTRICT rules.
- ``get_db`` is overridden to use the test session factory and
  ``get_image_store`` to use an in-memory store, so no disk or network
  is touched.
- Tables are created before and dropped after each test.
- Redis is disabled (``cache._redis = None``); the cache manager
  degrades to no-ops.
- bcrypt runs with the minimum cost factor to keep the suite quick.
"""
import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from newsdesk.cache import cache
from newsdesk.config import settings
from newsdesk.database import Base, get_db
from newsdesk.dependencies import get_image_store
from newsdesk.exceptions import UpstreamError
from newsdesk.image_store import ImageStore, StoredImage
from newsdesk.main import app
from newsdesk.middleware import install_query_counter
from newsdesk.models import Category, User, UserRole
from newsdesk.security import create_access_token, hash_password

# ---------------------------------------------------------------------------
# Test database engine
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)


@event.listens_for(engine_test.sync_engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ---------------------------------------------------------------------------
# In-memory image store
# ---------------------------------------------------------------------------

class InMemoryImageStore(ImageStore):
    """Keeps uploads in a dict keyed by URL; records every delete call."""

    def __init__(self) -> None:
        super().__init__(settings.MAX_IMAGE_SIZE, settings.ALLOWED_IMAGE_EXTENSIONS)
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_uploads = False

    async def save(self, file_name, content):
        self.validate(file_name, content)
        if self.fail_uploads:
            raise UpstreamError("Upload failed: image host unavailable")
        url = f"https://images.test/{len(self.files) + 1}/{file_name}"
        self.files[url] = content
        return StoredImage(file_name=file_name, url=url, file_size=len(content))

    async def delete(self, url):
        self.deleted.append(url)
        return self.files.pop(url, None) is not None


image_store = InMemoryImageStore()

app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_image_store] = lambda: image_store


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def reset_image_store():
    image_store.files.clear()
    image_store.deleted.clear()
    image_store.fail_uploads = False
    image_store.max_size = settings.MAX_IMAGE_SIZE
    yield image_store


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create_user(
    db: AsyncSession,
    username: str,
    role: UserRole = UserRole.ADMIN,
    password: str = "secret123",
    is_active: bool = True,
) -> User:
    user = User(
        username=username,
        password_hash=hash_password(password),
        full_name=username.title(),
        email=f"{username}@example.com",
        role=role.value,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.username, user.role)}"}


@pytest_asyncio.fixture
async def owner(db_session: AsyncSession) -> User:
    return await create_user(db_session, "owner", UserRole.OWNER)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await create_user(db_session, "editor", UserRole.ADMIN)


@pytest.fixture
def owner_headers(owner: User) -> dict:
    return auth_headers(owner)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return auth_headers(admin)


@pytest_asyncio.fixture
async def category(db_session: AsyncSession) -> Category:
    cat = Category(name="Vijesti", slug="vijesti")
    db_session.add(cat)
    await db_session.commit()
    return cat


@pytest_asyncio.fixture
async def other_category(db_session: AsyncSession) -> Category:
    cat = Category(name="Sport", slug="sport")
    db_session.add(cat)
    await db_session.commit()
    return cat
