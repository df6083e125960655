"""Pytest configuration and shared fixtures."""

import os
import tempfile

# Settings are read at import time; point them at throwaway resources first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="freightdesk-media-"))

import uuid
from contextlib import asynccontextmanager
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, List, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from starlette.datastructures import Headers, UploadFile

from freightdesk.core.database import Base, get_db
from freightdesk.models import claim_request, invoice, truck, user, vehicle_condition  # noqa: F401
from freightdesk.models.user import User
from freightdesk.schemas.invoice import InvoiceCreate
from freightdesk.services.storage import StorageService


class FakeJobQueue:
    """Records enqueued jobs instead of talking to Redis."""

    def __init__(self):
        self.jobs: List[Tuple[str, str, Dict[str, Any]]] = []

    async def enqueue(self, queue_name: str, job_type: str, payload: Dict[str, Any]) -> str:
        self.jobs.append((queue_name, job_type, payload))
        return str(uuid.uuid4())

    async def enqueue_invoice_pdf(self, invoice_id) -> str:
        return await self.enqueue("invoice-pdf", "generate-pdf", {"invoice_id": str(invoice_id)})

    async def enqueue_claim_form_pdf(self, payload: Dict[str, Any]) -> str:
        return await self.enqueue("claim-form-pdf", "generate-claim-form-pdf", payload)

    def of_type(self, job_type: str) -> List[Dict[str, Any]]:
        return [payload for _, name, payload in self.jobs if name == job_type]


def make_upload(filename: str, content: bytes = b"data", content_type: str = "image/jpeg") -> UploadFile:
    return UploadFile(file=BytesIO(content), filename=filename, headers=Headers({"content-type": content_type}))


def png_bytes(size=(40, 30), color=(200, 30, 30)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_maker(tmp_path):
    """Sessions on a file database, each with its own connection.

    Used where concurrent transactions must really contend for locks.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'freightdesk.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def session_factory(session_maker):
    """Stand-in for worker_session: a fresh session on the test database."""

    @asynccontextmanager
    async def factory():
        async with session_maker() as session:
            yield session

    return factory


@pytest.fixture
def queue() -> FakeJobQueue:
    return FakeJobQueue()


@pytest.fixture
def storage(tmp_path) -> StorageService:
    return StorageService(root=str(tmp_path / "media"), base_url="http://media.test")


@pytest_asyncio.fixture
async def user(db) -> User:
    user = User(mobile_number="9876543210", name="Ramesh Kumar", state="Maharashtra")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def invoice_payload(user):
    """Factory for a valid InvoiceCreate owned by the `user` fixture."""

    def build(**overrides) -> InvoiceCreate:
        data = {
            "user_id": user.id,
            "invoice_date": "2024-03-01",
            "supplier_name": "A",
            "supplier_address": ["12 Market Yard", "Nashik"],
            "place_of_supply": "Maharashtra",
            "bill_to_name": "KSRT Agromart",
            "bill_to_address": ["Muhana Mandi", "Jaipur"],
            "ship_to_name": "KSRT Agromart",
            "ship_to_address": ["Muhana Mandi", "Jaipur"],
            "product_name": "Onion",
            "quantity": Decimal("10"),
            "rate": Decimal("5"),
            "amount": Decimal("50"),
        }
        data.update(overrides)
        return InvoiceCreate.model_validate(data)

    return build


@pytest_asyncio.fixture
async def client(session_maker, queue, storage):
    """HTTP client over the app with database, queue and storage overridden."""
    from freightdesk.main import app
    from freightdesk.services.notifications import get_notifier
    from freightdesk.services.storage import get_storage_service
    from freightdesk.tasks.queue import get_job_queue

    async def override_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_job_queue] = lambda: queue
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_notifier] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http

    app.dependency_overrides = {}
