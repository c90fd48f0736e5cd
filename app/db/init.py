from contextlib import asynccontextmanager
from typing import AsyncIterator

import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession

from app.core.config import get_settings
from app.models.failed_job import FailedJob
from app.models.pending_credit_request import PendingCreditRequest
from app.models.profile import Profile
from app.models.property import Property
from app.models.transaction_record import TransactionRecord

DOCUMENT_MODELS = [
    Profile,
    TransactionRecord,
    PendingCreditRequest,
    Property,
    FailedJob,
]

_client: AsyncIOMotorClient | None = None


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db(client: AsyncIOMotorClient | None = None) -> None:
    """Bind Beanie documents. Tests pass an in-memory client."""
    global _client
    settings = get_settings()
    if client is None:
        # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
        kwargs = {}
        if _use_tls(settings.mongodb_uri):
            kwargs["tlsCAFile"] = certifi.where()
            kwargs["tlsDisableOCSPEndpointCheck"] = True
        client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    _client = client
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)


def close_db() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None


@asynccontextmanager
async def transaction() -> AsyncIterator[AsyncIOMotorClientSession | None]:
    """
    One atomic unit of work. Yields a session bound to a multi-document transaction,
    or None when transactions are disabled (standalone server, tests). Callers pass the
    yielded value as ``session=`` to every Beanie call inside the block.
    """
    if _client is None or not get_settings().mongodb_transactions:
        yield None
        return
    async with await _client.start_session() as session:
        async with session.start_transaction():
            yield session
