"""Capabilities the transaction service needs from the store."""

from typing import Any, Protocol

from pymongo import AsyncMongoClient


class TransactionSession(Protocol):
    """One logical store session able to run a multi-statement transaction."""

    async def start_transaction(self) -> Any: ...  # noqa: ANN401

    async def commit_transaction(self) -> None: ...

    async def abort_transaction(self) -> None: ...

    async def end_session(self) -> None: ...


class TransactionBackend(Protocol):
    async def start_session(self) -> TransactionSession: ...


class MongoTransactionBackend:
    """TransactionBackend over pymongo's asynchronous client sessions."""

    def __init__(self, client: AsyncMongoClient[dict[str, Any]]) -> None:
        self._client = client

    async def start_session(self) -> TransactionSession:
        return self._client.start_session()
