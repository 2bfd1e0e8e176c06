"""Tests for atomic-or-fallback execution."""

import pytest
from pymongo.errors import OperationFailure

from dndtracker.core.modules.transaction.service import TransactionService
from dndtracker.errors import ValidationError
from tests.fakes import FakeTransactionBackend


class Recorder:
    """Counts calls to the transactional and fallback variants of an operation."""

    def __init__(self, tx_error=None, fallback_error=None):
        self.tx_error = tx_error
        self.fallback_error = fallback_error
        self.tx_calls = 0
        self.fallback_calls = 0

    async def transaction_op(self, session):
        self.tx_calls += 1
        if self.tx_error is not None:
            raise self.tx_error
        return "from-transaction"

    async def fallback_op(self):
        self.fallback_calls += 1
        if self.fallback_error is not None:
            raise self.fallback_error
        return "from-fallback"


class TestWithTransaction:
    """Tests for running one operation inside a transaction."""

    @pytest.mark.asyncio
    async def test_commits_and_ends_session(self, transaction_service, transaction_backend):
        recorder = Recorder()

        result = await transaction_service.with_transaction(recorder.transaction_op)

        assert result == "from-transaction"
        session = transaction_backend.sessions[-1]
        assert session.committed
        assert not session.aborted
        assert session.ended

    @pytest.mark.asyncio
    async def test_aborts_and_reraises(self, transaction_service, transaction_backend):
        recorder = Recorder(tx_error=ValidationError("bad input"))

        with pytest.raises(ValidationError, match="bad input"):
            await transaction_service.with_transaction(recorder.transaction_op)

        session = transaction_backend.sessions[-1]
        assert session.aborted
        assert not session.committed
        assert session.ended

    @pytest.mark.asyncio
    async def test_session_ended_when_start_fails(self, database):
        backend = FakeTransactionBackend(supported=False)
        service = TransactionService(database, backend=backend)

        with pytest.raises(OperationFailure):
            await service.with_transaction(Recorder().transaction_op)

        assert backend.sessions[-1].ended

    @pytest.mark.asyncio
    async def test_operation_receives_session(self, transaction_service, transaction_backend):
        received = []

        async def operation(session):
            received.append(session)

        await transaction_service.with_transaction(operation)

        assert received == [transaction_backend.sessions[-1]]


class TestIsTransactionSupported:
    """Tests for the capability probe."""

    @pytest.mark.asyncio
    async def test_replica_set_supported(self, transaction_service):
        assert await transaction_service.is_transaction_supported() is True

    @pytest.mark.asyncio
    async def test_standalone_unsupported(self, database):
        service = TransactionService(database, backend=FakeTransactionBackend(supported=False))

        assert await service.is_transaction_supported() is False

    @pytest.mark.asyncio
    async def test_probe_ends_its_session(self, database):
        backend = FakeTransactionBackend(supported=False)
        service = TransactionService(database, backend=backend)

        await service.is_transaction_supported()

        assert all(session.ended for session in backend.sessions)

    @pytest.mark.asyncio
    async def test_probe_repeated_without_cache(self, transaction_service, transaction_backend):
        await transaction_service.is_transaction_supported()
        await transaction_service.is_transaction_supported()

        assert len(transaction_backend.sessions) == 2

    @pytest.mark.asyncio
    async def test_probe_cached(self, database):
        backend = FakeTransactionBackend()
        service = TransactionService(database, backend=backend, cache_probe=True)

        await service.is_transaction_supported()
        await service.is_transaction_supported()

        assert len(backend.sessions) == 1


class TestWithFallback:
    """Tests for choosing between the atomic and the best-effort path."""

    @pytest.mark.asyncio
    async def test_transaction_success_skips_fallback(self, transaction_service):
        recorder = Recorder()

        result = await transaction_service.with_fallback(recorder.transaction_op, recorder.fallback_op)

        assert result == "from-transaction"
        assert recorder.tx_calls == 1
        assert recorder.fallback_calls == 0

    @pytest.mark.asyncio
    async def test_transaction_failure_runs_fallback_once(self, transaction_service, transaction_backend):
        recorder = Recorder(tx_error=OperationFailure("WriteConflict", 112))

        result = await transaction_service.with_fallback(recorder.transaction_op, recorder.fallback_op)

        assert result == "from-fallback"
        assert recorder.tx_calls == 1
        assert recorder.fallback_calls == 1
        assert transaction_backend.sessions[-1].aborted

    @pytest.mark.asyncio
    async def test_commit_failure_runs_fallback(self, database):
        backend = FakeTransactionBackend()
        service = TransactionService(database, backend=backend, cache_probe=True)
        await service.is_transaction_supported()
        backend.fail_commit = OperationFailure("commit failed")
        recorder = Recorder()

        result = await service.with_fallback(recorder.transaction_op, recorder.fallback_op)

        assert result == "from-fallback"
        assert recorder.fallback_calls == 1

    @pytest.mark.asyncio
    async def test_unsupported_goes_straight_to_fallback(self, database):
        service = TransactionService(database, backend=FakeTransactionBackend(supported=False))
        recorder = Recorder()

        result = await service.with_fallback(recorder.transaction_op, recorder.fallback_op)

        assert result == "from-fallback"
        assert recorder.tx_calls == 0
        assert recorder.fallback_calls == 1

    @pytest.mark.asyncio
    async def test_fallback_failure_reaches_caller(self, transaction_service):
        recorder = Recorder(
            tx_error=OperationFailure("WriteConflict", 112),
            fallback_error=ValidationError("fallback failed"),
        )

        with pytest.raises(ValidationError, match="fallback failed"):
            await transaction_service.with_fallback(recorder.transaction_op, recorder.fallback_op)

        assert recorder.fallback_calls == 1
