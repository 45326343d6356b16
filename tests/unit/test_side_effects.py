"""
Post-commit side effects: audit sink, job queue, background tasks and email.

Failures here must never surface to the request that triggered them.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from claimflow.core.enums import AuditAction, AuditResourceType, ClaimFileStatus, JobType
from claimflow.services.audit import AuditContext, AuditEvent, AuditService
from claimflow.services.jobs import JobQueue, claim_files_migrate_job_id
from claimflow.services.notifications import build_claim_created_message
from claimflow.tasks.claims import cleanup_pending_files, migrate_claim_files, verify_claim_file


def _session_factory(session):
    context = MagicMock()
    context.__aenter__.return_value = session
    context.__aexit__.return_value = False
    return MagicMock(return_value=context)


def _event() -> AuditEvent:
    return AuditEvent(
        action=AuditAction.UPDATE,
        resource=AuditResourceType.CLAIM,
        resource_id=str(uuid4()),
        user_id=uuid4(),
        metadata={"fields": ["description"]},
        context=AuditContext(ip_address="10.0.0.1", user_agent="pytest", request_id="req-1"),
    )


@pytest.mark.unit
class TestAuditService:
    async def test_writes_row_in_own_session(self, mock_db_session):
        event = _event()

        await AuditService(_session_factory(mock_db_session)).log(event)

        row = mock_db_session.add.call_args.args[0]
        assert row.action == AuditAction.UPDATE
        assert row.resource == "claim"
        assert row.resource_id == event.resource_id
        assert row.metadata_ == {"fields": ["description"]}
        assert row.ip_address == "10.0.0.1"
        assert row.request_id == "req-1"
        mock_db_session.commit.assert_awaited_once()

    async def test_failure_is_swallowed(self, mock_db_session):
        mock_db_session.commit.side_effect = RuntimeError("audit table locked")

        await AuditService(_session_factory(mock_db_session)).log(_event())


@pytest.mark.unit
class TestJobQueue:
    def test_job_id_is_task_id(self):
        app = MagicMock()
        claim_id = uuid4()
        job_id = claim_files_migrate_job_id(claim_id)

        result = JobQueue(app).enqueue(
            JobType.CLAIM_FILES_MIGRATE, {"claim_id": str(claim_id)}, job_id=job_id
        )

        assert result == f"claim-files-migrate:{claim_id}"
        app.send_task.assert_called_once_with(
            "claim.files_migrate",
            kwargs={"claim_id": str(claim_id)},
            task_id=job_id,
            countdown=None,
        )

    def test_broker_failure_returns_none(self):
        app = MagicMock()
        app.send_task.side_effect = ConnectionError("broker down")

        assert JobQueue(app).enqueue(JobType.EMAIL_CLAIM_CREATED, {}, job_id="x") is None


@pytest.mark.unit
class TestFileTasks:
    async def test_migration_marks_files_ready_or_failed(self, mock_db_session):
        ok = SimpleNamespace(id=uuid4(), source_key="temp/a.pdf", target_key="clients/a.pdf")
        broken = SimpleNamespace(id=uuid4(), source_key="temp/b.pdf", target_key="clients/b.pdf")
        repo = AsyncMock()
        repo.list_for_claim.return_value = [ok, broken]
        storage = MagicMock()
        storage.move_object_sync.side_effect = [None, OSError("source missing")]

        with patch("claimflow.tasks.claims.ClaimFileRepository", return_value=repo), patch(
            "claimflow.tasks.claims.get_storage", return_value=storage
        ):
            summary = await migrate_claim_files(mock_db_session, uuid4())

        assert summary == {"migrated": 1, "failed": 1}
        repo.set_status.assert_any_await(ok.id, ClaimFileStatus.READY, clear_source=True)
        repo.set_status.assert_any_await(
            broken.id, ClaimFileStatus.FAILED, error_message="source missing"
        )
        assert mock_db_session.commit.await_count == 2

    async def test_verify_missing_object_fails_file(self, mock_db_session):
        file_id = uuid4()
        repo = AsyncMock()
        repo.get_by_id.return_value = SimpleNamespace(
            id=file_id, deleted_at=None, status=ClaimFileStatus.PENDING, target_key="clients/x.pdf"
        )
        storage = MagicMock()
        storage.object_exists_sync.return_value = False

        with patch("claimflow.tasks.claims.ClaimFileRepository", return_value=repo), patch(
            "claimflow.tasks.claims.get_storage", return_value=storage
        ):
            status = await verify_claim_file(mock_db_session, file_id)

        assert status == "failed"
        repo.set_status.assert_awaited_once_with(
            file_id, ClaimFileStatus.FAILED, error_message="Upload not found"
        )

    async def test_verify_skips_deleted_file(self, mock_db_session):
        repo = AsyncMock()
        repo.get_by_id.return_value = SimpleNamespace(deleted_at="2024-01-01")

        with patch("claimflow.tasks.claims.ClaimFileRepository", return_value=repo):
            assert await verify_claim_file(mock_db_session, uuid4()) == "missing"

        repo.set_status.assert_not_awaited()

    async def test_cleanup_removes_expired_objects(self, mock_db_session):
        expired = [SimpleNamespace(file_key="temp/1.pdf"), SimpleNamespace(file_key="temp/2.pdf")]
        repo = AsyncMock()
        repo.delete_expired_pending.return_value = expired
        storage = MagicMock()

        with patch("claimflow.tasks.claims.ClaimFileRepository", return_value=repo), patch(
            "claimflow.tasks.claims.get_storage", return_value=storage
        ):
            removed = await cleanup_pending_files(mock_db_session)

        assert removed == 2
        assert storage.delete_object_sync.call_count == 2
        mock_db_session.commit.assert_awaited_once()


@pytest.mark.unit
def test_claim_created_message():
    message = build_claim_created_message("ana@example.com", "Ana Perez", 1042, "abc")

    assert message["Subject"] == "Claim #1042 received"
    assert message["To"] == "ana@example.com"
    assert "/claims/abc" in message.get_content()


@pytest.mark.unit
class TestClaimAuditTrail:
    async def test_next_cursor_only_when_more(self, mock_db_session):
        from claimflow.services.claim_audit_service import ClaimAuditService

        rows = [SimpleNamespace(id=uuid4()), SimpleNamespace(id=uuid4())]
        claims = AsyncMock()
        claims.claim_exists.return_value = True
        audit_logs = AsyncMock()
        audit_logs.list_for_claim.return_value = (rows, True)
        service = ClaimAuditService(mock_db_session, claims=claims, audit_logs=audit_logs)

        page = await service.list_claim_audit(uuid4(), limit=2)

        assert page.next_cursor == rows[-1].id
        assert page.total is None
        audit_logs.count_for_claim.assert_not_awaited()

    async def test_limit_clamped_and_total_counted(self, mock_db_session):
        from claimflow.services.claim_audit_service import MAX_AUDIT_PAGE_SIZE, ClaimAuditService

        claims = AsyncMock()
        claims.claim_exists.return_value = True
        audit_logs = AsyncMock()
        audit_logs.list_for_claim.return_value = ([], False)
        audit_logs.count_for_claim.return_value = 0
        service = ClaimAuditService(mock_db_session, claims=claims, audit_logs=audit_logs)
        claim_id = uuid4()

        page = await service.list_claim_audit(claim_id, limit=500, include_total=True)

        audit_logs.list_for_claim.assert_awaited_once_with(claim_id, MAX_AUDIT_PAGE_SIZE, None)
        assert page.next_cursor is None
        assert page.total == 0
