"""
Integration tests for PlatformSyncService.

Uses AsyncMock for the platform client and an in-memory SQLite DB.
No real network calls are made.
"""
from datetime import datetime
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlmodel import Session, select

from intake.config import Settings
from intake.models.intake import IntakeRecord, Task
from intake.models.sync import SyncLog
from intake.models.user import User
from intake.platform.client import PlatformClient
from intake.platform.errors import (
    ConfigurationError,
    Forbidden,
    NotFound,
    NotRemoteSourced,
    RemoteRejected,
    RemoteUnavailable,
    SyncFailed,
)
from intake.platform.sync_service import PULL_STATUSES, PlatformSyncService

LISTING = [
    {
        "id": 501,
        "organizationName": "Lakeside Church",
        "firstName": "Jordan",
        "lastName": "Lee",
        "scheduledEventDate": "2024-06-20T10:00:00",
        "estimatedSandwichCount": 250,
        "status": "new",
    },
    {
        "id": 502,
        "organization": "Riverside Scouts",
        "contactName": "Pat Kim",
        "desiredEventDate": "2024-07-01",
        "sandwichCount": 120,
        "status": "in_process",
    },
]


def make_mock_client(listing=None):
    client = AsyncMock()
    client.list_event_requests = AsyncMock(
        return_value=LISTING if listing is None else listing
    )
    client.update_event_request = AsyncMock(return_value={})
    return client


def _logs(engine):
    with Session(engine) as s:
        return s.exec(select(SyncLog).order_by(SyncLog.id)).all()


def _records(engine):
    with Session(engine) as s:
        return s.exec(select(IntakeRecord).order_by(IntakeRecord.id)).all()


def _add_record(engine, **values) -> IntakeRecord:
    defaults = dict(organization_name="Existing Org", contact_name="Someone")
    defaults.update(values)
    record = IntakeRecord(**defaults)
    with Session(engine) as s:
        s.add(record)
        s.commit()
        s.refresh(record)
    return record


# ─── Pull ─────────────────────────────────────────────────────────────────────

class TestPull:
    @pytest.mark.asyncio
    async def test_imports_new_requests(self, engine, coordinator):
        service = PlatformSyncService(engine, client=make_mock_client())
        summary = await service.pull(coordinator)

        assert (summary.imported, summary.updated, summary.total) == (2, 0, 2)
        records = _records(engine)
        assert [r.external_event_id for r in records] == ["501", "502"]
        assert records[0].organization_name == "Lakeside Church"
        assert records[1].organization_name == "Riverside Scouts"
        assert records[1].contact_name == "Pat Kim"

    @pytest.mark.asyncio
    async def test_queries_by_linked_platform_id(self, engine, coordinator):
        client = make_mock_client()
        service = PlatformSyncService(engine, client=client)
        await service.pull(coordinator)
        client.list_event_requests.assert_awaited_once_with(
            "user_1700000000_abcdef", PULL_STATUSES
        )
        assert "completed" not in PULL_STATUSES

    @pytest.mark.asyncio
    async def test_import_sets_owner_status_and_provenance(self, engine, coordinator):
        service = PlatformSyncService(engine, client=make_mock_client())
        await service.pull(coordinator)

        first, second = _records(engine)
        assert first.owner_id == coordinator.id
        assert first.status == "New"
        assert second.status == "In Process"
        assert "Imported from platform" in first.internal_notes

    @pytest.mark.asyncio
    async def test_import_generates_tasks_for_dated_requests(self, engine, coordinator):
        service = PlatformSyncService(engine, client=make_mock_client())
        await service.pull(coordinator)
        with Session(engine) as s:
            tasks = s.exec(select(Task)).all()
        assert len(tasks) == 8

    @pytest.mark.asyncio
    async def test_second_pull_imports_nothing(self, engine, coordinator):
        service = PlatformSyncService(engine, client=make_mock_client())
        await service.pull(coordinator)
        summary = await service.pull(coordinator)

        assert summary.imported == 0
        assert summary.updated == 0
        assert len(_records(engine)) == 2

    @pytest.mark.asyncio
    async def test_advances_status_forward(self, engine, coordinator):
        record = _add_record(engine, external_event_id="501", status="New")
        listing = [{"id": 501, "status": "scheduled", "organizationName": "Renamed"}]
        service = PlatformSyncService(engine, client=make_mock_client(listing))

        summary = await service.pull(coordinator)

        assert summary.updated == 1
        with Session(engine) as s:
            refreshed = s.get(IntakeRecord, record.id)
        assert refreshed.status == "Scheduled"
        # Only status is merged
        assert refreshed.organization_name == "Existing Org"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "local, remote, expected",
        [
            ("Scheduled", "new", "Scheduled"),
            ("Completed", "in_process", "Completed"),
            ("In Process", "in_process", "In Process"),
            ("In Process", "scheduled", "Scheduled"),
            ("New", "mystery", "New"),
        ],
    )
    async def test_never_regresses_local_status(self, engine, coordinator, local, remote, expected):
        record = _add_record(engine, external_event_id="501", status=local)
        service = PlatformSyncService(
            engine, client=make_mock_client([{"id": 501, "status": remote}])
        )
        await service.pull(coordinator)
        with Session(engine) as s:
            assert s.get(IntakeRecord, record.id).status == expected

    @pytest.mark.asyncio
    async def test_items_without_id_are_skipped(self, engine, coordinator):
        service = PlatformSyncService(
            engine, client=make_mock_client([{"organizationName": "No Id"}])
        )
        summary = await service.pull(coordinator)
        assert summary.imported == 0
        assert summary.total == 1
        assert _records(engine) == []

    @pytest.mark.asyncio
    async def test_success_log_counts_imported_plus_updated(self, engine, coordinator):
        _add_record(engine, external_event_id="502", status="New")
        service = PlatformSyncService(engine, client=make_mock_client())
        await service.pull(coordinator)

        logs = _logs(engine)
        assert len(logs) == 1
        assert logs[0].direction == "pull"
        assert logs[0].status == "success"
        assert logs[0].record_count == 2
        assert logs[0].user_id == coordinator.id

    @pytest.mark.asyncio
    async def test_unlinked_user_fails_fast(self, engine):
        user = User(email="new@example.org")
        with Session(engine) as s:
            s.add(user)
            s.commit()
            s.refresh(user)
        client = make_mock_client()
        service = PlatformSyncService(engine, client=client)

        with pytest.raises(ConfigurationError):
            await service.pull(user)

        client.list_event_requests.assert_not_awaited()
        logs = _logs(engine)
        assert len(logs) == 1
        assert logs[0].status == "error"

    @pytest.mark.asyncio
    async def test_unconfigured_platform_fails_fast(self, engine, coordinator):
        service = PlatformSyncService(
            engine, settings=Settings(platform_api_url="", platform_api_key="")
        )
        with pytest.raises(ConfigurationError):
            await service.pull(coordinator)
        assert _logs(engine)[0].status == "error"

    @pytest.mark.asyncio
    async def test_remote_unavailable_logged_and_reraised(self, engine, coordinator):
        client = make_mock_client()
        client.list_event_requests = AsyncMock(
            side_effect=RemoteUnavailable("Platform unreachable after 4 attempts")
        )
        service = PlatformSyncService(engine, client=client)

        with pytest.raises(RemoteUnavailable):
            await service.pull(coordinator)

        logs = _logs(engine)
        assert len(logs) == 1
        assert logs[0].direction == "pull"
        assert logs[0].status == "error"
        assert "unreachable" in logs[0].error

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped_in_sync_failed(self, engine, coordinator):
        client = make_mock_client()
        client.list_event_requests = AsyncMock(side_effect=ValueError("bad listing"))
        service = PlatformSyncService(engine, client=client)

        with pytest.raises(SyncFailed):
            await service.pull(coordinator)
        assert "bad listing" in _logs(engine)[0].error


# ─── Push ─────────────────────────────────────────────────────────────────────

class TestPush:
    @pytest.mark.asyncio
    async def test_owner_can_push(self, engine, coordinator, seeded_record):
        client = make_mock_client()
        service = PlatformSyncService(engine, client=client)

        result = await service.push(seeded_record.id, coordinator)

        assert result.success is True
        event_id, payload = client.update_event_request.await_args.args
        assert event_id == "501"
        assert payload["status"] == "scheduled"
        assert payload["organizationName"] == "Lakeside Church"

    @pytest.mark.asyncio
    async def test_success_logged_with_count_one(self, engine, coordinator, seeded_record):
        service = PlatformSyncService(engine, client=make_mock_client())
        await service.push(seeded_record.id, coordinator)
        logs = _logs(engine)
        assert len(logs) == 1
        assert (logs[0].direction, logs[0].status, logs[0].record_count) == ("push", "success", 1)

    @pytest.mark.asyncio
    async def test_admin_can_push_others_records(self, engine, admin, seeded_record):
        service = PlatformSyncService(engine, client=make_mock_client())
        result = await service.push(seeded_record.id, admin)
        assert result.success is True

    @pytest.mark.asyncio
    async def test_push_does_not_change_local_status(self, engine, coordinator):
        record = _add_record(
            engine, external_event_id="600", status="In Process", owner_id=coordinator.id
        )
        service = PlatformSyncService(engine, client=make_mock_client())
        await service.push(record.id, coordinator)
        with Session(engine) as s:
            assert s.get(IntakeRecord, record.id).status == "In Process"

    @pytest.mark.asyncio
    async def test_missing_record(self, engine, coordinator):
        service = PlatformSyncService(engine, client=make_mock_client())
        with pytest.raises(NotFound):
            await service.push(9999, coordinator)
        assert _logs(engine) == []

    @pytest.mark.asyncio
    async def test_local_only_record_cannot_be_pushed(self, engine, coordinator):
        record = _add_record(engine, owner_id=coordinator.id)
        client = make_mock_client()
        service = PlatformSyncService(engine, client=client)

        with pytest.raises(NotRemoteSourced):
            await service.push(record.id, coordinator)

        client.update_event_request.assert_not_awaited()
        assert _logs(engine) == []

    @pytest.mark.asyncio
    async def test_non_owner_forbidden(self, engine, seeded_record):
        other = User(email="other@example.org", role="volunteer")
        with Session(engine) as s:
            s.add(other)
            s.commit()
            s.refresh(other)
        client = make_mock_client()
        service = PlatformSyncService(engine, client=client)

        with pytest.raises(Forbidden):
            await service.push(seeded_record.id, other)

        client.update_event_request.assert_not_awaited()
        assert _logs(engine) == []

    @pytest.mark.asyncio
    async def test_rejection_logged_and_reraised(self, engine, coordinator, seeded_record):
        client = make_mock_client()
        client.update_event_request = AsyncMock(side_effect=RemoteRejected(422, "bad date"))
        service = PlatformSyncService(engine, client=client)

        with pytest.raises(RemoteRejected):
            await service.push(seeded_record.id, coordinator)

        logs = _logs(engine)
        assert len(logs) == 1
        assert (logs[0].direction, logs[0].status) == ("push", "error")
        assert "422" in logs[0].error

    @pytest.mark.asyncio
    async def test_unconfigured_platform_push_is_audited(self, engine, coordinator, seeded_record):
        service = PlatformSyncService(
            engine, settings=Settings(platform_api_url="", platform_api_key="key")
        )
        with pytest.raises(ConfigurationError):
            await service.push(seeded_record.id, coordinator)

        logs = _logs(engine)
        assert len(logs) == 1
        assert (logs[0].direction, logs[0].status) == ("push", "error")
        assert logs[0].user_id == coordinator.id
        assert logs[0].error


# ─── In-process notification ──────────────────────────────────────────────────

class TestNotifyInProcess:
    @pytest.mark.asyncio
    async def test_sends_lightweight_status_patch(self, engine, coordinator, seeded_record):
        client = make_mock_client()
        service = PlatformSyncService(engine, client=client)

        assert await service.notify_in_process(seeded_record, coordinator) is True
        client.update_event_request.assert_awaited_once_with("501", {"status": "in_process"})
        assert _logs(engine)[0].status == "success"

    @pytest.mark.asyncio
    async def test_local_record_is_not_notified(self, engine, coordinator):
        record = _add_record(engine)
        client = make_mock_client()
        service = PlatformSyncService(engine, client=client)

        assert await service.notify_in_process(record, coordinator) is False
        client.update_event_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self, engine, coordinator, seeded_record):
        client = make_mock_client()
        client.update_event_request = AsyncMock(side_effect=RemoteUnavailable("down"))
        service = PlatformSyncService(engine, client=client)

        assert await service.notify_in_process(seeded_record, coordinator) is False
        assert _logs(engine)[0].status == "error"


# ─── End to end through the real wire wrapper ─────────────────────────────────

def make_wire_client(handler) -> PlatformClient:
    return PlatformClient(
        "https://platform.example.org",
        "key",
        http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=AsyncMock(),
    )


def refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("refused", request=request)


class TestOverWire:
    @pytest.mark.asyncio
    async def test_retry_exhaustion_surfaces_remote_unavailable(self, engine, coordinator):
        service = PlatformSyncService(engine, client=make_wire_client(refuse))

        with pytest.raises(RemoteUnavailable):
            await service.pull(coordinator)

        logs = _logs(engine)
        assert len(logs) == 1
        assert logs[0].direction == "pull"
        assert logs[0].status == "error"
        assert logs[0].error

    @pytest.mark.asyncio
    async def test_push_retry_exhaustion_logs_one_error(self, engine, coordinator, seeded_record):
        service = PlatformSyncService(engine, client=make_wire_client(refuse))

        with pytest.raises(RemoteUnavailable):
            await service.push(seeded_record.id, coordinator)

        logs = _logs(engine)
        assert len(logs) == 1
        assert (logs[0].direction, logs[0].status) == ("push", "error")
        assert logs[0].error

    @pytest.mark.asyncio
    async def test_listing_without_data_is_a_failed_pull(self, engine, coordinator):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/":
                return httpx.Response(200)
            return httpx.Response(200, json={"error": "session expired"})

        service = PlatformSyncService(engine, client=make_wire_client(handler))

        with pytest.raises(SyncFailed):
            await service.pull(coordinator)

        logs = _logs(engine)
        assert len(logs) == 1
        assert (logs[0].direction, logs[0].status) == ("pull", "error")
        assert "data" in logs[0].error
        assert _records(engine) == []

    @pytest.mark.asyncio
    async def test_malformed_lookup_answer_is_sync_failed(self, engine):
        service = PlatformSyncService(
            engine, client=make_wire_client(lambda r: httpx.Response(200, json=["user_42"]))
        )
        with pytest.raises(SyncFailed):
            await service.lookup_platform_user_id("a@example.org")
