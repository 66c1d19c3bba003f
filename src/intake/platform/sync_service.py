"""
PlatformSyncService: moves event requests between the platform and the
local intake store.

Pull (platform -> local), for one user:
  1. Fetch event requests assigned to the user's linked platform id with
     status new, in_process or scheduled (completed ones are never pulled).
  2. Index local records by external_event_id.
  3. For each request: if a local record already has its id, advance the
     local status when the platform's status ranks strictly higher, and
     touch nothing else. Otherwise import it as a new record owned by the
     user, with a provenance note.
  4. Append one SyncLog row (record_count = imported + updated).

Push (local -> platform), for one record:
  Preconditions (record exists, came from the platform, caller owns it or
  is an admin) are checked before any wire call and are not logged. Then
  the record is PATCHed to the platform with status "scheduled" and one
  SyncLog row is appended. Push never changes the local status.

Every failure past the preconditions is recorded as an error SyncLog row
and re-raised: SyncError subclasses as themselves, anything unexpected
wrapped in SyncFailed.

Idempotency: re-pulling an unchanged listing imports nothing, since
imported records are recognised by external_event_id. Each import or
status advance is its own transaction, so an interrupted pull leaves a
partial batch that the next pull completes. The unique index on
external_event_id turns a concurrent duplicate import into a skip.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from intake.config import get_settings
from intake.models.intake import IntakeRecord
from intake.platform.audit import record_sync_attempt
from intake.platform.client import PlatformClient
from intake.platform.errors import (
    ConfigurationError,
    Forbidden,
    NotFound,
    NotRemoteSourced,
    SyncError,
    SyncFailed,
)
from intake.platform.normalizer import (
    build_push_payload,
    external_id_of,
    import_provenance_note,
    normalize_event_request,
)
from intake.workflow.records import create_intake_record
from intake.workflow.status import should_advance, to_local_status, to_remote_status

logger = logging.getLogger(__name__)

PULL_STATUSES = ("new", "in_process", "scheduled")


@dataclass
class PullSummary:
    imported: int
    updated: int
    total: int

    @property
    def message(self) -> str:
        return f"Imported {self.imported} new, updated {self.updated} existing"


@dataclass
class PushResult:
    success: bool
    message: str


class PlatformSyncService:
    """Pull and push between the platform and the local DB."""

    def __init__(self, engine, *, settings=None, client: Optional[PlatformClient] = None):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
            settings: Settings; defaults to get_settings().
            client: PlatformClient (or AsyncMock in tests). Built lazily
                    from settings when omitted, so a missing configuration
                    surfaces inside pull/push where it gets audited.
        """
        self.engine = engine
        self.settings = settings or get_settings()
        self.client = client
        self._owns_client = client is None

    def _get_client(self) -> PlatformClient:
        if self.client is None:
            self.client = PlatformClient.from_settings(self.settings)
        return self.client

    async def aclose(self) -> None:
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None

    # ─── Pull ─────────────────────────────────────────────────────────────────

    async def pull(self, user) -> PullSummary:
        """
        Import or advance every platform event request assigned to `user`.

        Raises:
            ConfigurationError: platform not configured or user not linked.
            RemoteUnavailable / RemoteRejected: wire failures.
            SyncFailed: anything else.
        """
        try:
            client = self._get_client()
            if not user.platform_user_id:
                raise ConfigurationError(
                    "No platform account linked; link your platform user id in settings"
                )

            items = await client.list_event_requests(user.platform_user_id, PULL_STATUSES)
            index = self._index_by_external_id()

            imported = updated = 0
            for raw in items:
                outcome = self._reconcile_one(raw, index, user)
                if outcome == "imported":
                    imported += 1
                elif outcome == "updated":
                    updated += 1

            record_sync_attempt(
                self.engine,
                direction="pull",
                status="success",
                record_count=imported + updated,
                user_id=user.id,
            )
        except SyncError as exc:
            self._record_failure("pull", exc, user)
            raise
        except Exception as exc:
            self._record_failure("pull", exc, user)
            raise SyncFailed(f"Pull failed: {exc}") from exc

        summary = PullSummary(imported=imported, updated=updated, total=len(items))
        logger.info("Pull for user %s: %s (of %d)", user.id, summary.message, summary.total)
        return summary

    def _index_by_external_id(self) -> Dict[str, IntakeRecord]:
        with Session(self.engine) as s:
            records = s.exec(
                select(IntakeRecord).where(IntakeRecord.external_event_id.is_not(None))
            ).all()
        return {r.external_event_id: r for r in records}

    def _reconcile_one(self, raw: dict, index: Dict[str, IntakeRecord], user) -> Optional[str]:
        """Apply one platform event request. Returns "imported", "updated" or None."""
        external_id = external_id_of(raw)
        if external_id is None:
            logger.warning("Skipping platform event request without an id: %r", raw)
            return None

        incoming_status = to_local_status(raw.get("status"))
        local = index.get(external_id)

        if local is not None:
            if not should_advance(local.status, incoming_status):
                return None
            with Session(self.engine) as s:
                db_record = s.get(IntakeRecord, local.id)
                if db_record is None:
                    return None
                db_record.status = incoming_status
                db_record.updated_at = datetime.utcnow()
                s.add(db_record)
                s.commit()
            logger.info(
                "Record %s advanced %s -> %s from platform",
                local.id, local.status, incoming_status,
            )
            local.status = incoming_status
            return "updated"

        fields = normalize_event_request(raw)
        fields["external_event_id"] = external_id
        fields["status"] = incoming_status
        fields["internal_notes"] = import_provenance_note(external_id, datetime.utcnow())
        with Session(self.engine) as s:
            try:
                record = create_intake_record(s, fields, owner_id=user.id)
            except IntegrityError:
                logger.info("Event request %s was imported concurrently; skipping", external_id)
                return None
        index[external_id] = record
        return "imported"

    # ─── Push ─────────────────────────────────────────────────────────────────

    async def push(self, record_id: int, user) -> PushResult:
        """
        Send a platform-sourced record's current state back to the platform.

        Raises:
            NotFound, NotRemoteSourced, Forbidden: preconditions (not audited).
            ConfigurationError, RemoteUnavailable, RemoteRejected, SyncFailed.
        """
        with Session(self.engine) as s:
            record = s.get(IntakeRecord, record_id)
        if record is None:
            raise NotFound(f"Record {record_id} not found")
        if not record.external_event_id:
            raise NotRemoteSourced(
                f"Record {record_id} was not imported from the platform and can't be pushed"
            )
        if record.owner_id != user.id and not user.is_elevated:
            raise Forbidden(f"User {user.id} may not push record {record_id}")

        try:
            client = self._get_client()
            await client.update_event_request(
                record.external_event_id, build_push_payload(record)
            )
            record_sync_attempt(
                self.engine,
                direction="push",
                status="success",
                record_count=1,
                user_id=user.id,
            )
        except SyncError as exc:
            self._record_failure("push", exc, user)
            raise
        except Exception as exc:
            self._record_failure("push", exc, user)
            raise SyncFailed(f"Push failed: {exc}") from exc

        logger.info("Pushed record %s to platform as %s", record_id, record.external_event_id)
        return PushResult(success=True, message="Event pushed to platform as scheduled")

    async def notify_in_process(self, record: IntakeRecord, user) -> bool:
        """
        Tell the platform a record has moved to "In Process" locally.

        Best-effort: a failure is audited and logged, then reported as False
        so the local edit that triggered it still succeeds.
        """
        if not record.external_event_id:
            return False
        try:
            client = self._get_client()
            await client.update_event_request(
                record.external_event_id, {"status": to_remote_status("In Process")}
            )
        except (SyncError, ValueError) as exc:
            logger.warning(
                "In-process notification for record %s failed: %s", record.id, exc
            )
            self._record_failure("push", exc, user)
            return False

        record_sync_attempt(
            self.engine,
            direction="push",
            status="success",
            record_count=1,
            user_id=user.id,
        )
        return True

    async def lookup_platform_user_id(self, email: str) -> Optional[str]:
        """Resolve a platform user id by email, for account linking. Not audited."""
        try:
            return await self._get_client().lookup_user_id(email)
        except ValueError as exc:
            raise SyncFailed(f"User lookup failed: {exc}") from exc

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _record_failure(self, direction: str, exc: BaseException, user) -> None:
        logger.error("Platform %s failed: %s", direction, exc)
        record_sync_attempt(
            self.engine,
            direction=direction,
            status="error",
            error=str(exc) or exc.__class__.__name__,
            user_id=getattr(user, "id", None),
        )
