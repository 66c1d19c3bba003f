"""
Operator CLI for platform sync.

Usage:
    python -m intake pull --email coordinator@example.org
    python -m intake push 42 --email coordinator@example.org
    python -m intake logs --limit 20
    uvicorn intake.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import argparse
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _load_user(engine, email: str):
    from sqlmodel import Session, select
    from intake.models.user import User

    with Session(engine) as s:
        user = s.exec(select(User).where(User.email == email)).first()
    if user is None:
        logger.error("No local user with email %s", email)
        sys.exit(1)
    return user


async def _run_sync(args) -> int:
    from intake.db.engine import get_engine
    from intake.platform.errors import RemoteUnavailable, SyncError
    from intake.platform.sync_service import PlatformSyncService

    engine = get_engine()
    user = _load_user(engine, args.email)
    service = PlatformSyncService(engine=engine)
    try:
        if args.command == "pull":
            summary = await service.pull(user)
            logger.info("%s (%d on platform)", summary.message, summary.total)
        else:
            result = await service.push(args.record_id, user)
            logger.info(result.message)
    except RemoteUnavailable:
        logger.error("Platform is currently unreachable; try again shortly.")
        return 2
    except SyncError as exc:
        logger.error("%s failed: %s", args.command.capitalize(), exc)
        return 1
    finally:
        await service.aclose()
    return 0


def _show_logs(limit: int) -> None:
    from sqlmodel import Session
    from intake.db.engine import get_engine
    from intake.platform.audit import list_recent_sync_logs

    with Session(get_engine()) as s:
        for log in list_recent_sync_logs(s, limit=limit):
            print(
                f"{log.synced_at:%Y-%m-%d %H:%M:%S}  {log.direction:<4}  "
                f"{log.status:<7}  {log.record_count:>3}  {log.error or ''}"
            )


def main() -> None:
    parser = argparse.ArgumentParser(prog="intake", description="Platform sync tools")
    sub = parser.add_subparsers(dest="command", required=True)

    pull = sub.add_parser("pull", help="Import event requests assigned to a user")
    pull.add_argument("--email", required=True, help="Local user's email")

    push = sub.add_parser("push", help="Send one record back to the platform")
    push.add_argument("record_id", type=int)
    push.add_argument("--email", required=True, help="Local user's email")

    logs = sub.add_parser("logs", help="Show recent sync attempts")
    logs.add_argument("--limit", type=int, default=10)

    args = parser.parse_args()
    if args.command == "logs":
        _show_logs(args.limit)
        return
    sys.exit(asyncio.run(_run_sync(args)))


if __name__ == "__main__":
    main()
