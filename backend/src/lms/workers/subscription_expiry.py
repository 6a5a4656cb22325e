"""Subscription expiry worker.

Runs once a day to move teachers whose paid period has ended back onto the
default free plan.

Usage:
    arq lms.workers.subscription_expiry.WorkerSettings
"""
from datetime import datetime, timedelta
from typing import Any

import structlog
from arq import cron
from arq.connections import RedisSettings
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lms.config import settings
from lms.database import AsyncSessionLocal
from lms.metrics import expired_subscriptions_reverted_total, expiry_sweep_failures_total
from lms.models.plan import Plan, PlanDuration
from lms.models.user import User, UserRole
from lms.services.plan_service import PlanService

logger = structlog.get_logger(__name__)


def _sweep_result(success: bool, message: str, **counts: int) -> dict[str, Any]:
    return {
        "success": success,
        "message": message,
        "deactivated_count": counts.get("deactivated", 0),
        "cleared_count": counts.get("cleared", 0),
        "skipped_count": counts.get("skipped", 0),
        "errors": counts.get("errors", 0),
    }


async def _find_expired_teachers(db: AsyncSession, cutoff: datetime) -> list[tuple]:
    """Snapshot (user_id, plan_id, end_date, plan_duration) of teachers expired before ``cutoff``."""
    result = await db.execute(
        select(User.id, User.plan_id, User.subscription_end_date, Plan.duration)
        .join(Plan, User.plan_id == Plan.id)
        .where(
            User.role == UserRole.TEACHER,
            User.subscription_end_date.is_not(None),
            User.subscription_end_date < cutoff,
        )
        .order_by(User.subscription_end_date.asc())
    )
    return list(result.all())


async def _conditional_write(
    db: AsyncSession,
    user_id,
    snapshot_plan_id,
    snapshot_end_date: datetime,
    **values,
) -> bool:
    # Only applies if nobody changed the plan or the end date since the snapshot
    result = await db.execute(
        update(User)
        .where(
            User.id == user_id,
            User.plan_id == snapshot_plan_id,
            User.subscription_end_date == snapshot_end_date,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def deactivate_expired_subscriptions(
    db: AsyncSession | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Revert teachers with an ended subscription to the default free plan.

    Each teacher is committed on its own; one failing user is rolled back and
    counted without stopping the sweep. A missing default free plan aborts
    the sweep before any user is touched.

    Args:
        db: Optional database session (for testing). If None, creates new session.
        now: Reference time, defaults to the current UTC time

    Returns:
        Dict with ``success``, ``message``, ``deactivated_count``,
        ``cleared_count``, ``skipped_count`` and ``errors``
    """
    should_close_db = db is None
    if db is None:
        db = AsyncSessionLocal()

    now = now or datetime.utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    try:
        try:
            expired = await _find_expired_teachers(db, start_of_day)
            logger.info("expiry_sweep_started", expired_count=len(expired), cutoff=start_of_day.isoformat())

            if not expired:
                return _sweep_result(True, "No expired subscriptions found.")

            default_plan = await PlanService(db).get_default_free_plan()
            if default_plan is None:
                expiry_sweep_failures_total.labels(reason="default_plan_missing").inc()
                logger.critical(
                    "default_free_plan_missing",
                    context="expiry_sweep",
                    expired_count=len(expired),
                )
                return _sweep_result(
                    False,
                    "No active default free plan is configured; expired subscriptions were not reverted.",
                )

            # Plain values: a per-user rollback expires loaded instances
            default_plan_id = default_plan.id
            default_is_indefinite = default_plan.duration == PlanDuration.INDEFINITE
            renewal_end = None if default_is_indefinite else now + timedelta(days=settings.free_plan_renewal_days)

            deactivated = 0
            cleared = 0
            skipped = 0
            errors = 0

            for user_id, plan_id, end_date, duration in expired:
                try:
                    if plan_id == default_plan_id and default_is_indefinite:
                        applied = await _conditional_write(
                            db, user_id, plan_id, end_date, subscription_end_date=None
                        )
                        if applied:
                            cleared += 1
                            logger.info("stale_end_date_cleared", user_id=str(user_id))
                    elif duration == PlanDuration.INDEFINITE:
                        applied = True
                        skipped += 1
                        logger.info("stale_end_date_ignored", user_id=str(user_id), plan_id=str(plan_id))
                    else:
                        applied = await _conditional_write(
                            db,
                            user_id,
                            plan_id,
                            end_date,
                            plan_id=default_plan_id,
                            subscription_end_date=renewal_end,
                        )
                        if applied:
                            deactivated += 1
                            expired_subscriptions_reverted_total.inc()
                            logger.info(
                                "subscription_reverted_to_free",
                                user_id=str(user_id),
                                old_plan_id=str(plan_id),
                                expired_on=end_date.isoformat(),
                            )

                    if not applied:
                        skipped += 1
                        logger.info("expiry_sweep_user_changed_concurrently", user_id=str(user_id))

                    await db.commit()

                except Exception as e:
                    await db.rollback()
                    errors += 1
                    logger.exception("expiry_sweep_user_failed", user_id=str(user_id), exc_info=e)
                    continue

            logger.info(
                "expiry_sweep_completed",
                deactivated=deactivated,
                cleared=cleared,
                skipped=skipped,
                errors=errors,
            )

            return _sweep_result(
                True,
                f"{deactivated} expired subscription(s) reverted to the free plan.",
                deactivated=deactivated,
                cleared=cleared,
                skipped=skipped,
                errors=errors,
            )

        except Exception as e:
            await db.rollback()
            expiry_sweep_failures_total.labels(reason="internal_error").inc()
            logger.exception("expiry_sweep_error", exc_info=e)
            return _sweep_result(False, "Internal error while reverting expired subscriptions.")
    finally:
        # Close session only if it was created by this function
        if should_close_db:
            await db.close()


async def run_expiry_sweep(ctx: dict) -> dict:
    """
    ARQ entry point for the daily sweep.

    Args:
        ctx: ARQ context

    Returns:
        Sweep result
    """
    logger.info("expiry_sweep_job_started", job_id=ctx.get("job_id"))
    return await deactivate_expired_subscriptions()


class WorkerSettings:
    """
    ARQ worker settings for the subscription expiry sweep.

    Usage:
        arq lms.workers.subscription_expiry.WorkerSettings
    """

    functions = [run_expiry_sweep]

    cron_jobs = [
        cron(
            run_expiry_sweep,
            hour={settings.expiry_sweep_hour},
            minute={settings.expiry_sweep_minute},
            timeout=600,
        ),
    ]

    redis_settings = RedisSettings.from_dsn(str(settings.arq_redis_url))

    keep_result = 86400  # 24 hours
    max_jobs = 1
