from __future__ import annotations

import logging

from arq.connections import RedisSettings
from arq.cron import cron
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import configure_logging
from app.db import session as db_session
from app.models.common import utcnow
from app.models.social import Post
from app.services import analytics
from app.services.cache import cache

logger = logging.getLogger(__name__)


async def publish_scheduled_posts(db: AsyncSession) -> dict:
    """Promote drafts whose scheduled date has passed. One failing post does not stop the rest."""
    now = utcnow()
    due = (
        await db.execute(
            select(Post.id, Post.author_id)
            .where(Post.is_draft.is_(True), Post.scheduled_date.is_not(None), Post.scheduled_date <= now)
            .order_by(Post.scheduled_date.asc(), Post.id.asc())
        )
    ).all()

    published = 0
    failed = 0
    for post_id, author_id in due:
        try:
            # Conditional on is_draft so a concurrent tick cannot publish twice.
            result = await db.execute(
                update(Post)
                .where(Post.id == post_id, Post.is_draft.is_(True))
                .values(is_draft=False, scheduled_date=None)
            )
            await db.commit()
        except Exception:
            await db.rollback()
            failed += 1
            logger.exception("Failed to publish scheduled post", extra={"context": {"post_id": post_id}})
            continue

        if not result.rowcount:
            continue
        published += 1
        await cache.invalidate_by_tags("post", f"post:{post_id}", f"user:{author_id}:posts")

    if due:
        logger.info("Scheduled posts processed", extra={"context": {"published": published, "failed": failed}})
    return {"published": published, "failed": failed}


async def publish_scheduled_posts_job(ctx) -> dict:
    async with db_session.SessionLocal() as db:
        return await publish_scheduled_posts(db)


async def recalculate_post_analytics_job(ctx, post_id: int) -> dict:
    async with db_session.SessionLocal() as db:
        row = await analytics.calculate_post_analytics(db, post_id)
    return {"post_id": post_id, "calculated": row is not None}


async def startup(ctx) -> None:
    configure_logging()


def _tick_minutes() -> set[int]:
    step = max(int(settings.scheduler_interval_seconds) // 60, 1)
    return set(range(0, 60, step))


class WorkerSettings:
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    on_startup = startup
    functions = [publish_scheduled_posts_job, recalculate_post_analytics_job]
    cron_jobs = [cron(publish_scheduled_posts_job, minute=_tick_minutes(), run_at_startup=True)]
