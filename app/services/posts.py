from __future__ import annotations

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy import String, and_, cast, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from app.models.analytics import PostAnalytics, ViewTrack
from app.models.common import as_utc, utcnow
from app.models.social import POST_TYPES, REACTION_TYPES, Bookmark, Comment, Like, Post, Reaction, Share
from app.schemas.common import Page, PageParams, as_iso, build_meta, resolve_sort
from app.schemas.post import PostAnalyticsOut, PostCreate, PostOut, PostUpdate
from app.services import analytics, storage, videos
from app.services.cache import cache
from app.services.likes import get_likes_for_resources
from app.services.link_preview import fetch_link_preview
from app.services.resources import ResourceType, bump_counter
from app.services.sanitize import sanitize_optional_text, sanitize_optional_url, sanitize_text, sanitize_url
from app.services.shares import get_shares_for_resources
from app.services.storage import IncomingFile, StorageKind
from app.services.text import extract_hashtags, extract_mentions
from app.services.tracking import ViewerContext, track_view
from app.services.users import ensure_user, following_ids, get_user_by_id

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg")
VIDEO_EXTENSIONS = (".mp4", ".webm", ".mov", ".quicktime")
DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx", ".xls", ".xlsx", ".txt", ".csv")

POST_SORT_FIELDS = ("created_at", "likes_count", "comments_count", "shares_count", "views_count")
POST_CACHE_TTL = 300


def determine_post_type(media_url: str | None, media_urls: list[str] | None) -> str:
    urls = ([media_url] if media_url else []) + list(media_urls or [])
    if not urls:
        return "text"

    has_image = has_video = has_document = False
    for url in urls:
        lower = url.lower()
        if any(ext in lower for ext in IMAGE_EXTENSIONS):
            has_image = True
        elif any(ext in lower for ext in VIDEO_EXTENSIONS):
            has_video = True
        elif any(ext in lower for ext in DOCUMENT_EXTENSIONS):
            has_document = True

    if sum([has_image, has_video, has_document]) > 1:
        return "mixed"
    if has_image:
        return "image"
    if has_video:
        return "video"
    if has_document:
        return "document"
    return "text"


def is_video_url(url: str | None) -> bool:
    if not url:
        return False
    lower = url.lower()
    return any(ext in lower for ext in VIDEO_EXTENSIONS)


def post_out(post: Post, *, is_liked: bool = False, is_shared: bool = False) -> PostOut:
    return PostOut(
        id=post.id,
        author_id=post.author_id,
        content=post.content,
        media_url=post.media_url,
        media_urls=list(post.media_urls or []),
        link_url=post.link_url,
        link_title=post.link_title,
        link_description=post.link_description,
        link_image=post.link_image,
        is_public=post.is_public,
        allow_comments=post.allow_comments,
        is_pinned=post.is_pinned,
        is_edited=post.is_edited,
        is_draft=post.is_draft,
        is_archived=post.is_archived,
        scheduled_date=as_iso(post.scheduled_date) or None,
        post_type=post.post_type,
        hashtags=list(post.hashtags or []),
        mentions=list(post.mentions or []),
        likes_count=post.likes_count,
        comments_count=post.comments_count,
        shares_count=post.shares_count,
        views_count=post.views_count,
        bookmarks_count=post.bookmarks_count,
        reports_count=post.reports_count,
        parent_post_id=post.parent_post_id,
        created_at=as_iso(post.created_at),
        updated_at=as_iso(post.updated_at),
        is_liked=is_liked,
        is_shared=is_shared,
    )


def _future_date(value: datetime) -> datetime:
    when = as_utc(value)
    if when <= utcnow():
        raise HTTPException(status_code=400, detail="Scheduled date must be in the future")
    return when


async def _get_post(db: AsyncSession, post_id: int) -> Post:
    post = (await db.execute(select(Post).where(Post.id == post_id))).scalar_one_or_none()
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


async def _get_owned_post(db: AsyncSession, post_id: int, user_id: int, forbidden: str) -> Post:
    post = await _get_post(db, post_id)
    if post.author_id != user_id:
        raise HTTPException(status_code=403, detail=forbidden)
    return post


async def _ensure_parent(db: AsyncSession, parent_post_id: int | None) -> None:
    if parent_post_id is None:
        return
    exists = (await db.execute(select(Post.id).where(Post.id == parent_post_id))).scalar_one_or_none()
    if exists is None:
        raise HTTPException(status_code=404, detail="Parent post not found")


async def _invalidate_post(post_id: int, author_id: int | None = None) -> None:
    tags = ["post", f"post:{post_id}"]
    if author_id is not None:
        tags.append(f"user:{author_id}:posts")
    await cache.invalidate_by_tags(*tags)


def _internal_error(action: str, exc: Exception, **context) -> HTTPException:
    logger.exception("Failed to %s", action, extra={"context": context})
    return HTTPException(status_code=500, detail=f"Failed to {action}")


async def _outputs(db: AsyncSession, posts: list[Post], viewer_id: int | None) -> list[PostOut]:
    ids = [p.id for p in posts]
    liked = await get_likes_for_resources(db, user_id=viewer_id, resource_type=ResourceType.POST, resource_ids=ids)
    shared = await get_shares_for_resources(db, user_id=viewer_id, resource_type=ResourceType.POST, resource_ids=ids)
    return [post_out(p, is_liked=p.id in liked, is_shared=p.id in shared) for p in posts]


async def paginate_posts(
    db: AsyncSession,
    stmt: Select,
    params: PageParams,
    viewer_id: int | None,
    *,
    allowed_sort: tuple[str, ...] = POST_SORT_FIELDS,
    ordering: tuple | None = None,
) -> Page[PostOut]:
    """Count and page `stmt`. An explicit `ordering` overrides the requested sort."""
    total = int((await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar_one())
    if ordering is None:
        column = getattr(Post, resolve_sort(params.sort_by, allowed_sort))
        ordering = (column.asc() if params.sort_order == "ASC" else column.desc(), Post.id.desc())
    rows = (
        await db.execute(stmt.order_by(*ordering).offset(params.offset).limit(params.limit))
    ).scalars().all()
    return Page[PostOut](
        data=await _outputs(db, list(rows), viewer_id),
        meta=build_meta(total, params.page, params.limit),
    )


def _published():
    return (Post.is_draft.is_(False), Post.is_archived.is_(False))


# Create


async def create_post(db: AsyncSession, *, user_id: int, data: PostCreate) -> Post:
    try:
        await ensure_user(db, user_id)

        library = await videos.find_ready_videos(db, user_id=user_id, video_ids=data.video_ids)
        video_urls = [v.video_url for v in library]

        has_content = bool(data.content and data.content.strip())
        has_media = bool(data.media_url or data.media_urls or data.video_ids)
        if not has_content and not has_media:
            raise HTTPException(status_code=400, detail="Post must have either content or media")

        content = sanitize_text(data.content) if data.content else ""
        media_url = sanitize_optional_url(data.media_url)
        media_urls = [u for u in (sanitize_url(x) for x in [*data.media_urls, *video_urls]) if u]
        link_url = sanitize_optional_url(data.link_url)
        link_title = sanitize_optional_text(data.link_title)
        link_description = sanitize_optional_text(data.link_description)
        link_image = sanitize_optional_url(data.link_image)

        if link_url and not (link_title or link_description or link_image):
            preview = await fetch_link_preview(link_url)
            if preview is not None:
                link_title = sanitize_optional_text(preview.title)
                link_description = sanitize_optional_text(preview.description)
                link_image = sanitize_optional_url(preview.image)

        scheduled_date = _future_date(data.scheduled_date) if data.scheduled_date else None
        await _ensure_parent(db, data.parent_post_id)

        post = Post(
            author_id=user_id,
            content=content,
            media_url=media_url,
            media_urls=media_urls,
            link_url=link_url,
            link_title=link_title[:200] if link_title else None,
            link_description=link_description[:500] if link_description else None,
            link_image=link_image[:500] if link_image else None,
            hashtags=extract_hashtags(content),
            mentions=extract_mentions(content),
            post_type=determine_post_type(media_url, media_urls),
            is_public=data.is_public,
            allow_comments=data.allow_comments,
            # A scheduled post stays hidden until the scheduler publishes it.
            is_draft=data.is_draft or scheduled_date is not None,
            scheduled_date=scheduled_date,
            parent_post_id=data.parent_post_id,
        )
        db.add(post)
        await db.commit()
        await db.refresh(post)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("create post", exc, user_id=user_id) from exc

    await _invalidate_post(post.id, user_id)
    logger.info("Post created", extra={"context": {"user_id": user_id, "post_id": post.id}})
    return post


async def create_post_with_files(
    db: AsyncSession,
    *,
    user_id: int,
    content: str | None,
    files: list[IncomingFile],
    documents: list[IncomingFile] | None = None,
    is_public: bool = True,
    allow_comments: bool = True,
    parent_post_id: int | None = None,
    video_ids: list[int] | None = None,
) -> Post:
    documents = documents or []
    try:
        await ensure_user(db, user_id)
        library = await videos.find_ready_videos(db, user_id=user_id, video_ids=video_ids or [])
        video_urls = [v.video_url for v in library]

        if not (content and content.strip()) and not files and not documents and not video_urls:
            raise HTTPException(status_code=400, detail="Post must have either content, media files, or videos")

        clean = sanitize_text(content) if content else ""
        await _ensure_parent(db, parent_post_id)

        post = Post(
            author_id=user_id,
            content=clean,
            media_url=None,
            media_urls=[],
            hashtags=extract_hashtags(clean),
            mentions=extract_mentions(clean),
            post_type="text",
            is_public=is_public,
            allow_comments=allow_comments,
            is_draft=False,
            parent_post_id=parent_post_id,
        )
        db.add(post)
        await db.commit()
        await db.refresh(post)
        post_id = post.id

        uploaded_keys: list[str] = []
        try:
            media_urls: list[str] = []
            for file in files:
                stored = await storage.upload_file(user_id, file, StorageKind.MEDIA, "post")
                media_urls.append(stored.url)
                uploaded_keys.append(stored.key)
                if file.content_type in videos.VIDEO_MIME_TYPES:
                    try:
                        await videos.create_video_from_uploaded_file(
                            db,
                            user_id=user_id,
                            video_url=stored.url,
                            storage_key=stored.key,
                            mime_type=stored.mime_type,
                            size_bytes=stored.size,
                            title=f"Video from post - {utcnow().date().isoformat()}",
                            source_post_id=post_id,
                        )
                    except Exception:
                        await db.rollback()
                        await db.refresh(post)
                        logger.exception(
                            "Failed to add video to user library",
                            extra={"context": {"user_id": user_id, "video_url": stored.url}},
                        )

            for file in documents:
                stored = await storage.upload_file(user_id, file, StorageKind.DOCUMENTS, "post")
                media_urls.append(stored.url)
                uploaded_keys.append(stored.key)

            all_urls = [*media_urls, *video_urls]
            post.media_url = all_urls[0] if all_urls else None
            post.media_urls = all_urls
            post.post_type = determine_post_type(post.media_url, all_urls)
            await db.commit()
            await db.refresh(post)
        except Exception:
            await db.rollback()
            for key in uploaded_keys:
                try:
                    await storage.delete_file(key, user_id)
                except Exception:
                    logger.exception(
                        "Failed to delete uploaded file during rollback",
                        extra={"context": {"user_id": user_id, "key": key}},
                    )
            await db.execute(delete(Post).where(Post.id == post_id))
            await db.commit()
            raise
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("upload post with files", exc, user_id=user_id) from exc

    await _invalidate_post(post.id, user_id)
    logger.info(
        "Post created with files",
        extra={
            "context": {
                "user_id": user_id,
                "post_id": post.id,
                "file_count": len(files),
                "document_count": len(documents),
            }
        },
    )
    return post


# Read


async def find_one(db: AsyncSession, *, post_id: int, viewer_id: int | None = None) -> PostOut:
    async def _load() -> dict | None:
        row = (await db.execute(select(Post).where(Post.id == post_id))).scalar_one_or_none()
        return post_out(row).model_dump() if row is not None else None

    try:
        payload = await cache.get_or_set(
            f"post:{post_id}",
            _load,
            tags=["post", f"post:{post_id}"],
            ttl=POST_CACHE_TTL,
        )
        if payload is None:
            raise HTTPException(status_code=404, detail="Post not found")

        out = PostOut.model_validate(payload)
        if (not out.is_public or out.is_draft) and out.author_id != viewer_id:
            raise HTTPException(status_code=404, detail="Post not found")

        ids = [post_id]
        kind = ResourceType.POST
        liked = await get_likes_for_resources(db, user_id=viewer_id, resource_type=kind, resource_ids=ids)
        shared = await get_shares_for_resources(db, user_id=viewer_id, resource_type=kind, resource_ids=ids)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("find post", exc, post_id=post_id) from exc

    return out.model_copy(update={"is_liked": post_id in liked, "is_shared": post_id in shared})


async def find_all(db: AsyncSession, *, params: PageParams, viewer_id: int | None = None) -> Page[PostOut]:
    try:
        stmt = select(Post).where(Post.is_public.is_(True), *_published(), Post.parent_post_id.is_(None))
        return await paginate_posts(db, stmt, params, viewer_id)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("find posts", exc) from exc


async def find_by_user_id(
    db: AsyncSession, *, user_id: int, params: PageParams, viewer_id: int | None = None
) -> Page[PostOut]:
    try:
        await get_user_by_id(db, user_id)
        stmt = select(Post).where(Post.author_id == user_id)
        if viewer_id != user_id:
            stmt = stmt.where(Post.is_public.is_(True), *_published())
        return await paginate_posts(db, stmt, params, viewer_id)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("find user posts", exc, user_id=user_id) from exc


async def get_feed(db: AsyncSession, *, user_id: int, params: PageParams) -> Page[PostOut]:
    """Posts from followed users and the user, plus anything the user shared."""
    try:
        author_ids = await following_ids(db, user_id)
        author_ids.add(user_id)
        shared_ids = (
            await db.execute(
                select(Share.resource_id).where(
                    Share.user_id == user_id,
                    Share.resource_type == ResourceType.POST.value,
                )
            )
        ).scalars().all()

        source = Post.author_id.in_(author_ids)
        if shared_ids:
            source = or_(source, Post.id.in_(shared_ids))
        stmt = select(Post).where(
            or_(Post.is_public.is_(True), Post.author_id == user_id),
            *_published(),
            source,
        )
        return await paginate_posts(db, stmt, params, user_id)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("get feed", exc, user_id=user_id) from exc


async def search_posts(
    db: AsyncSession, *, query: str, params: PageParams, viewer_id: int | None = None
) -> Page[PostOut]:
    term = (query or "").strip().lower()
    if not term:
        raise HTTPException(status_code=400, detail="Search query is required")
    like = f"%{term}%"
    try:
        stmt = select(Post).where(
            Post.is_public.is_(True),
            *_published(),
            Post.parent_post_id.is_(None),
            or_(
                func.lower(Post.content).like(like),
                func.lower(cast(Post.hashtags, String)).like(like),
                func.lower(cast(Post.mentions, String)).like(like),
            ),
        )
        return await paginate_posts(db, stmt, params, viewer_id)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("search posts", exc, query=term) from exc


async def filter_posts_by_type(
    db: AsyncSession, *, post_type: str, params: PageParams, viewer_id: int | None = None
) -> Page[PostOut]:
    if post_type not in POST_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid post type: {post_type}")
    try:
        stmt = select(Post).where(
            Post.post_type == post_type,
            Post.is_public.is_(True),
            *_published(),
            Post.parent_post_id.is_(None),
        )
        return await paginate_posts(db, stmt, params, viewer_id)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("filter posts by type", exc, post_type=post_type) from exc


async def _visible_subset(
    db: AsyncSession, user_id: int, stmt: Select, params: PageParams, ordering: tuple
) -> Page[PostOut]:
    stmt = stmt.where(or_(Post.is_public.is_(True), Post.author_id == user_id), Post.is_draft.is_(False))
    return await paginate_posts(db, stmt, params, user_id, ordering=ordering)


async def get_bookmarked_posts(db: AsyncSession, *, user_id: int, params: PageParams) -> Page[PostOut]:
    """Newest bookmark first, whatever the post's own age."""
    try:
        stmt = select(Post).join(Bookmark, and_(Bookmark.post_id == Post.id, Bookmark.user_id == user_id))
        return await _visible_subset(
            db, user_id, stmt, params, (Bookmark.created_at.desc(), Bookmark.id.desc())
        )
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("get bookmarked posts", exc, user_id=user_id) from exc


async def get_liked_posts(db: AsyncSession, *, user_id: int, params: PageParams) -> Page[PostOut]:
    try:
        stmt = select(Post).join(
            Like,
            and_(
                Like.resource_id == Post.id,
                Like.resource_type == ResourceType.POST.value,
                Like.user_id == user_id,
            ),
        )
        return await _visible_subset(db, user_id, stmt, params, (Like.created_at.desc(), Like.id.desc()))
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("get liked posts", exc, user_id=user_id) from exc


async def get_shared_posts(db: AsyncSession, *, user_id: int, params: PageParams) -> Page[PostOut]:
    try:
        stmt = select(Post).join(
            Share,
            and_(
                Share.resource_id == Post.id,
                Share.resource_type == ResourceType.POST.value,
                Share.user_id == user_id,
            ),
        )
        return await _visible_subset(db, user_id, stmt, params, (Share.created_at.desc(), Share.id.desc()))
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("get shared posts", exc, user_id=user_id) from exc


# Update / delete


async def update_post(db: AsyncSession, *, user_id: int, post_id: int, data: PostUpdate) -> Post:
    try:
        post = await _get_owned_post(db, post_id, user_id, "You can only update your own posts")
        fields = data.model_dump(exclude_unset=True)

        if "content" in fields and data.content is not None:
            post.content = sanitize_text(data.content)
            post.hashtags = extract_hashtags(post.content)
            post.mentions = extract_mentions(post.content)

        if "media_url" in fields or "media_urls" in fields:
            if "media_url" in fields:
                post.media_url = sanitize_optional_url(data.media_url)
            if "media_urls" in fields:
                post.media_urls = [u for u in (sanitize_url(x) for x in (data.media_urls or [])) if u]
            post.post_type = determine_post_type(post.media_url, post.media_urls)

        if "link_url" in fields:
            post.link_url = sanitize_optional_url(data.link_url)
        if "link_title" in fields:
            post.link_title = sanitize_optional_text(data.link_title)
        if "link_description" in fields:
            post.link_description = sanitize_optional_text(data.link_description)
        if "link_image" in fields:
            post.link_image = sanitize_optional_url(data.link_image)
        if data.is_public is not None:
            post.is_public = data.is_public
        if data.allow_comments is not None:
            post.allow_comments = data.allow_comments

        if not (post.content or post.media_url or post.media_urls):
            raise HTTPException(status_code=400, detail="Post must have either content or media")

        post.is_edited = True
        await db.commit()
        await db.refresh(post)
    except HTTPException:
        await db.rollback()
        raise
    except Exception as exc:
        raise _internal_error("update post", exc, user_id=user_id, post_id=post_id) from exc

    await _invalidate_post(post_id)
    return post


async def delete_post(db: AsyncSession, *, user_id: int, post_id: int) -> None:
    try:
        post = await _get_owned_post(db, post_id, user_id, "You can only delete your own posts")

        video_urls: list[str] = []
        for url in [post.media_url, *(post.media_urls or [])]:
            if is_video_url(url) and url not in video_urls:
                video_urls.append(url)
        await videos.delete_videos_for_urls(db, user_id=user_id, urls=video_urls, post_id=post_id)

        post_type = ResourceType.POST.value
        comment_ids = select(Comment.id).where(Comment.resource_type == post_type, Comment.resource_id == post_id)
        await db.execute(delete(Reaction).where(or_(Reaction.post_id == post_id, Reaction.comment_id.in_(comment_ids))))
        await db.execute(
            delete(Like).where(Like.resource_type == ResourceType.COMMENT.value, Like.resource_id.in_(comment_ids))
        )
        await db.execute(delete(Like).where(Like.resource_type == post_type, Like.resource_id == post_id))
        await db.execute(delete(Share).where(Share.resource_type == post_type, Share.resource_id == post_id))
        await db.execute(
            delete(Comment)
            .where(Comment.resource_type == post_type, Comment.resource_id == post_id)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(ViewTrack).where(ViewTrack.resource_type == post_type, ViewTrack.resource_id == post_id)
        )
        await db.execute(delete(PostAnalytics).where(PostAnalytics.post_id == post_id))
        await db.execute(delete(Post).where(Post.id == post_id))
        await db.commit()
    except HTTPException:
        raise
    except Exception as exc:
        await db.rollback()
        raise _internal_error("delete post", exc, user_id=user_id, post_id=post_id) from exc

    await _invalidate_post(post_id, user_id)

    try:
        await analytics.calculate_user_analytics(db, user_id)
    except Exception:
        logger.exception(
            "User analytics recalculation after post deletion failed",
            extra={"context": {"user_id": user_id}},
        )

    logger.info("Post deleted", extra={"context": {"user_id": user_id, "post_id": post_id}})


# State transitions


async def toggle_pin_post(db: AsyncSession, *, user_id: int, post_id: int, is_pinned: bool) -> Post:
    try:
        post = await _get_owned_post(db, post_id, user_id, "You can only pin/unpin your own posts")
        post.is_pinned = is_pinned
        await db.commit()
        await db.refresh(post)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("toggle post pin status", exc, user_id=user_id, post_id=post_id) from exc

    await _invalidate_post(post_id, user_id)
    return post


async def _set_archived(db: AsyncSession, user_id: int, post_id: int, archived: bool) -> Post:
    verb = "archive" if archived else "unarchive"
    try:
        post = await _get_owned_post(db, post_id, user_id, f"You can only {verb} your own posts")
        post.is_archived = archived
        await db.commit()
        await db.refresh(post)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error(f"{verb} post", exc, user_id=user_id, post_id=post_id) from exc

    await _invalidate_post(post_id, user_id)
    return post


async def archive_post(db: AsyncSession, *, user_id: int, post_id: int) -> Post:
    return await _set_archived(db, user_id, post_id, True)


async def unarchive_post(db: AsyncSession, *, user_id: int, post_id: int) -> Post:
    return await _set_archived(db, user_id, post_id, False)


async def schedule_post(db: AsyncSession, *, user_id: int, post_id: int, scheduled_date: datetime) -> Post:
    try:
        post = await _get_owned_post(db, post_id, user_id, "You can only schedule your own posts")
        post.scheduled_date = _future_date(scheduled_date)
        post.is_draft = True
        await db.commit()
        await db.refresh(post)
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("schedule post", exc, user_id=user_id, post_id=post_id) from exc

    await _invalidate_post(post_id, user_id)
    return post


# Views / analytics


async def track_post_view(
    db: AsyncSession, *, post_id: int, viewer: ViewerContext, viewer_id: int | None = None
) -> bool:
    post = await _get_post(db, post_id)
    if not post.is_public or post.is_draft:
        return False

    try:
        tracked = await track_view(
            db,
            resource_type=ResourceType.POST.value,
            resource_id=post_id,
            owner_id=post.author_id,
            viewer=viewer,
            viewer_user_id=viewer_id,
        )
        if tracked:
            await bump_counter(db, ResourceType.POST, post_id, "views_count", 1)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Failed to track post view", extra={"context": {"post_id": post_id, "viewer_id": viewer_id}})
        return False

    if tracked:
        analytics.schedule(analytics.calculate_post_analytics, post_id)
        await _invalidate_post(post_id)
    return tracked


async def get_post_analytics(db: AsyncSession, *, user_id: int, post_id: int) -> PostAnalyticsOut:
    try:
        post = await _get_owned_post(db, post_id, user_id, "You can only view analytics for your own posts")
        rows = (
            await db.execute(
                select(Reaction.reaction_type, func.count())
                .where(Reaction.post_id == post_id)
                .group_by(Reaction.reaction_type)
            )
        ).all()
    except HTTPException:
        raise
    except Exception as exc:
        raise _internal_error("get post analytics", exc, user_id=user_id, post_id=post_id) from exc

    breakdown = {kind: 0 for kind in REACTION_TYPES}
    for kind, count in rows:
        breakdown[kind] = breakdown.get(kind, 0) + int(count)
    reactions = sum(breakdown.values())
    total = post.likes_count + post.comments_count + post.shares_count + reactions

    return PostAnalyticsOut(
        post_id=post.id,
        views=post.views_count,
        likes=post.likes_count,
        comments=post.comments_count,
        shares=post.shares_count,
        bookmarks=post.bookmarks_count,
        reactions=reactions,
        reaction_breakdown=breakdown,
        total_engagements=total,
        engagement_rate=analytics.engagement_rate(total, post.views_count),
    )