from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import page_params, read_uploads
from app.db.session import get_db
from app.schemas.common import MessageResponse, Page, PageParams
from app.schemas.post import (
    BookmarkIn,
    BookmarkOut,
    PinIn,
    PostAnalyticsOut,
    PostCreate,
    PostOut,
    PostUpdate,
    ReactionIn,
    ReactionOut,
    ReportIn,
    ReportOut,
    ScheduleIn,
    ViewIn,
)
from app.services import bookmarks, posts, reactions, reports
from app.services.auth import AuthUser, get_current_user, get_optional_user
from app.services.tracking import viewer_context_from_request

router = APIRouter(prefix="/posts", tags=["posts"])


def _viewer_id(user: AuthUser | None) -> int | None:
    return user.user_id if user is not None else None


@router.post("", response_model=PostOut, status_code=201)
async def create_post(
    payload: PostCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> PostOut:
    post = await posts.create_post(db, user_id=current_user.user_id, data=payload)
    return posts.post_out(post)


@router.post("/upload", response_model=PostOut, status_code=201)
async def create_post_with_files(
    content: str | None = Form(default=None),
    is_public: bool = Form(default=True),
    allow_comments: bool = Form(default=True),
    parent_post_id: int | None = Form(default=None),
    video_ids: list[int] = Form(default=[]),
    files: list[UploadFile] | None = File(default=None),
    documents: list[UploadFile] | None = File(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> PostOut:
    post = await posts.create_post_with_files(
        db,
        user_id=current_user.user_id,
        content=content,
        files=await read_uploads(files),
        documents=await read_uploads(documents),
        is_public=is_public,
        allow_comments=allow_comments,
        parent_post_id=parent_post_id,
        video_ids=video_ids,
    )
    return posts.post_out(post)


@router.get("", response_model=Page[PostOut])
async def list_posts(
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> Page[PostOut]:
    return await posts.find_all(db, params=params, viewer_id=_viewer_id(current_user))


@router.get("/feed", response_model=Page[PostOut])
async def get_feed(
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> Page[PostOut]:
    return await posts.get_feed(db, user_id=current_user.user_id, params=params)


@router.get("/search", response_model=Page[PostOut])
async def search_posts(
    q: str = "",
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> Page[PostOut]:
    return await posts.search_posts(db, query=q, params=params, viewer_id=_viewer_id(current_user))


@router.get("/type/{post_type}", response_model=Page[PostOut])
async def filter_by_type(
    post_type: str,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> Page[PostOut]:
    return await posts.filter_posts_by_type(db, post_type=post_type, params=params, viewer_id=_viewer_id(current_user))


@router.get("/users/{user_id}", response_model=Page[PostOut])
async def list_user_posts(
    user_id: int,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> Page[PostOut]:
    return await posts.find_by_user_id(db, user_id=user_id, params=params, viewer_id=_viewer_id(current_user))


@router.get("/me/bookmarks", response_model=Page[PostOut])
async def my_bookmarks(
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> Page[PostOut]:
    return await posts.get_bookmarked_posts(db, user_id=current_user.user_id, params=params)


@router.get("/me/likes", response_model=Page[PostOut])
async def my_likes(
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> Page[PostOut]:
    return await posts.get_liked_posts(db, user_id=current_user.user_id, params=params)


@router.get("/me/shares", response_model=Page[PostOut])
async def my_shares(
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> Page[PostOut]:
    return await posts.get_shared_posts(db, user_id=current_user.user_id, params=params)


@router.post("/comments/{comment_id}/react", response_model=ReactionOut)
async def react_to_comment(
    comment_id: int,
    payload: ReactionIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> ReactionOut:
    row = await reactions.react(
        db, user_id=current_user.user_id, reaction_type=payload.reaction_type, comment_id=comment_id
    )
    return reactions.reaction_out(row)


@router.delete("/comments/{comment_id}/react", response_model=MessageResponse)
async def remove_comment_reaction(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> MessageResponse:
    await reactions.remove_reaction(db, user_id=current_user.user_id, comment_id=comment_id)
    return MessageResponse(message="Reaction removed")


@router.get("/{post_id}", response_model=PostOut)
async def get_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> PostOut:
    return await posts.find_one(db, post_id=post_id, viewer_id=_viewer_id(current_user))


@router.patch("/{post_id}", response_model=PostOut)
async def update_post(
    post_id: int,
    payload: PostUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> PostOut:
    post = await posts.update_post(db, user_id=current_user.user_id, post_id=post_id, data=payload)
    return posts.post_out(post)


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> MessageResponse:
    await posts.delete_post(db, user_id=current_user.user_id, post_id=post_id)
    return MessageResponse(message="Post deleted")


@router.post("/{post_id}/pin", response_model=PostOut)
async def pin_post(
    post_id: int,
    payload: PinIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> PostOut:
    post = await posts.toggle_pin_post(db, user_id=current_user.user_id, post_id=post_id, is_pinned=payload.is_pinned)
    return posts.post_out(post)


@router.post("/{post_id}/archive", response_model=PostOut)
async def archive_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> PostOut:
    return posts.post_out(await posts.archive_post(db, user_id=current_user.user_id, post_id=post_id))


@router.post("/{post_id}/unarchive", response_model=PostOut)
async def unarchive_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> PostOut:
    return posts.post_out(await posts.unarchive_post(db, user_id=current_user.user_id, post_id=post_id))


@router.post("/{post_id}/schedule", response_model=PostOut)
async def schedule_post(
    post_id: int,
    payload: ScheduleIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> PostOut:
    post = await posts.schedule_post(
        db, user_id=current_user.user_id, post_id=post_id, scheduled_date=payload.scheduled_date
    )
    return posts.post_out(post)


@router.post("/{post_id}/bookmark", response_model=BookmarkOut, status_code=201)
async def bookmark_post(
    post_id: int,
    payload: BookmarkIn | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> BookmarkOut:
    note = payload.note if payload is not None else None
    row = await bookmarks.bookmark_post(db, user_id=current_user.user_id, post_id=post_id, note=note)
    return bookmarks.bookmark_out(row)


@router.delete("/{post_id}/bookmark", response_model=MessageResponse)
async def unbookmark_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> MessageResponse:
    await bookmarks.unbookmark_post(db, user_id=current_user.user_id, post_id=post_id)
    return MessageResponse(message="Bookmark removed")


@router.post("/{post_id}/report", response_model=ReportOut, status_code=201)
async def report_post(
    post_id: int,
    payload: ReportIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> ReportOut:
    row = await reports.report_post(
        db,
        user_id=current_user.user_id,
        post_id=post_id,
        reason=payload.reason,
        description=payload.description,
    )
    return reports.report_out(row)


@router.post("/{post_id}/react", response_model=ReactionOut)
async def react_to_post(
    post_id: int,
    payload: ReactionIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> ReactionOut:
    row = await reactions.react(db, user_id=current_user.user_id, reaction_type=payload.reaction_type, post_id=post_id)
    return reactions.reaction_out(row)


@router.delete("/{post_id}/react", response_model=MessageResponse)
async def remove_post_reaction(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> MessageResponse:
    await reactions.remove_reaction(db, user_id=current_user.user_id, post_id=post_id)
    return MessageResponse(message="Reaction removed")


@router.post("/{post_id}/view")
async def track_view(
    post_id: int,
    request: Request,
    payload: ViewIn | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> dict[str, bool]:
    viewer = viewer_context_from_request(request, payload.referrer if payload is not None else None)
    tracked = await posts.track_post_view(db, post_id=post_id, viewer=viewer, viewer_id=_viewer_id(current_user))
    return {"tracked": tracked}


@router.get("/{post_id}/analytics", response_model=PostAnalyticsOut)
async def post_analytics(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> PostAnalyticsOut:
    return await posts.get_post_analytics(db, user_id=current_user.user_id, post_id=post_id)
