from __future__ import annotations

from fastapi import Query, UploadFile

from app.schemas.common import PageParams, SortOrder
from app.services.storage import IncomingFile


def page_params(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: SortOrder | None = Query(default=None, alias="sortOrder"),
    sort_by_snake: str | None = Query(default=None, alias="sort_by", include_in_schema=False),
    sort_order_snake: SortOrder | None = Query(default=None, alias="sort_order", include_in_schema=False),
) -> PageParams:
    # camelCase wins when a client sends both spellings.
    return PageParams(
        page=page,
        limit=limit,
        sort_by=sort_by or sort_by_snake or "created_at",
        sort_order=sort_order or sort_order_snake or "DESC",
    )


async def read_uploads(files: list[UploadFile] | None) -> list[IncomingFile]:
    out: list[IncomingFile] = []
    for file in files or []:
        out.append(
            IncomingFile(
                filename=file.filename or "upload",
                content_type=str(file.content_type or "application/octet-stream"),
                data=await file.read(),
            )
        )
    return out
