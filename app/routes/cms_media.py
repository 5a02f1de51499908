"""
Admin media routes: library listing, editing, deletion, uploads and stats.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from app.database import get_db
from app.schemas import MediaUpdate
from app.services import media_service, storage
from app.services.media_service import DuplicateMediaError
from app.services.storage import StorageError
from app.utils.jwt_auth import require_admin
from app.utils.rate_limit import limiter, RATE_LIMITS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/media", tags=["Admin media"])


def _split_list(value) -> List[str]:
    """Parse a comma separated form field into unique non-empty values."""
    if not value or not isinstance(value, str):
        return []
    items = []
    for part in value.split(","):
        part = part.strip()
        if part and part not in items:
            items.append(part)
    return items


def _form_text(form, name: str) -> Optional[str]:
    value = form.get(name)
    if not isinstance(value, str):
        return None
    return value.strip() or None


@router.get("/list")
async def list_media(
    q: Optional[str] = None,
    visibility: Optional[str] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, alias="pageSize", ge=1),
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await media_service.list_admin_media(
            db,
            q=q,
            visibility=visibility,
            category=category,
            tag=tag,
            sort=sort,
            page=page,
            page_size=page_size,
        )
        return {"ok": True, **data}
    except Exception as e:
        logger.error(f"Error listing admin media: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to retrieve media"}
        )


@router.get("/tags")
async def list_tags(username: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return {"ok": True, "tags": await media_service.list_tag_counts(db)}


@router.get("/devices")
async def list_devices(username: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return {"ok": True, **await media_service.device_stats(db)}


@router.post("/upload", status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["upload"])
async def upload_media(
    request: Request,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Upload one or more images (multipart field "file" or "files").

    Optional form fields: provider, title, alt, folder, category_ids and tags
    (comma separated) and visibility. Files whose content was already uploaded
    are reported as duplicates instead of being stored twice.

    Returns:
        dict: data, successCount, duplicateCount, duplicates, failCount, failures

    Raises:
        HTTPException: 400 for a missing file or an unusable provider,
            500 if every file failed
    """
    form = await request.form()
    files = [f for f in form.getlist("files") + form.getlist("file") if hasattr(f, "filename")]
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"ok": False, "error": "No file provided"}
        )

    provider = _form_text(form, "provider") or storage.default_provider()
    if provider not in storage.PROVIDERS or not storage.provider_available(provider):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"ok": False, "error": f"Storage provider '{provider}' is not available"}
        )

    title = _form_text(form, "title")
    alt = _form_text(form, "alt")
    folder = _form_text(form, "folder")
    visibility = _form_text(form, "visibility")
    category_ids = _split_list(form.get("category_ids"))
    tags = _split_list(form.get("tags"))

    created = []
    duplicates = []
    failures = []

    for upload in files:
        filename = upload.filename or "upload"
        if not upload.content_type or not upload.content_type.startswith("image/"):
            failures.append({"filename": filename, "error": "Not an image file"})
            continue
        try:
            data = await upload.read()
            media = await media_service.create_media_from_file(
                db,
                data,
                filename=filename,
                content_type=upload.content_type,
                provider=provider,
                title=title,
                alt=alt,
                folder=folder,
                category_ids=category_ids,
                tags=tags,
                visibility=visibility,
            )
            created.append(media)
        except DuplicateMediaError as e:
            logger.info(f"Skipping duplicate upload {filename} (existing media {e.existing.id})")
            duplicates.append({
                "filename": filename,
                "existing": {"id": e.existing.id, "url": e.existing.url, "title": e.existing.title},
            })
        except StorageError as e:
            logger.error(f"Storage failed for {filename}: {str(e)}")
            failures.append({"filename": filename, "error": str(e)})
        except Exception as e:
            logger.error(f"Error uploading {filename}: {str(e)}", exc_info=True)
            failures.append({"filename": filename, "error": str(e)})

    if not created and not duplicates:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "All uploads failed", "failures": failures}
        )

    await db.commit()
    if failures:
        logger.warning(f"Partial upload success: {len(created)} succeeded, {len(failures)} failed")
    logger.info(f"Uploaded {len(created)} media item(s), {len(duplicates)} duplicate(s)")

    return {
        "ok": True,
        "data": created,
        "successCount": len(created),
        "duplicateCount": len(duplicates),
        "duplicates": duplicates,
        "failCount": len(failures),
        "failures": failures,
    }


@router.get("/{media_id}")
async def get_media(media_id: str, username: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    data = await media_service.get_media_detail(db, media_id)
    if data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"ok": False, "error": "Media not found"}
        )
    return {"ok": True, "data": data}


@router.put("/{media_id}")
async def update_media(
    media_id: str,
    data: MediaUpdate,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        updated = await media_service.update_media(db, media_id, data)
        if updated is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"ok": False, "error": "Media not found"}
            )
        await db.commit()
        logger.info(f"Media {media_id} updated by {username}")
        return {"ok": True, "data": updated}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating media {media_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to update media"}
        )


@router.delete("/{media_id}")
async def delete_media(media_id: str, username: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    try:
        if not await media_service.delete_media(db, media_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"ok": False, "error": "Media not found"}
            )
        await db.commit()
        logger.info(f"Media {media_id} deleted by {username}")
        return {"ok": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting media {media_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to delete media"}
        )
