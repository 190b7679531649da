"""
Secure template download routes
Token-gated ZIP downloads for purchased templates
"""

import asyncio
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, status, Request, Query
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from database import get_db
from config import settings
from app.models.analytics import AnalyticsEventType
from app.models.template import Template
from app.models.user import User
from app.schemas.purchase import DownloadLinkResponse
from app.services.analytics_service import AnalyticsService
from app.services.download_service import (
    ArchiveBuildError, archive_filename, build_template_archive, iter_archive_chunks
)
from app.services.purchase_service import PurchaseService
from app.services.token_service import token_service, build_download_url
from app.utils.security import get_current_active_user

router = APIRouter()
logger = logging.getLogger(__name__)

PURCHASE_ID_PATTERN = re.compile(r"[1-9][0-9]*")


def parse_purchase_id(raw: str) -> int:
    """Positive integer path parameter or 400"""
    if not raw or not PURCHASE_ID_PATTERN.fullmatch(raw):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid purchase ID"
        )
    return int(raw)


@router.get("/{purchase_id}")
async def download_template(
    purchase_id: str,
    request: Request,
    token: str = Query(None),
    db: Session = Depends(get_db)
):
    """Download a purchased template as a ZIP archive"""

    purchase_id = parse_purchase_id(purchase_id)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Download token required"
        )

    verification = token_service.verify_download_token(purchase_id, token)
    if not verification.valid:
        logger.warning(f"Invalid download token for purchase {purchase_id}: {verification.error}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "Invalid or expired download token",
                "details": verification.error
            }
        )

    purchase = PurchaseService.get_purchase(db, purchase_id)
    if not purchase:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Purchase not found"
        )

    template = db.query(Template).filter(Template.id == purchase.template_id).first()
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )

    logger.info(f"Generating download for template: {template.name} (purchase {purchase_id})")

    # Track download
    AnalyticsService.record_event(
        db,
        AnalyticsEventType.DOWNLOAD,
        user_id=purchase.user_id,
        template_id=template.id,
        event_data={
            "purchaseId": purchase_id,
            "templateName": template.name,
        },
        request=request
    )

    PurchaseService.increment_template_counter(db, template.id, "downloads")

    # Commits above expired both rows; load them here so the worker thread never touches the session
    db.refresh(purchase)
    db.refresh(template)

    try:
        archive = await asyncio.wait_for(
            run_in_threadpool(build_template_archive, template, purchase),
            timeout=settings.ARCHIVE_BUILD_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError:
        logger.error(
            f"Archive build for purchase {purchase_id} exceeded {settings.ARCHIVE_BUILD_TIMEOUT_SECONDS}s"
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate download"
        )
    except ArchiveBuildError as e:
        logger.error(f"Download error for purchase {purchase_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate download"
        )

    return StreamingResponse(
        iter_archive_chunks(archive, purchase_id),
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{archive_filename(template)}"',
            "Content-Length": str(len(archive)),
        }
    )


@router.post("/generate-link/{purchase_id}", response_model=DownloadLinkResponse)
async def generate_download_link(
    purchase_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Mint a new download link for one of the caller's purchases"""

    purchase_id = parse_purchase_id(purchase_id)

    try:
        purchase = PurchaseService.get_purchase(db, purchase_id)
    except Exception as e:
        logger.error(f"Generate link error for purchase {purchase_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate download link"
        )

    if not purchase:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Purchase not found"
        )

    if purchase.user_id != current_user.id:
        logger.warning(
            f"User {current_user.id} requested a download link for purchase {purchase_id} owned by another user"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )

    download_url = build_download_url(purchase.id, token_service.issue_download_token(purchase.id))

    return DownloadLinkResponse(
        downloadUrl=download_url,
        expiresIn=f"{settings.DOWNLOAD_TOKEN_EXPIRY_DAYS} days"
    )
