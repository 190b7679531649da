"""
Purchase history routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from app.models.user import User
from app.schemas.purchase import PurchaseList, PurchaseResponse
from app.services.purchase_service import PurchaseService
from app.utils.security import get_current_active_user

router = APIRouter()


@router.get("/", response_model=PurchaseList)
async def list_my_purchases(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """List the caller's purchases, newest first"""
    purchases = PurchaseService.list_user_purchases(db, current_user.id)
    return PurchaseList(
        purchases=[PurchaseResponse.model_validate(p) for p in purchases],
        total=len(purchases)
    )
