"""
Purchase and download Pydantic schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field


class DownloadLinkResponse(BaseModel):
    """Freshly minted download link"""
    success: bool = True
    download_url: str = Field(..., alias="downloadUrl")
    expires_in: str = Field(..., alias="expiresIn")

    class Config:
        populate_by_name = True


class PurchaseResponse(BaseModel):
    """Purchase as seen by its buyer"""
    id: int
    template_id: int
    purchase_price: Decimal
    status: str
    payment_method: Optional[str] = None
    purchase_date: datetime

    class Config:
        from_attributes = True


class PurchaseList(BaseModel):
    """Purchase list response schema"""
    purchases: List[PurchaseResponse]
    total: int
