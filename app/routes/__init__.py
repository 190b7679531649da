"""
API routes for the Run Your Trip backend
"""

# Import all routers to make them available
from . import auth, download, purchases, stripe_webhook

__all__ = ["auth", "download", "purchases", "stripe_webhook"]
