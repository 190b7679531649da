"""
Utility functions for the Run Your Trip backend
"""

from .request import get_client_ip
from .security import get_current_user, get_current_active_user

__all__ = [
    "get_current_user",
    "get_current_active_user",
    "get_client_ip",
]
