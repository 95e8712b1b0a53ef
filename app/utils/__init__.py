"""Utility modules."""

from app.utils.normalization import (
    mask_email,
    normalize_email,
    sanitize_thread_body,
)
from app.utils.pagination import (
    PaginationParams,
    clamp_pagination,
)

__all__ = [
    "mask_email",
    "normalize_email",
    "sanitize_thread_body",
    "PaginationParams",
    "clamp_pagination",
]
