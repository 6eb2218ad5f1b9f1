from __future__ import annotations

from pydantic import BaseModel


class CacheStats(BaseModel):
    """Point-in-time footprint of one cache partition."""

    size: int  # Live entry count
    estimated_memory_usage: int  # Sum of per-entry size estimates, in bytes
