"""
Search schemas.
"""

from pydantic import BaseModel
from typing import List

from freight_backend.app.schemas.ledger import LedgerEntryResponse
from freight_backend.app.schemas.trip import TripResponse


class LRSearchResponse(BaseModel):
    """Trips and ledger entries matching an LR, across all agents."""
    search_term: str
    trips: List[TripResponse]
    entries: List[LedgerEntryResponse]
