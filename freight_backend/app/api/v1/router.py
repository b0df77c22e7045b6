"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from freight_backend.app.api.v1.endpoints import trips, ledger, disputes, reconciliation, search

router = APIRouter()

# Trip lifecycle: create, payments, deductions, close, attachments, delete
router.include_router(trips.router)

# Agent ledgers, balances and wallet operations
router.include_router(ledger.router)

# Disputes and their reconciliation
router.include_router(disputes.router)

# Drift report
router.include_router(reconciliation.router)

# Global LR lookup
router.include_router(search.router)
