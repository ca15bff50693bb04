"""
API routes for the underwriting workbench.
"""

from fastapi import APIRouter

from underwriter.api import calculations

router = APIRouter()

router.include_router(calculations.router, prefix="/calculate", tags=["calculations"])
