"""
Main API router aggregator
"""
from fastapi import APIRouter

from caseintake.api.v1.endpoints import intake

api_router = APIRouter()

api_router.include_router(intake.router, tags=["Intake"])
