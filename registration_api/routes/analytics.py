"""
analytics.py
------------
Purpose:
    Admin dashboards over registrations (JWT with role admin / super_admin).

Usage:
    1. GET /api/analytics/registrations - Totals, breakdowns, monthly trend, contact counts
    2. GET /api/analytics/dashboard - Today / week / month counts and recent activity
"""

from fastapi import APIRouter, Depends

from registration_api.auth.verify import admin_auth_dependency
from registration_api.dependencies import get_analytics_service
from registration_api.models.api.analytics_response import (
    DashboardResponse,
    RegistrationAnalyticsResponse,
)
from registration_api.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/registrations", response_model=RegistrationAnalyticsResponse)
async def registration_analytics(
    claims: dict = Depends(admin_auth_dependency),
    service: AnalyticsService = Depends(get_analytics_service),
):
    return RegistrationAnalyticsResponse(data=await service.registration_overview())


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    claims: dict = Depends(admin_auth_dependency),
    service: AnalyticsService = Depends(get_analytics_service),
):
    return DashboardResponse(data=await service.dashboard())
