from fastapi import APIRouter
from rxbridge.api.v1.endpoints import patients, prescriptions

"""
API 路由汇总 (API Router Aggregator)
Paths match what the patient and doctor dashboards call.
"""
api_router = APIRouter()
api_router.include_router(patients.router, tags=["patients"])
api_router.include_router(prescriptions.router, tags=["prescriptions"])
