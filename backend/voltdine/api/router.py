"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from voltdine.api.routes import vendor_dashboard, transactions, admin

api_router = APIRouter()

# Include all route modules
api_router.include_router(vendor_dashboard.router)
api_router.include_router(transactions.router)
api_router.include_router(admin.router)
