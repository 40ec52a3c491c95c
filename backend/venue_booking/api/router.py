"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from venue_booking.api.routes import functions, guests, occasions

# Function endpoints keep the paths the booking sites already call
functions_router = functions.router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(occasions.router)
api_router.include_router(guests.router)
