"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from bookingcore.api.v1 import bookings, commands, webhooks

api_router = APIRouter()

# Commands
api_router.include_router(commands.router, prefix="/commands", tags=["Commands"])

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
