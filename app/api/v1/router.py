"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    appointments,
    auth,
    health,
    medicines,
    patients,
    prescriptions,
    security,
    users,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router)
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(patients.router)
api_router.include_router(prescriptions.router)
api_router.include_router(medicines.router)
api_router.include_router(security.router)
