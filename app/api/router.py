from fastapi import APIRouter
from app.modules.patients.router import router as patients_router
from app.modules.directory.router import router as directory_router
from app.modules.appointments.router import router as appointments_router
from app.modules.tokens.router import router as tokens_router

api_router = APIRouter()
api_router.include_router(patients_router, prefix="/patients", tags=["patients"])
api_router.include_router(directory_router, prefix="/doctors", tags=["doctors"])
api_router.include_router(appointments_router, prefix="/patient-appointments", tags=["appointments"])
api_router.include_router(tokens_router, prefix="/tokens", tags=["tokens"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
