from fastapi import APIRouter

from app.api.v1 import consultations, diagnostics, patients

router = APIRouter()

router.include_router(consultations.router, tags=["consultations"])
router.include_router(patients.router, tags=["patients"])
router.include_router(diagnostics.router, tags=["diagnostics"])
