from fastapi import APIRouter
from pfe_catalog.api.v1.endpoints import (
    auth,
    submission,
    validation,
    catalog,
    admin
)

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(submission.router, prefix="/submission", tags=["submission"])
api_router.include_router(validation.router, prefix="/validation", tags=["validation"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
