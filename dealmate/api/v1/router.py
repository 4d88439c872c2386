from fastapi import APIRouter
from dealmate.api.v1.endpoints import documents, processing, scan

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(scan.router, prefix="/scan", tags=["Scanner"])
api_router.include_router(processing.router, prefix="/deals", tags=["Processing"])
api_router.include_router(documents.router, prefix="/deals", tags=["Documents"])

__all__ = ["api_router"]
