from fastapi import APIRouter

from schemas.api import ApiResponse
from services.streaming.protocol import ANALYSIS_PROTOCOL_VERSION


router = APIRouter()


@router.get("/health", response_model=ApiResponse[dict[str, str]])
def health_check() -> ApiResponse[dict[str, str]]:
    """Health check endpoint for monitoring and load balancer health checks."""
    return ApiResponse(
        success=True,
        data={
            "status": "healthy",
            "message": "Rewrite Assistant API is running",
            "analysisProtocolVersion": str(ANALYSIS_PROTOCOL_VERSION),
        },
        message="Health check successful",
    )
