"""Pydantic schemas for the Price Radar API.

All request/response models are defined here for easy import.
"""

from priceradar.schemas.common import ApiResponse, ErrorDetail, ErrorResponse
from priceradar.schemas.query import ParseQueryRequest, ParseQueryResponse, StructuredQuery
from priceradar.schemas.monitor import BatchRunResponse, RunMonitorRequest, RunMonitorResponse
from priceradar.schemas.offer import OfferResponse
from priceradar.schemas.health import HealthCheckResponse

__all__ = [
    # Common
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Query
    "StructuredQuery",
    "ParseQueryRequest",
    "ParseQueryResponse",
    # Monitor
    "RunMonitorRequest",
    "RunMonitorResponse",
    "BatchRunResponse",
    # Offer
    "OfferResponse",
    # Health
    "HealthCheckResponse",
]
