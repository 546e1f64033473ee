"""Free-text query parsing endpoint."""

import openai
import structlog
from fastapi import APIRouter, Depends

from priceradar.core.exceptions import ModelUnavailableError
from priceradar.dependencies import get_extraction_engine
from priceradar.extraction.engine import ExtractionEngine
from priceradar.schemas import ParseQueryRequest, ParseQueryResponse

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/parse", response_model=ParseQueryResponse)
async def parse_query(
    body: ParseQueryRequest,
    engine: ExtractionEngine = Depends(get_extraction_engine),
):
    """Turn a free-text request into a StructuredQuery.

    An unusable model reply still returns 200 with the text as the item;
    only a failed model call returns 502.
    """
    try:
        parsed = await engine.parse_query(body.query_text)
    except openai.OpenAIError as e:
        logger.error("query_parse_failed", error=str(e), error_type=e.__class__.__name__)
        raise ModelUnavailableError(f"Language model call failed: {e.__class__.__name__}") from e

    return ParseQueryResponse(success=True, parsed=parsed)
