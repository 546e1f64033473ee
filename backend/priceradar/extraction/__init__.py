"""Model-backed extraction of structured queries and offers."""

from .engine import ExtractionEngine, parse_json_payload, strip_code_fences
from .llm_client import LLMClient

__all__ = [
    "ExtractionEngine",
    "LLMClient",
    "parse_json_payload",
    "strip_code_fences",
]
