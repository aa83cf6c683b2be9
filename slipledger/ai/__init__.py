"""LLM provider access: chat client, router, vision and answer validation."""

from .client import (
    ChatMessage,
    ProviderConfig,
    ProviderError,
    chat_completion,
    content_to_string,
    make_openai_client,
)
from .parsing import json_from_model, json_object_from_model, strip_code_fences
from .router import (
    BALANCED_ORDER,
    CONSENSUS_FALLBACK_ORDER,
    FAST_ORDER,
    VERIFIER_ORDER,
    ConsensusResult,
    ProviderRouter,
    RouterError,
    SlotResult,
    build_providers,
)
from .validation import Invalid, Valid, ValidationResult, validate_answer
from .vision import UploadRejected, VisionError, VisionReader, VisionResult, check_upload, to_data_url

__all__ = [
    "ChatMessage",
    "ProviderConfig",
    "ProviderError",
    "chat_completion",
    "content_to_string",
    "make_openai_client",
    "json_from_model",
    "json_object_from_model",
    "strip_code_fences",
    "BALANCED_ORDER",
    "CONSENSUS_FALLBACK_ORDER",
    "FAST_ORDER",
    "VERIFIER_ORDER",
    "ConsensusResult",
    "ProviderRouter",
    "RouterError",
    "SlotResult",
    "build_providers",
    "Invalid",
    "Valid",
    "ValidationResult",
    "validate_answer",
    "UploadRejected",
    "VisionError",
    "VisionReader",
    "VisionResult",
    "check_upload",
    "to_data_url",
]
