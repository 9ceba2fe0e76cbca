"""Chat completion translation between OpenAI and 1min.ai."""

from .assembler import assemble
from .conversation import ConversationOpener
from .service import ChatCompletionService, PreparedCompletion
from .stream_adapter import (
    DONE_FRAME,
    HttpxStreamReader,
    SSEToChatCompletionTransducer,
    TransducerStep,
    adapt_upstream_stream,
)
from .translator import MODEL_MAP, build_prompt, map_model, translate, validate_chat_request

__all__ = [
    "ChatCompletionService",
    "ConversationOpener",
    "DONE_FRAME",
    "HttpxStreamReader",
    "MODEL_MAP",
    "PreparedCompletion",
    "SSEToChatCompletionTransducer",
    "TransducerStep",
    "adapt_upstream_stream",
    "assemble",
    "build_prompt",
    "map_model",
    "translate",
    "validate_chat_request",
]
