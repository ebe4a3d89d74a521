from models.domain import (
    BatchItem,
    BatchItemStatus,
    BatchSummary,
    ChatMessage,
    ChatRole,
    DescriptionStyle,
    FailoverNotice,
    GeneratedTag,
    GenerationRequest,
    GenerationResponse,
    GenerationResult,
    GenerationSettings,
    ImageUpload,
    LLMConfig,
    LLMProvider,
    MarketingCopy,
    ProviderEndpointConfig,
    TagLanguage,
)

__all__ = [
    "BatchItem",
    "BatchItemStatus",
    "BatchSummary",
    "ChatMessage",
    "ChatRole",
    "DescriptionStyle",
    "FailoverNotice",
    "GeneratedTag",
    "GenerationRequest",
    "GenerationResponse",
    "GenerationResult",
    "GenerationSettings",
    "ImageUpload",
    "LLMConfig",
    "LLMProvider",
    "MarketingCopy",
    "ProviderEndpointConfig",
    "TagLanguage",
]
