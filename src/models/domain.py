import enum
from dataclasses import dataclass, field
from typing import Optional


class LLMProvider(str, enum.Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    GROK = "grok"
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"
    CUSTOM = "custom"


class DescriptionStyle(str, enum.Enum):
    DEFAULT = "default"
    EMOTION = "emotion"
    PLOT = "plot"
    TEEN = "teen"


class TagLanguage(str, enum.Enum):
    EN = "en"
    SC = "sc"
    TC = "tc"


class BatchItemStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ChatRole(str, enum.Enum):
    USER = "user"
    MODEL = "model"


ASPECT_RATIOS = ("1:1", "3:4", "4:3", "16:9", "9:16")


@dataclass(frozen=True)
class ProviderEndpointConfig:
    provider: LLMProvider
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model_name: Optional[str] = None


@dataclass(frozen=True)
class LLMConfig:
    """Read-only snapshot of provider configuration handed to the orchestrator."""

    provider: LLMProvider = LLMProvider.GEMINI
    endpoints: dict[LLMProvider, ProviderEndpointConfig] = field(default_factory=dict)
    enable_failover: bool = False
    failover_provider: Optional[LLMProvider] = None
    gemini_backup_api_key: Optional[str] = None

    def endpoint(self, provider: LLMProvider) -> ProviderEndpointConfig:
        return self.endpoints.get(provider) or ProviderEndpointConfig(provider=provider)


@dataclass(frozen=True)
class GenerationSettings:
    tags_count: int = 10
    description_style: DescriptionStyle = DescriptionStyle.DEFAULT
    tag_language: TagLanguage = TagLanguage.SC
    use_thinking: bool = False


@dataclass(frozen=True)
class GeneratedTag:
    name: str
    score: int = 0


@dataclass(frozen=True)
class MarketingCopy:
    logline: str
    catchphrases: list[str] = field(default_factory=list)
    dialogue_snippet: str = ""


@dataclass
class GenerationResult:
    description: str
    tags: list[GeneratedTag] = field(default_factory=list)
    marketing_copy: Optional[MarketingCopy] = None

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]


@dataclass(frozen=True)
class GenerationRequest:
    image: bytes
    mime_type: str
    tag_library_csv: str
    settings: GenerationSettings
    pinned_tags: Optional[tuple[str, ...]] = None
    excluded_tags: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class GenerationResponse:
    result: GenerationResult
    used_failover: bool
    provider: LLMProvider


@dataclass(frozen=True)
class ChatMessage:
    role: ChatRole
    text: str


@dataclass
class BatchItem:
    id: str
    image: bytes
    mime_type: str
    filename: str = ""
    status: BatchItemStatus = BatchItemStatus.PENDING
    result: Optional[GenerationResult] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BatchSummary:
    completed: int
    failed: int
    cancelled: bool = False


@dataclass(frozen=True)
class ImageUpload:
    image: bytes
    mime_type: str
    filename: str = ""


@dataclass(frozen=True)
class FailoverNotice:
    provider: LLMProvider
