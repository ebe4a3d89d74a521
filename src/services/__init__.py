from .cancellation import CancellationToken
from .llm_errors import FailoverError, LLMError
from .orchestrator import GenerationOrchestrator
from .remote_llms import create_provider
from .retry import RetryPolicy, with_retry
from .tag_library import TagLibrary, build_prompt_library, normalize_tags

__all__ = [
    "CancellationToken",
    "FailoverError",
    "GenerationOrchestrator",
    "LLMError",
    "RetryPolicy",
    "TagLibrary",
    "build_prompt_library",
    "create_provider",
    "normalize_tags",
    "with_retry",
]
