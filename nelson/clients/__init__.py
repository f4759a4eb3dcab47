"""External-service client handles.

Clients are constructed once by the caller and injected into the stages.
They hold no per-call state, so a single instance is safe to share across
concurrent pipeline runs.
"""

from nelson.clients.literature import HttpLiteratureIndex, LiteratureIndex, create_literature_index
from nelson.clients.llm import LLMClient, LLMRequestConfig, MistralClient, create_llm

__all__ = [
    "HttpLiteratureIndex",
    "LLMClient",
    "LLMRequestConfig",
    "LiteratureIndex",
    "MistralClient",
    "create_literature_index",
    "create_llm",
]
