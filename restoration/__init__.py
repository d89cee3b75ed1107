"""
Restoration Proxy Package

Forwards photo restoration requests to an external chat-completions provider
and normalizes whatever image shape it answers with.
"""

from .models import RestoreRequest, RestoredImage
from .parser import (
    ParsedImage,
    ResponseKind,
    parse_provider_response,
)
from .proxy import (
    ProviderError,
    RestorationProxy,
)

__all__ = [
    "RestoreRequest",
    "RestoredImage",
    "ParsedImage",
    "ResponseKind",
    "parse_provider_response",
    "ProviderError",
    "RestorationProxy",
]
