import base64
from typing import Optional

import httpx
import structlog

from .models import RestoredImage
from .parser import parse_provider_response

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-image"
DEFAULT_TIMEOUT_SECONDS = 120.0

# Permissive thresholds are a product choice for old family photos, not a security control.
SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]

GENERATION_CONFIG = {
    "max_tokens": 4096,
    "temperature": 0.4,
    "top_p": 1,
}


class ProviderError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if data.get("message"):
            return str(data["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


class RestorationProxy:
    """Forwards restoration requests to an OpenAI-compatible chat-completions provider."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not api_key or not base_url:
            raise ValueError("api_key and base_url are required")
        self.model = model
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def build_payload(self, image_bytes: bytes, mime_type: str, instruction: str) -> dict:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": instruction},
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                    ],
                }
            ],
            **GENERATION_CONFIG,
            "safety_settings": SAFETY_SETTINGS,
        }

    def restore(self, image_bytes: bytes, mime_type: str, instruction: str) -> RestoredImage:
        payload = self.build_payload(image_bytes, mime_type, instruction)
        logger.info("provider_request", model=self.model, mime_type=mime_type, image_bytes=len(image_bytes))

        try:
            response = self.client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            logger.error("provider_timeout", error=str(e))
            raise ProviderError("The restoration provider timed out") from e
        except httpx.HTTPError as e:
            logger.error("provider_unreachable", error=str(e))
            raise ProviderError(f"Could not reach the restoration provider: {e}") from e

        if not response.is_success:
            message = _error_message(response)
            logger.error("provider_error", status_code=response.status_code, message=message)
            raise ProviderError(message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("The provider returned a non-JSON response", status_code=response.status_code) from e

        parsed = parse_provider_response(data)
        if not parsed.recognized:
            logger.error("provider_unrecognized_response", status_code=response.status_code)
            raise ProviderError(
                "The provider did not return a recognizable image", status_code=response.status_code
            )

        logger.info("provider_image_received", kind=parsed.kind.value, mime_type=parsed.mime_type)
        return RestoredImage(image_url=parsed.image_url, mime_type=parsed.mime_type)
