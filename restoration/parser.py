import base64
import binascii
import json
import mimetypes
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


DEFAULT_MIME_TYPE = "image/png"

_DATA_URL = re.compile(r"^data:(image/[\w.+-]+);base64,([A-Za-z0-9+/=\s]+)$")
_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\(\s*([^)\s]+)\s*\)")
_JSON_IMAGE_FIELDS = ("image_url", "imageUrl", "url")

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


class ResponseKind(str, Enum):
    DIRECT = "direct"
    DATA_URL = "data_url"
    EMBEDDED = "embedded"
    UNRECOGNIZED = "unrecognized"


@dataclass
class ParsedImage:
    kind: ResponseKind
    image_url: Optional[str] = None
    mime_type: Optional[str] = None

    @property
    def recognized(self) -> bool:
        return self.kind != ResponseKind.UNRECOGNIZED


UNRECOGNIZED = ParsedImage(kind=ResponseKind.UNRECOGNIZED)


def sniff_image_type(data: bytes) -> Optional[str]:
    for signature, mime_type in _SIGNATURES:
        if data.startswith(signature):
            return mime_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def _mime_for_url(url: str) -> str:
    match = _DATA_URL.match(url)
    if match:
        return match.group(1)
    guessed, _ = mimetypes.guess_type(url.split("?", 1)[0])
    if guessed and guessed.startswith("image/"):
        return guessed
    return DEFAULT_MIME_TYPE


def _embedded(url: Any) -> Optional[ParsedImage]:
    if not isinstance(url, str) or not url.strip():
        return None
    url = url.strip()
    return ParsedImage(kind=ResponseKind.EMBEDDED, image_url=url, mime_type=_mime_for_url(url))


def _first_message(payload: Any) -> dict:
    if not isinstance(payload, dict):
        return {}
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return {}
    message = choices[0].get("message")
    return message if isinstance(message, dict) else {}


def _image_part_url(part: Any) -> Optional[str]:
    if not isinstance(part, dict):
        return None
    image_url = part.get("image_url")
    if isinstance(image_url, dict):
        return image_url.get("url")
    if isinstance(image_url, str):
        return image_url
    return None


def _from_structured_parts(message: dict) -> Optional[ParsedImage]:
    parts = []
    if isinstance(message.get("images"), list):
        parts.extend(message["images"])
    if isinstance(message.get("content"), list):
        parts.extend(p for p in message["content"] if isinstance(p, dict) and p.get("type") == "image_url")
    for part in parts:
        parsed = _embedded(_image_part_url(part))
        if parsed:
            return parsed
    return None


def _from_data_url(content: str) -> Optional[ParsedImage]:
    match = _DATA_URL.match(content)
    if not match:
        return None
    return ParsedImage(kind=ResponseKind.DATA_URL, image_url=content, mime_type=match.group(1))


def _from_json_field(content: str) -> Optional[ParsedImage]:
    if not content.startswith("{"):
        return None
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    for field in _JSON_IMAGE_FIELDS:
        parsed = _embedded(data.get(field))
        if parsed:
            return parsed
    return None


def _from_markdown(content: str) -> Optional[ParsedImage]:
    match = _MARKDOWN_IMAGE.search(content)
    if not match:
        return None
    return _embedded(match.group(1))


def _from_raw_base64(content: str) -> Optional[ParsedImage]:
    payload = "".join(content.split())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
    mime_type = sniff_image_type(data)
    if mime_type is None:
        return None
    return ParsedImage(
        kind=ResponseKind.DIRECT,
        image_url=f"data:{mime_type};base64,{payload}",
        mime_type=mime_type,
    )


_CONTENT_PARSERS = (_from_data_url, _from_json_field, _from_markdown, _from_raw_base64)


def parse_provider_response(payload: Any) -> ParsedImage:
    """
    Locate the image in a chat-completions style response.

    Shapes are tried in a fixed order: structured image parts, a bare data
    URL, a JSON object with an image field, a markdown image tag, then raw
    base64 with a recognizable image signature. Anything else is
    UNRECOGNIZED; callers must not guess past that.
    """
    message = _first_message(payload)
    if not message:
        return UNRECOGNIZED

    parsed = _from_structured_parts(message)
    if parsed:
        return parsed

    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        return UNRECOGNIZED
    content = content.strip()

    for parser in _CONTENT_PARSERS:
        parsed = parser(content)
        if parsed:
            return parsed
    return UNRECOGNIZED
