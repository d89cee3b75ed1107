from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class RestoreRequest(BaseModel):
    image: str = Field(..., description="Base64 encoded image bytes")
    mime_type: str = Field(..., description="MIME type of the uploaded image")
    prompt: str = Field(..., description="Restoration instruction for the provider")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("image", "mime_type", "prompt")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class RestoredImage(BaseModel):
    image_url: str
    mime_type: str = "image/png"

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
