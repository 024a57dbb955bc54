import re
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from imagerelay.services.image_service import parse_hex_color

EMOJI_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{2,32}$")
# Largest JPEG dimension
MAX_COORDINATE = 65535

def _drop_blank_fields(data: Any) -> Any:
    # Blank form inputs arrive as "" and should fall back to defaults
    if isinstance(data, dict):
        return {key: value for key, value in data.items() if value not in ("", None)}
    return data

class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

class FetchImageRequest(RequestModel):
    url: str = Field(min_length=1)
    emoji: bool = False
    # Discord snowflake; also used as an object key segment
    server_id: Optional[str] = Field(default=None, alias="serverId", pattern=r"^\d{1,20}$")
    bot_token: Optional[str] = Field(default=None, alias="botToken")
    emoji_name: Optional[str] = Field(default=None, alias="emojiName")

    @model_validator(mode="before")
    @classmethod
    def drop_blank_fields(cls, data: Any) -> Any:
        return _drop_blank_fields(data)

    @field_validator("url")
    @classmethod
    def strip_url(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def require_emoji_fields(self) -> "FetchImageRequest":
        if not self.emoji:
            return self
        missing = [
            alias
            for alias, value in (
                ("serverId", self.server_id),
                ("botToken", self.bot_token),
                ("emojiName", self.emoji_name),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing required fields for emoji upload: {', '.join(missing)}")
        if not EMOJI_NAME_PATTERN.match(self.emoji_name):
            raise ValueError("emojiName must be 2-32 characters of letters, digits or underscores")
        return self

class TextOnImageRequest(RequestModel):
    image_url: str = Field(alias="imageUrl", min_length=1)
    text: str = Field(min_length=1, max_length=500)
    x: int = Field(default=50, ge=-MAX_COORDINATE, le=MAX_COORDINATE)
    y: int = Field(default=50, ge=-MAX_COORDINATE, le=MAX_COORDINATE)
    # None means the configured DEFAULT_FONT_SIZE
    font_size: Optional[int] = Field(default=None, alias="fontSize", gt=0, le=512)
    font_color: str = Field(default="#FFFFFF", alias="fontColor")

    @model_validator(mode="before")
    @classmethod
    def drop_blank_fields(cls, data: Any) -> Any:
        return _drop_blank_fields(data)

    @field_validator("font_color")
    @classmethod
    def normalize_font_color(cls, value: str) -> str:
        r, g, b = parse_hex_color(value)
        return f"#{r:02X}{g:02X}{b:02X}"

class FetchedImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: bytes
    content_type: str

class ProcessedImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: bytes
    content_type: str = "image/jpeg"

class StoredObjectRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    public_url: str

class EmojiPushResult(BaseModel):
    success: bool
    message: str
    emoji_id: Optional[str] = Field(default=None, serialization_alias="emojiId")
    status: Optional[int] = None

class ImageUploadResponse(BaseModel):
    message: str
    r2_url: str = Field(serialization_alias="r2Url")
    discord: Optional[EmojiPushResult] = None
