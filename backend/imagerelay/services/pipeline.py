import asyncio
import logging
from enum import Enum

from imagerelay.core.errors import ImageDecodeError, ImageRelayError, ThirdPartyPushError
from imagerelay.models.image import (
    EmojiPushResult,
    FetchedImage,
    FetchImageRequest,
    ImageUploadResponse,
    ProcessedImage,
    TextOnImageRequest,
)
from imagerelay.services.discord_service import DiscordEmojiClient
from imagerelay.services.fetch_service import ImageFetcher
from imagerelay.services.image_service import ImageProcessor, guess_image_type
from imagerelay.utils.storage import CONTENT_TYPE_EXTENSIONS, StorageClient
from imagerelay.utils.url import validate_image_url

logger = logging.getLogger(__name__)

class PipelineStage(str, Enum):
    VALIDATING_INPUT = "validating_input"
    FETCHING_IMAGE = "fetching_image"
    COMPOSITING_TEXT = "compositing_text"
    PREPARING_EMOJI = "preparing_emoji"
    UPLOADING = "uploading"
    PUSHING_EMOJI = "pushing_emoji"

class ImagePipeline:
    """
    One request, start to finish: validate, fetch, optionally composite,
    upload, optionally push to Discord. The first failure ends the run.
    """

    def __init__(
        self,
        fetcher: ImageFetcher,
        image_processor: ImageProcessor,
        storage_client: StorageClient,
        discord_client: DiscordEmojiClient,
        default_font_size: int = 40,
    ):
        self.fetcher = fetcher
        self.image_processor = image_processor
        self.storage_client = storage_client
        self.discord_client = discord_client
        self.default_font_size = default_font_size

    async def fetch_raw(self, url: str) -> FetchedImage:
        stage = PipelineStage.VALIDATING_INPUT
        try:
            valid_url = validate_image_url(url)
            stage = PipelineStage.FETCHING_IMAGE
            return await self.fetcher.fetch(valid_url)
        except ImageRelayError as e:
            self._log_failure(stage, e)
            raise

    async def fetch_and_store(self, request: FetchImageRequest) -> ImageUploadResponse:
        stage = PipelineStage.VALIDATING_INPUT
        try:
            valid_url = validate_image_url(request.url)

            stage = PipelineStage.FETCHING_IMAGE
            fetched = await self.fetcher.fetch(valid_url)

            if request.emoji:
                stage = PipelineStage.PREPARING_EMOJI
                emoji_bytes = await asyncio.to_thread(self.image_processor.prepare_emoji, fetched.content)
                processed = ProcessedImage(content=emoji_bytes, content_type="image/png")
                prefix = f"emoji/{request.server_id}"
            else:
                content_type = self._storable_type(fetched)
                processed = ProcessedImage(content=fetched.content, content_type=content_type)
                prefix = "images"

            stage = PipelineStage.UPLOADING
            stored = await self.storage_client.upload_image(processed.content, processed.content_type, prefix)
        except ImageRelayError as e:
            self._log_failure(stage, e)
            raise

        if not request.emoji:
            return ImageUploadResponse(message="Image uploaded successfully", r2_url=stored.public_url)

        discord_result = await self._push_emoji(request, processed)
        return ImageUploadResponse(
            message="Image uploaded successfully",
            r2_url=stored.public_url,
            discord=discord_result,
        )

    async def text_on_image(self, request: TextOnImageRequest) -> ImageUploadResponse:
        stage = PipelineStage.VALIDATING_INPUT
        try:
            valid_url = validate_image_url(request.image_url)

            stage = PipelineStage.FETCHING_IMAGE
            fetched = await self.fetcher.fetch(valid_url)

            stage = PipelineStage.COMPOSITING_TEXT
            jpeg_bytes = await asyncio.to_thread(
                self.image_processor.overlay_text,
                fetched.content,
                request.text,
                request.x,
                request.y,
                request.font_size or self.default_font_size,
                request.font_color,
            )
            processed = ProcessedImage(content=jpeg_bytes)

            stage = PipelineStage.UPLOADING
            stored = await self.storage_client.upload_image(processed.content, processed.content_type, "text-images")
        except ImageRelayError as e:
            self._log_failure(stage, e)
            raise

        return ImageUploadResponse(message="Image processed successfully", r2_url=stored.public_url)

    async def _push_emoji(self, request: FetchImageRequest, processed: ProcessedImage) -> EmojiPushResult:
        # The upload already succeeded, so a push failure is reported, not raised
        try:
            return await self.discord_client.create_emoji(
                server_id=request.server_id,
                bot_token=request.bot_token,
                name=request.emoji_name,
                image_bytes=processed.content,
                content_type=processed.content_type,
            )
        except ThirdPartyPushError as e:
            self._log_failure(PipelineStage.PUSHING_EMOJI, e)
            return EmojiPushResult(success=False, message=e.message, status=e.upstream_status)

    @staticmethod
    def _storable_type(fetched: FetchedImage) -> str:
        # Only raster types; image/svg+xml can carry script
        if fetched.content_type.lower() in CONTENT_TYPE_EXTENSIONS:
            return fetched.content_type.lower()
        # Some hosts serve images as application/octet-stream
        guessed = guess_image_type(fetched.content)
        if guessed is None:
            raise ImageDecodeError(f"Fetched content is not an image ({fetched.content_type})")
        return guessed

    @staticmethod
    def _log_failure(stage: PipelineStage, error: ImageRelayError) -> None:
        if error.status_code >= 500:
            logger.error(f"Pipeline failed at {stage.value}: {error.message}")
        else:
            logger.warning(f"Pipeline failed at {stage.value} ({error.status_code}): {error.message}")
