import logging
from typing import Type, TypeVar

import pydantic
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response

from imagerelay.core.config import settings
from imagerelay.core.errors import ImageRelayError, ValidationError
from imagerelay.models.image import FetchImageRequest, RequestModel, TextOnImageRequest
from imagerelay.services.discord_service import DiscordEmojiClient
from imagerelay.services.fetch_service import ImageFetcher
from imagerelay.services.image_service import ImageProcessor, guess_image_type
from imagerelay.services.pipeline import ImagePipeline
from imagerelay.utils.storage import CONTENT_TYPE_EXTENSIONS, StorageClient, build_storage_client

logger = logging.getLogger(__name__)
router = APIRouter()

ModelT = TypeVar("ModelT", bound=RequestModel)

def get_image_fetcher():
    return ImageFetcher(settings)

def get_image_processor():
    return ImageProcessor(jpeg_quality=settings.JPEG_QUALITY, emoji_size=settings.EMOJI_SIZE)

def get_storage_client():
    return build_storage_client(settings)

def get_discord_client():
    return DiscordEmojiClient(settings)

def get_pipeline(
    fetcher: ImageFetcher = Depends(get_image_fetcher),
    image_processor: ImageProcessor = Depends(get_image_processor),
    storage_client: StorageClient = Depends(get_storage_client),
    discord_client: DiscordEmojiClient = Depends(get_discord_client),
) -> ImagePipeline:
    return ImagePipeline(
        fetcher=fetcher,
        image_processor=image_processor,
        storage_client=storage_client,
        discord_client=discord_client,
        default_font_size=settings.DEFAULT_FONT_SIZE,
    )

async def _read_body(request: Request) -> dict:
    """
    Accept either a JSON object or form fields (urlencoded or multipart).
    """
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            data = await request.json()
        else:
            form = await request.form()
            data = {key: value for key, value in form.items() if isinstance(value, str)}
    except Exception as e:
        logger.warning(f"Error parsing request body: {e}")
        raise ValidationError("Bad Request: Unable to parse request body")

    if not isinstance(data, dict):
        raise ValidationError("Bad Request: expected an object of fields")
    return data

def _parse_request(model_cls: Type[ModelT], data: dict) -> ModelT:
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as e:
        problems = []
        for err in e.errors():
            location = ".".join(str(part) for part in err.get("loc", ()))
            problems.append(f"{location}: {err['msg']}" if location else err["msg"])
        raise ValidationError("; ".join(problems))

def _to_http_exception(error: ImageRelayError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)

@router.get("/fetch-image")
async def fetch_image_raw(
    url: str = Query(..., min_length=1),
    pipeline: ImagePipeline = Depends(get_pipeline),
):
    """
    Proxy the remote image back to the caller unchanged.
    """
    logger.info("Request received: GET /fetch-image")
    try:
        fetched = await pipeline.fetch_raw(url)
    except ImageRelayError as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching image: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal Server Error"
        )

    # Only known raster types are served inline
    media_type = fetched.content_type.lower()
    if media_type not in CONTENT_TYPE_EXTENSIONS:
        media_type = guess_image_type(fetched.content) or "application/octet-stream"
    return Response(content=fetched.content, media_type=media_type)

@router.post("/fetch-image")
async def fetch_image(
    request: Request,
    pipeline: ImagePipeline = Depends(get_pipeline),
):
    """
    Fetch a remote image and store it. With emoji=true the image is resized
    to an emoji and pushed to the Discord guild as well.
    """
    logger.info("Request received: POST /fetch-image")
    try:
        image_request = _parse_request(FetchImageRequest, await _read_body(request))
        result = await pipeline.fetch_and_store(image_request)
        return result.model_dump(by_alias=True, exclude_none=True)
    except ImageRelayError as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Error processing image: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process image"
        )

@router.post("/text-on-image")
async def text_on_image(
    request: Request,
    pipeline: ImagePipeline = Depends(get_pipeline),
):
    """
    Fetch a remote image, draw outlined text on it and store the JPEG result.
    """
    logger.info("Request received: POST /text-on-image")
    try:
        image_request = _parse_request(TextOnImageRequest, await _read_body(request))
        result = await pipeline.text_on_image(image_request)
        return result.model_dump(by_alias=True, exclude_none=True)
    except ImageRelayError as e:
        raise _to_http_exception(e)
    except Exception as e:
        logger.error(f"Error processing image: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process image"
        )
