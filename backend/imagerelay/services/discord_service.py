import base64
import logging
from typing import Optional

import httpx

from imagerelay.core.config import Settings
from imagerelay.core.errors import ThirdPartyPushError
from imagerelay.models.image import EmojiPushResult

logger = logging.getLogger(__name__)

class DiscordEmojiClient:
    BODY_SNIPPET_CHARS = 300

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_base_url = settings.DISCORD_API_BASE_URL.rstrip("/")
        self.timeout = httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS)
        self.transport = transport

    async def create_emoji(
        self,
        server_id: str,
        bot_token: str,
        name: str,
        image_bytes: bytes,
        content_type: str = "image/png",
    ) -> EmojiPushResult:
        """
        Create a custom emoji in the given guild.
        Raises ThirdPartyPushError on any non-2xx or transport failure.
        """
        url = f"{self.api_base_url}/guilds/{server_id}/emojis"
        image_b64 = base64.b64encode(image_bytes).decode("ascii")
        payload = {
            "name": name,
            "image": f"data:{content_type};base64,{image_b64}",
            "roles": [],
        }
        headers = {"Authorization": f"Bot {bot_token}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Discord emoji push to guild {server_id} failed: {e}")
            raise ThirdPartyPushError(f"Failed to reach Discord: {e}") from e

        if not response.is_success:
            message = self._error_message(response)
            logger.warning(
                "Discord rejected emoji '%s' for guild %s. status=%d message=%s",
                name,
                server_id,
                response.status_code,
                message,
            )
            raise ThirdPartyPushError(
                f"Discord API error {response.status_code}: {message}",
                upstream_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        emoji_id = data.get("id") if isinstance(data, dict) else None
        logger.info(f"Created Discord emoji '{name}' ({emoji_id}) in guild {server_id}")
        return EmojiPushResult(
            success=True,
            message="Emoji uploaded to Discord",
            emoji_id=str(emoji_id) if emoji_id is not None else None,
            status=response.status_code,
        )

    def _error_message(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:self.BODY_SNIPPET_CHARS]
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return response.text[:self.BODY_SNIPPET_CHARS]
