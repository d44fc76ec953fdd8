"""On-chain asset image lookup."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
import asyncio
import json
import logging

import aiohttp

from ..core.enums import ImageSource
from ..core.errors import AssetLookupError
from ..events.extractor import get_field, get_path

logger = logging.getLogger(__name__)


class AssetImageResolver(ABC):
    """Resolves a token's image from on-chain metadata."""

    @abstractmethod
    async def resolve_image(self, token: str) -> Tuple[str, ImageSource]:
        """Return ``(url, source)``; ``("", ImageSource.NONE)`` when there is no image.

        Raises :class:`AssetLookupError` when the lookup itself fails.
        """
        pass

    async def resolve_image_url(self, token: str) -> str:
        url, _ = await self.resolve_image(token)
        return url

    async def close(self):
        pass


class HeliusAssetResolver(AssetImageResolver):
    """Helius DAS ``getAsset`` lookup over JSON-RPC.

    Image preference: the first ``content.files[*].uri`` whose mime type is an
    image (or missing), then ``content.links.image``.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, session: Optional[aiohttp.ClientSession] = None):
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        self._session = session
        self._owns_session = session is None
        logger.info(f"Helius asset resolver initialized (key configured: {bool(self.config['api_key'])})")

    @staticmethod
    def _default_config() -> Dict[str, Any]:
        return {
            "api_key": "",
            "rpc_url": "https://mainnet.helius-rpc.com/",
            "timeout": 10,
            "max_retries": 3,
            "backoff_base": 1.0,
        }

    @property
    def endpoint(self) -> str:
        return f"{self.config['rpc_url']}?api-key={self.config['api_key']}"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config["timeout"])
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the HTTP session if this resolver created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def resolve_image(self, token: str) -> Tuple[str, ImageSource]:
        if not self.config["api_key"]:
            raise AssetLookupError("Helius API key is not configured")

        response = await self._rpc("getAsset", {"id": token})
        content = get_path(response, ("result", "content"), dict)
        if not content.present:
            logger.warning(f"Helius getAsset response for {token} has no content")
            return "", ImageSource.NONE

        files = get_field(content.value, "files", list)
        if files.present:
            for entry in files.value:
                uri = get_field(entry, "uri", str)
                mime = get_field(entry, "mime", str)
                mime_value = mime.value if mime.present else ""
                if uri.present and uri.value and (mime_value == "" or mime_value.startswith("image/")):
                    logger.debug(f"Found image in content.files for {token}: {uri.value}")
                    return uri.value, ImageSource.ASSET_FILES

        image = get_path(content.value, ("links", "image"), str)
        if image.present and image.value:
            logger.debug(f"Found image in content.links for {token}: {image.value}")
            return image.value, ImageSource.ASSET_LINKS

        return "", ImageSource.NONE

    async def _rpc(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        max_retries = max(1, int(self.config["max_retries"]))
        last_error = ""

        for attempt in range(max_retries):
            session = await self._get_session()
            try:
                async with session.post(self.endpoint, json=payload) as response:
                    body = await response.text()
                    if 200 <= response.status < 300:
                        return self._decode(method, body)
                    last_error = f"status {response.status}"
                    logger.warning(f"Helius {method} returned {response.status} (attempt {attempt + 1}/{max_retries})")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = repr(e)
                logger.warning(f"Helius {method} request failed (attempt {attempt + 1}/{max_retries}): {e!r}")

            if attempt < max_retries - 1:
                await asyncio.sleep(self.config["backoff_base"] * (2 ** attempt))

        raise AssetLookupError(f"Helius {method} failed after {max_retries} attempts: {last_error}")

    def _decode(self, method: str, body: str) -> Dict[str, Any]:
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise AssetLookupError(f"Failed to parse Helius {method} response: {e}") from e
        if not isinstance(data, dict):
            raise AssetLookupError(f"Unexpected Helius {method} response: {type(data).__name__}")
        if "error" in data:
            error = data["error"]
            if isinstance(error, dict):
                raise AssetLookupError(
                    f"Helius API error: code={error.get('code')}, message={error.get('message')}"
                )
            raise AssetLookupError(f"Helius API error: {error}")
        return data
