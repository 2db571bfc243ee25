"""
Creature lookups against PokéAPI.

``PokeApiResolver.resolve`` never raises: any network, status, parse or
missing-field failure turns into a placeholder ``Item`` so the renderer always
gets something it can draw.
"""
import logging
import time
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

IMAGE_STYLES = ("gen1", "modern", "simplified")

# 1x1 grey PNG shown when no artwork is available
PLACEHOLDER_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
PLACEHOLDER_IMAGE = f"data:image/png;base64,{PLACEHOLDER_BASE64}"


@dataclass(frozen=True)
class Item:
    id: int
    name: str
    image_url: str
    fallback: bool = False


def fallback_item(item_id: int) -> Item:
    return Item(id=item_id, name=f"MissingNo ({item_id})", image_url=PLACEHOLDER_IMAGE, fallback=True)


def pick_image_url(sprites: dict, style: str):
    """Select the artwork for ``style``, falling back to the default front sprite."""
    if style == "gen1":
        url = sprites["versions"]["generation-i"]["red-blue"]["front_default"]
    elif style == "simplified":
        url = sprites["front_default"]
    else:
        url = sprites["other"]["official-artwork"]["front_default"]
    if not isinstance(url, str) or not url:
        url = sprites.get("front_default")
    return url


def display_name(raw, item_id: int) -> str:
    if not raw:
        return f"#{item_id}"
    if not isinstance(raw, str):
        raise TypeError(f"name is {type(raw).__name__}, not str")
    return raw[0].upper() + raw[1:]


class ItemCache:
    """Keeps successful lookups for ``seconds``."""

    def __init__(self, seconds=3600, clock=time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._entries = {}

    def get(self, key):
        entry = self._entries.get(key)
        if entry is None:
            return None
        item, expires = entry
        if self._clock() > expires:
            del self._entries[key]
            return None
        return item

    def put(self, key, item: Item):
        self._entries[key] = (item, self._clock() + self.seconds)

    def __len__(self):
        return len(self._entries)


class PokeApiResolver:
    """Resolves creature ids to display data through a shared httpx client."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, cache: ItemCache | None = None):
        self._client = http_client
        self.base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else ItemCache()

    async def resolve(self, item_id: int, style: str = "modern") -> Item:
        key = (item_id, style)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        url = f"{self.base_url}/pokemon/{item_id}"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            data = response.json()
            image_url = pick_image_url(data["sprites"], style)
            if not image_url:
                raise KeyError("no image for any style")
            if not isinstance(image_url, str):
                raise TypeError(f"image is {type(image_url).__name__}, not str")
            item = Item(id=item_id, name=display_name(data.get("name"), item_id), image_url=image_url)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Lookup for #{item_id} ({style}) failed, using placeholder: {e!r}")
            return fallback_item(item_id)

        self.cache.put(key, item)
        logger.debug(f"Resolved #{item_id} ({style}) as {item.name}")
        return item
