"""
Async client for the vendor's release feed.

The feed is a single XML document listing every published release together
with its per-platform downloads:

    <content version="1">
      <item>
        <name>Android Studio Ladybug | 2024.2.1 Patch 2</name>
        <build>AI-242.23339.11.2421.12550806</build>
        <version>2024.2.1.12</version>
        <channel>Release</channel>
        ...
        <download><link/><size/><checksum/></download>
      </item>
    </content>
"""

import asyncio
import logging
import time
from typing import Any

import aiohttp
from bs4 import BeautifulSoup, Tag
from pydantic import ValidationError

from astudios import __version__
from astudios.exceptions import FeedParseError, NetworkError
from astudios.models.config import FEED_URL
from astudios.models.release import Release

log = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("version", "build", "channel")


def _child_text(item: Tag, name: str) -> str:
    child = item.find(name, recursive=False)
    return child.get_text(strip=True) if child else ""


class FeedClient:
    """
    Fetches and parses the release feed.

    Every request carries explicit connect and read timeouts so a stalled
    server surfaces as a `NetworkError` instead of hanging the command.
    """

    def __init__(
        self,
        feed_url: str = FEED_URL,
        connect_timeout: float = 15,
        read_timeout: float = 90,
    ):
        self.feed_url = feed_url
        self._timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=connect_timeout, sock_read=read_timeout
        )

    async def fetch_text(self) -> str:
        """Downloads the raw feed document."""
        log.debug(f"Fetching release feed from {self.feed_url}")
        start_time = time.monotonic()
        try:
            async with aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": f"astudios/{__version__}"},
            ) as session:
                async with session.get(self.feed_url) as response:
                    response.raise_for_status()
                    try:
                        text = await response.text()
                    except UnicodeDecodeError as e:
                        raise FeedParseError(
                            f"The release feed is not valid text: {e}"
                        ) from e
        except aiohttp.ClientResponseError as e:
            raise NetworkError(
                f"Release feed request failed with HTTP {e.status}: {e.message}",
                url=self.feed_url,
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(
                f"Could not reach the release feed: {e or type(e).__name__}",
                url=self.feed_url,
            ) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        log.debug(f"Fetched {len(text)} bytes of feed in {duration_ms:.0f}ms")
        return text

    async def fetch_releases(self) -> list[Release]:
        """Downloads the feed and parses it into releases."""
        text = await self.fetch_text()
        return self.parse(text)

    @staticmethod
    def parse(text: str) -> list[Release]:
        """
        Parses the feed document.

        Raises:
            FeedParseError: If the document is not a feed, holds no items, or an
            item is missing a required field.
        """
        if not text or not text.strip():
            raise FeedParseError("The release feed is empty.")

        soup = BeautifulSoup(text, "xml")
        items = soup.find_all("item")
        if not items:
            raise FeedParseError("The release feed contains no <item> entries.")

        releases: list[Release] = []
        for index, item in enumerate(items, start=1):
            data = FeedClient._item_to_dict(item)
            missing = [field for field in _REQUIRED_FIELDS if not data.get(field)]
            if missing:
                raise FeedParseError(
                    f"Feed item #{index} is missing required field(s): "
                    f"{', '.join(missing)}."
                )
            try:
                releases.append(Release.model_validate(data))
            except ValidationError as e:
                raise FeedParseError(f"Feed item #{index} is invalid: {e}") from e

        log.debug(f"Parsed {len(releases)} releases from feed.")
        return releases

    @staticmethod
    def _item_to_dict(item: Tag) -> dict[str, Any]:
        downloads = []
        for node in item.find_all("download", recursive=False):
            link = _child_text(node, "link")
            if not link:
                continue
            downloads.append(
                {
                    "url": link,
                    "size": _child_text(node, "size"),
                    "checksum": _child_text(node, "checksum") or None,
                }
            )
        return {
            "name": _child_text(item, "name"),
            "build": _child_text(item, "build"),
            "version": _child_text(item, "version"),
            "channel": _child_text(item, "channel"),
            "date": _child_text(item, "date"),
            "platform_build": _child_text(item, "platformBuild"),
            "platform_version": _child_text(item, "platformVersion"),
            "downloads": downloads,
        }
