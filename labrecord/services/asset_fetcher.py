"""
Best-effort download of the images embedded in generated documents:
the college logo and one QR code per experiment link.

Nothing in here raises on network trouble; a missing image just leaves a
blank slot in the document.
"""
import asyncio
import logging
from typing import Dict, Iterable, Optional

import httpx

from labrecord.core import config

logger = logging.getLogger(__name__)

QR_SIZE = "150x150"


async def _get_bytes(client: httpx.AsyncClient, url: str, params: Optional[dict] = None) -> Optional[bytes]:
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
        return response.content
    except httpx.HTTPError as e:
        logger.warning(f"Asset fetch failed: url={url}, error={e}")
        return None


async def fetch_logo(client: Optional[httpx.AsyncClient] = None) -> Optional[bytes]:
    """Fetch the college logo, or None if it can't be downloaded."""
    if not config.LOGO_URL:
        return None
    if client is None:
        async with httpx.AsyncClient(timeout=config.ASSET_FETCH_TIMEOUT, follow_redirects=True) as own_client:
            return await _get_bytes(own_client, config.LOGO_URL)
    return await _get_bytes(client, config.LOGO_URL)


async def fetch_qr_code(client: httpx.AsyncClient, link: str) -> Optional[bytes]:
    return await _get_bytes(client, config.QR_SERVICE_URL, params={"size": QR_SIZE, "data": link})


async def fetch_qr_codes(experiments: Iterable, client: Optional[httpx.AsyncClient] = None) -> Dict[str, bytes]:
    """
    Fetch QR codes for every experiment with a link, concurrently.

    Returns:
        Mapping of experiment id to PNG bytes; experiments whose fetch failed are absent
    """
    targets = [exp for exp in experiments if exp.github_link]
    if not targets:
        return {}

    async def run(active_client: httpx.AsyncClient) -> Dict[str, bytes]:
        images = await asyncio.gather(*(fetch_qr_code(active_client, exp.github_link) for exp in targets))
        return {exp.id: image for exp, image in zip(targets, images) if image}

    if client is None:
        async with httpx.AsyncClient(timeout=config.ASSET_FETCH_TIMEOUT, follow_redirects=True) as own_client:
            return await run(own_client)
    return await run(client)
