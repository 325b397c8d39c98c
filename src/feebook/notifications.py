"""Push notifications via ntfy."""

import base64
import logging
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger("feebook.notifications")


def send_ntfy(
    config: "Config",
    message: str,
    title: str | None = None,
    priority: int | None = None,
    tags: str | None = None,
    topic: str | None = None,
) -> bool:
    """Send a notification via ntfy. Returns True on success."""
    if not config.ntfy.enabled:
        logger.warning("ntfy not configured for notifications")
        return False

    topic = topic or config.ntfy.topic
    if not topic:
        logger.warning("No ntfy topic configured")
        return False

    url = f"{config.ntfy.server_url.rstrip('/')}/{topic}"
    headers = {}
    if config.ntfy.token:
        headers["Authorization"] = f"Bearer {config.ntfy.token}"
    elif config.ntfy.username:
        credentials = base64.b64encode(
            f"{config.ntfy.username}:{config.ntfy.password}".encode()
        ).decode()
        headers["Authorization"] = f"Basic {credentials}"
    if title:
        headers["Title"] = title
    headers["Priority"] = str(priority if priority is not None else config.ntfy.priority)
    if tags:
        headers["Tags"] = tags

    try:
        response = httpx.post(url, content=message, headers=headers, timeout=10)
        response.raise_for_status()
        return True
    except httpx.HTTPError as e:
        logger.error("Failed to send ntfy notification: %s", e)
        return False
