"""Outbound calls to Discord: resolving bearer tokens and posting or editing webhook messages.

Both collaborators are plain objects handed to the services through FastAPI
dependencies, so tests swap them with fakes via ``dependency_overrides``.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from maplist.core.config import get_settings
from maplist.core.errors import Unauthenticated, UpstreamUnavailable

logger = logging.getLogger(__name__)

PENDING_COLOR = 0x1E88E5
FAIL_COLOR = 0xB71C1C
ACCEPT_COLOR = 0x43A047


@dataclass
class UserProfile:
    id: int
    username: str


class DiscordIdentityProvider:
    def __init__(self, api_base: Optional[str] = None, timeout: Optional[float] = None) -> None:
        settings = get_settings()
        self.api_base = (api_base or settings.discord_api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout

    def get_user_profile(self, token: str) -> UserProfile:
        """Resolve a bearer token to the Discord account that owns it."""
        try:
            response = requests.get(
                f"{self.api_base}/users/@me",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise UpstreamUnavailable(f"Identity provider unreachable: {exc}") from exc

        if response.status_code == 401:
            raise Unauthenticated("Invalid or expired token")
        if response.status_code >= 500:
            raise UpstreamUnavailable(f"Identity provider returned {response.status_code}")
        if not response.ok:
            raise Unauthenticated(f"Identity provider rejected the token ({response.status_code})")

        data = response.json()
        logger.debug("Resolved Discord user %s", data.get("id"))
        return UserProfile(id=int(data["id"]), username=data.get("username", ""))


class DiscordWebhookNotifier:
    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout if timeout is not None else get_settings().http_timeout

    def update_message(self, webhook_url: str, message_id: str, payload: dict[str, Any], fail: bool = False) -> bool:
        """Recolour a submission message. Never raises; returns whether Discord accepted the edit."""
        payload = copy.deepcopy(payload)
        embeds = payload.get("embeds") or []
        if embeds:
            embeds[0]["color"] = FAIL_COLOR if fail else ACCEPT_COLOR

        try:
            response = requests.patch(
                f"{webhook_url.rstrip('/')}/messages/{message_id}",
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.warning("Webhook update failed for message %s: %s", message_id, exc)
            return False

        if not response.ok:
            logger.warning("Webhook update for message %s returned %s", message_id, response.status_code)
            return False
        return True

    def post_message(self, webhook_url: str, payload: dict[str, Any]) -> Optional[str]:
        """Post a submission message. Never raises; returns the new message's id, if any."""
        try:
            response = requests.post(
                webhook_url,
                params={"wait": "true"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.warning("Webhook post failed: %s", exc)
            return None

        if not response.ok:
            logger.warning("Webhook post returned %s", response.status_code)
            return None
        try:
            return str(response.json()["id"])
        except (ValueError, KeyError, TypeError):
            logger.warning("Webhook post returned no message id")
            return None
