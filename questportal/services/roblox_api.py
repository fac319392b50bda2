import logging
from typing import Optional

import httpx

from questportal.core.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class RobloxAPI:
    """Player identity and gamepass lookups against the public Roblox APIs.

    ``is_valid_player`` and ``has_vip_gamepass`` never raise: transport
    failures are retried ``retries`` extra times, logged, and reported as
    ``False``.
    """

    def __init__(
        self,
        client: httpx.Client,
        vip_gamepass_id: int,
        users_url: str = "https://users.roblox.com/v1/usernames/users",
        inventory_url: str = "https://inventory.roblox.com/v1/users/{user_id}/items/GamePass/{gamepass_id}",
        retries: int = 1,
    ) -> None:
        self.client = client
        self.vip_gamepass_id = vip_gamepass_id
        self.users_url = users_url
        self.inventory_url = inventory_url
        self.retries = retries

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            try:
                response = self.client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                last_error = e
                logger.warning("Roblox request %s %s failed (attempt %s): %s", method, url, attempt + 1, e)
                continue
            if response.status_code >= 500 or response.status_code == 429:
                last_error = httpx.HTTPStatusError(
                    f"upstream status {response.status_code}", request=response.request, response=response
                )
                logger.warning("Roblox request %s %s returned %s (attempt %s)", method, url, response.status_code, attempt + 1)
                continue
            return response
        raise UpstreamUnavailableError(f"Roblox API unavailable: {last_error}")

    def get_user_id(self, username: str) -> Optional[int]:
        response = self._request(
            "POST",
            self.users_url,
            json={"usernames": [username], "excludeBannedUsers": True},
        )
        if response.status_code != 200:
            logger.warning("[get_user_id] Failed: %s - %s", response.status_code, response.text)
            return None
        data = response.json().get("data", [])
        if not data:
            return None
        return data[0].get("id")

    def user_owns_gamepass(self, user_id: int, gamepass_id: int) -> bool:
        url = self.inventory_url.format(user_id=user_id, gamepass_id=gamepass_id)
        response = self._request("GET", url)
        if response.status_code == 200:
            return len(response.json().get("data", [])) > 0
        # 404 and friends mean "not owned"
        return False

    def is_valid_player(self, username: str) -> bool:
        try:
            return self.get_user_id(username) is not None
        except (UpstreamUnavailableError, ValueError) as e:
            logger.error("Could not validate Roblox username %s: %s", username, e)
            return False

    def has_vip_gamepass(self, username: str) -> bool:
        try:
            user_id = self.get_user_id(username)
            if user_id is None:
                logger.info("Could not find Roblox user ID for username: %s", username)
                return False
            return self.user_owns_gamepass(user_id, self.vip_gamepass_id)
        except (UpstreamUnavailableError, ValueError) as e:
            logger.error("Error checking gamepass ownership for %s: %s", username, e)
            return False

    def close(self) -> None:
        self.client.close()
