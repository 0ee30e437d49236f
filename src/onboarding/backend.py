"""
Onboarding Backend.

Client side of the onboarding endpoints. The pipeline and persistence layer
only see the abstract OnboardingBackend, so tests swap in an in-memory fake.
"""

import logging
from abc import ABC, abstractmethod

import httpx

from .errors import error_from_exception, error_from_response
from .payload import SavedSelections, SaveRequest
from .state import Profile

logger = logging.getLogger(__name__)


class OnboardingBackend(ABC):
    """Server operations the client state machine depends on."""

    @abstractmethod
    async def fetch_profile(self) -> Profile:
        """Read the current user's profile. Raises OnboardingError."""

    @abstractmethod
    async def save_step(self, request: SaveRequest) -> Profile:
        """
        Persist one step. Raises OnboardingError.

        Returns the profile as stored once the write has committed, read back
        the same way `fetch_profile` reads it. Callers publish it in place of
        a second fetch.
        """

    @abstractmethod
    async def fetch_selections(self) -> SavedSelections:
        """Read saved selections for hydration. Raises OnboardingError."""


class HttpOnboardingBackend(OnboardingBackend):
    """
    Backend over the onboarding HTTP API.

    Every request carries the user's bearer token. Failures surface as
    OnboardingError, whether the server answered or not.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _request(self, method: str, path: str, json: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, json=json, headers=self._headers)
        except Exception as e:
            raise error_from_exception(e) from e

        if not response.is_success:
            error = error_from_response(response)
            logger.warning(f"{method} {path} failed: {error!r}")
            raise error
        return response.json()

    async def fetch_profile(self) -> Profile:
        data = await self._request("GET", "/onboarding/profile")
        return Profile.from_row(data)

    async def save_step(self, request: SaveRequest) -> Profile:
        data = await self._request("POST", "/onboarding/save", json=request.to_body())
        return Profile.from_row(data)

    async def fetch_selections(self) -> SavedSelections:
        data = await self._request("GET", "/onboarding/selections")
        return SavedSelections.from_dict(data)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
