"""
HTTP client for the solved.ac v3 API.

Every request retries transient failures (network errors, 429, 5xx) with
linear backoff; client errors (other 4xx) fail immediately.
"""
import logging
import time
from typing import Any, Callable, List, Optional

import requests
from pydantic import BaseModel, ValidationError

from config.settings import Settings, settings as default_settings
from leaderboard.cache.core import DataCategory
from leaderboard.cache.ttl_policies import CATEGORY_ENDPOINTS
from leaderboard.schemas import Organization, Top100Response, UserAdditionalInfo, UserInfo
from leaderboard.utils.validation import is_valid_handle

logger = logging.getLogger("api.solvedac")


class SolvedACError(Exception):
    """Base error for failed solved.ac calls."""


class InvalidHandleError(SolvedACError, ValueError):
    """The handle is malformed; no request was sent."""

    def __init__(self, handle: str):
        super().__init__(f"Invalid handle format: {handle!r}")
        self.handle = handle


class RateLimitedError(SolvedACError):
    """solved.ac answered 429 Too Many Requests."""


class UpstreamStatusError(SolvedACError):
    """solved.ac answered with a non-200 status."""

    def __init__(self, status_code: int, message: str = ""):
        super().__init__(message or f"API returned status code {status_code}")
        self.status_code = status_code


class ResponseParseError(SolvedACError):
    """The response body was not the expected JSON shape."""


class SolvedACClient:
    """
    Thin solved.ac client: one method per cached category.

    ``on_response_time`` is called with the latency (seconds) of every
    attempt. Attempts that never got an HTTP response report the full
    timeout, so a burst of connection failures reads as slow, not fast.
    """

    def __init__(
        self,
        base_url: str = "https://solved.ac/api/v3",
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        rate_limit_multiplier: int = 2,
        session: Optional[requests.Session] = None,
        on_response_time: Optional[Callable[[float], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries <= 0:
            raise ValueError("max_retries must be positive")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.rate_limit_multiplier = rate_limit_multiplier
        self.on_response_time = on_response_time
        self._session = session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")
        self._sleep = sleep
        logger.debug(f"Created solved.ac client for {self.base_url}")

    @classmethod
    def from_settings(
        cls,
        config: Optional[Settings] = None,
        **kwargs: Any,
    ) -> "SolvedACClient":
        config = config or default_settings
        return cls(
            base_url=config.solvedac_base_url,
            timeout=config.api_timeout_seconds,
            max_retries=config.api_max_retries,
            retry_delay=config.api_retry_delay_seconds,
            rate_limit_multiplier=config.api_rate_limit_multiplier,
            **kwargs,
        )

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_user_info(self, handle: str) -> UserInfo:
        data = self._get(DataCategory.USER_INFO, handle, "user info")
        info = self._parse(UserInfo, data, "user info", handle)
        logger.debug(f"Fetched user info for {handle} (tier: {info.tier}, rating: {info.rating})")
        return info

    def get_user_top100(self, handle: str) -> Top100Response:
        data = self._get(DataCategory.USER_TOP100, handle, "top 100")
        top100 = self._parse(Top100Response, data, "top 100", handle)
        logger.debug(f"Fetched {top100.count} top problems for {handle}")
        return top100

    def get_user_additional_info(self, handle: str) -> UserAdditionalInfo:
        data = self._get(DataCategory.USER_ADDITIONAL, handle, "additional info")
        return self._parse(UserAdditionalInfo, data, "additional info", handle)

    def get_user_organizations(self, handle: str) -> List[Organization]:
        data = self._get(DataCategory.USER_ORGANIZATIONS, handle, "user organizations")
        if not isinstance(data, list):
            raise ResponseParseError(f"Expected a list of organizations for {handle}")
        return [self._parse(Organization, item, "user organizations", handle) for item in data]

    def fetch(self, category: DataCategory, handle: str) -> Any:
        """Dispatch to the endpoint method for ``category``."""
        fetchers = {
            DataCategory.USER_INFO: self.get_user_info,
            DataCategory.USER_TOP100: self.get_user_top100,
            DataCategory.USER_ADDITIONAL: self.get_user_additional_info,
            DataCategory.USER_ORGANIZATIONS: self.get_user_organizations,
        }
        return fetchers[category](handle)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get(self, category: DataCategory, handle: str, request_type: str) -> Any:
        if not is_valid_handle(handle):
            raise InvalidHandleError(handle)

        url = f"{self.base_url}/{CATEGORY_ENDPOINTS[category]}"
        last_error: Optional[SolvedACError] = None

        for attempt in range(self.max_retries):
            if attempt > 0:
                logger.debug(
                    f"Retrying {request_type} fetch for {handle} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                self._sleep(self.retry_delay * attempt)

            started = time.perf_counter()
            try:
                response = self._session.get(
                    url,
                    params={"handle": handle},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                self._report(self.timeout)
                last_error = SolvedACError(f"{request_type} request failed: {e}")
                logger.warning(f"Attempt {attempt + 1} failed for {request_type} {handle}: {e}")
                continue
            self._report(time.perf_counter() - started)

            if response.status_code == 429:
                last_error = RateLimitedError("Request limit exceeded")
                logger.warning(f"Rate limited for {request_type} {handle}, attempt {attempt + 1}")
                self._sleep(self.retry_delay * self.rate_limit_multiplier)
                continue

            if response.status_code != 200:
                last_error = UpstreamStatusError(response.status_code)
                logger.warning(
                    f"API returned {response.status_code} for {request_type} {handle}"
                )
                if response.status_code >= 500:
                    continue
                break

            try:
                return response.json()
            except ValueError as e:
                raise ResponseParseError(f"Invalid JSON for {request_type} {handle}: {e}") from e

        logger.error(
            f"Failed to fetch {request_type} for {handle} after "
            f"{self.max_retries} attempts: {last_error}"
        )
        raise last_error

    def _report(self, seconds: float) -> None:
        if self.on_response_time is not None:
            self.on_response_time(seconds)

    @staticmethod
    def _parse(model: type, data: Any, request_type: str, handle: str) -> BaseModel:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Failed to parse {request_type} for {handle}: {e}")
            raise ResponseParseError(f"Failed to parse {request_type} for {handle}") from e
