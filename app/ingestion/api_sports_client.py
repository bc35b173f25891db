"""HTTP client for the api-sports.io football and rugby APIs."""

from __future__ import annotations

import logging
import time
from datetime import date, timedelta
from typing import Any

import requests

from app.ingestion.adapters import VendorAdapter, adapter_for_sport
from app.ingestion.schema import ExternalMatch
from app.settings import RUGBY, vendor_credentials

logger = logging.getLogger(__name__)
DEFAULT_TIMEOUT_SECONDS = 15
DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_SECONDS = 1.0
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class VendorRequestError(RuntimeError):
    pass


def _retry_after_seconds(response: requests.Response | None) -> float | None:
    if response is None:
        return None
    raw = response.headers.get("Retry-After") if response.headers else None
    if not raw:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


def _has_vendor_errors(payload: dict[str, Any]) -> bool:
    errors = payload.get("errors")
    return bool(errors) and isinstance(errors, (dict, list))


class ApiSportsClient:
    """Fetches raw payloads and hands them to the sport's adapter.

    Every public method returns an empty result when the vendor keeps failing;
    the sync treats that as a smaller batch rather than an error.
    """

    def __init__(
        self,
        adapter: VendorAdapter,
        api_key: str | None,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        retries: int = DEFAULT_RETRIES,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.adapter = adapter
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.session = session or requests.Session()

    @property
    def _primary_path(self) -> str:
        return "/games" if self.adapter.sport == RUGBY else "/fixtures"

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            raise VendorRequestError(f"Missing API key for {self.adapter.sport}")

        url = f"{self.base_url}{path}"
        headers = {"x-apisports-key": self.api_key, "Accept": "application/json"}
        last_error = ""
        for attempt in range(self.retries + 1):
            response = None
            try:
                response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            except requests.RequestException as exc:
                last_error = f"network error: {exc}"
            else:
                if response.status_code in RETRYABLE_STATUS_CODES:
                    last_error = f"HTTP {response.status_code}"
                elif response.status_code >= 400:
                    raise VendorRequestError(
                        f"HTTP {response.status_code} from {url}: {response.text[:500]}"
                    )
                else:
                    try:
                        payload = response.json()
                    except ValueError as exc:
                        raise VendorRequestError(f"Non-JSON response from {url}") from exc
                    if not isinstance(payload, dict):
                        raise VendorRequestError(f"Unexpected payload type from {url}")
                    if _has_vendor_errors(payload):
                        raise VendorRequestError(f"Vendor errors from {url}: {payload.get('errors')}")
                    return payload

            if attempt >= self.retries:
                break
            delay = _retry_after_seconds(response)
            if delay is None:
                delay = self.backoff_seconds * (2 ** attempt)
            logger.warning(
                "api-sports request failed (%s), retrying in %.1fs (attempt %s/%s) url=%s",
                last_error,
                delay,
                attempt + 1,
                self.retries,
                url,
            )
            time.sleep(delay)

        raise VendorRequestError(f"Request to {url} failed after retries: {last_error}")

    def _fetch(self, params: dict[str, Any]) -> list[ExternalMatch]:
        paths = [self._primary_path]
        if self.adapter.sport == RUGBY:
            paths.append("/fixtures")
        for path in paths:
            try:
                payload = self._get(path, params)
            except VendorRequestError as exc:
                logger.warning("%s %s failed: %s", self.adapter.sport, path, exc)
                continue
            return self.adapter.normalize(payload)
        return []

    def get_live_matches(self) -> list[ExternalMatch]:
        return self._fetch({"live": "all"})

    def get_matches_by_date_range(self, start: date, end: date) -> list[ExternalMatch]:
        matches: list[ExternalMatch] = []
        day = start
        while day <= end:
            matches.extend(self._fetch({"date": day.isoformat()}))
            day += timedelta(days=1)
        return matches

    def get_match_by_id(self, match_id: str) -> ExternalMatch | None:
        matches = self._fetch({"id": match_id})
        for match in matches:
            if match.id == str(match_id):
                return match
        return None


def build_client(sport: str) -> ApiSportsClient:
    api_key, base_url = vendor_credentials(sport)
    if not api_key:
        logger.warning("No API key configured for %s; vendor calls will return nothing.", sport)
    return ApiSportsClient(adapter_for_sport(sport), api_key, base_url)
