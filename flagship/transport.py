from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests

from flagship.errors import TransportError

CONFIG_PATH = "/v1/feature/config"
UPDATED_AT_HEADER = "updated-at"


@dataclass(frozen=True)
class FetchResponse:
    body: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def updated_at(self) -> Optional[str]:
        for name, value in self.headers.items():
            if name.lower() == UPDATED_AT_HEADER:
                return value
        return None


class FlagFetcher(Protocol):
    def fetch(self) -> FetchResponse: ...


class HttpFlagFetcher:
    def __init__(self, base_url: str, api_key: str, timeout: float = 2.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch(self) -> FetchResponse:
        url = f"{self.base_url}{CONFIG_PATH}"
        params = {"type": "python", "api_key": self.api_key}
        try:
            r = self._session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}", cause=e) from e
        if not 200 <= r.status_code < 300:
            raise TransportError(f"GET {url} returned HTTP {r.status_code}", status_code=r.status_code)
        return FetchResponse(body=r.text, headers=dict(r.headers))

    def close(self) -> None:
        self._session.close()
