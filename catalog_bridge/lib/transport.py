"""Catalog transport: the protocol the engine needs and a REST client for it.

The engine only depends on :class:`CatalogTransport`. :class:`RestCatalogClient`
implements it over the catalog's REST API with a pooled ``requests.Session``:

    POST {base_url}/search        run a search, first page
    GET  {paging.next}            fetch the following page
    GET  {base_url}/assets/{id}   fetch one object
    PUT  {base_url}/assets/{id}   update fields of one object
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote, urljoin

import requests
from requests.adapters import HTTPAdapter

from catalog_bridge.lib.errors import CatalogTransportError
from catalog_bridge.lib.resilience import RetryConfig, retry_operation
from catalog_bridge.lib.search import CatalogObject, CatalogQuery, SearchPage

logger = logging.getLogger(__name__)

__all__ = [
    "CatalogTransport",
    "AuthType",
    "AuthConfig",
    "RestCatalogClient",
]


class CatalogTransport(Protocol):
    """What the mapping engine needs from a catalog client."""

    def get_object(self, object_id: str) -> Optional[CatalogObject]:
        """Fetch one object by id, or None if it does not exist."""
        ...

    def search(self, query: CatalogQuery) -> SearchPage:
        """Run a search and return its first page."""
        ...

    def next_page(self, page: SearchPage) -> SearchPage:
        """Return the page after ``page``."""
        ...

    def update_object(self, object_id: str, fields: Dict[str, Any]) -> None:
        """Set fields of an existing object."""
        ...


class AuthType(Enum):
    """Supported catalog authentication methods."""

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"


@dataclass(frozen=True)
class AuthConfig:
    """Credentials for the catalog REST API.

    Values are expected to be already expanded from the environment (the
    config loader does that).
    """

    auth_type: AuthType = AuthType.NONE
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None

    def __post_init__(self) -> None:
        if self.auth_type == AuthType.BASIC and not (self.username and self.password):
            raise ValueError("Basic authentication requires both 'username' and 'password'")
        if self.auth_type == AuthType.BEARER and not self.token:
            raise ValueError("Bearer authentication requires 'token' to be set")

    def apply(self, session: requests.Session) -> None:
        if self.auth_type == AuthType.BASIC:
            session.auth = (self.username, self.password)
        elif self.auth_type == AuthType.BEARER:
            session.headers["Authorization"] = f"Bearer {self.token}"


class _RetryableStatus(Exception):
    def __init__(self, response: requests.Response) -> None:
        super().__init__(f"HTTP {response.status_code} from {response.url}")
        self.response = response


_RETRYABLE = (requests.exceptions.ConnectionError, requests.exceptions.Timeout, _RetryableStatus)


class RestCatalogClient:
    """Catalog client over REST.

    Args:
        base_url: API root, e.g. "https://catalog:9443/ibm/iis/igc-rest/v1"
        auth: Credentials
        timeout: Per-request timeout in seconds
        verify_ssl: Verify the server certificate
        retry: Retry policy for connection errors and 5xx responses
        pool_size: Connection pool size of the session
    """

    def __init__(
        self,
        base_url: str,
        auth: Optional[AuthConfig] = None,
        *,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        retry: Optional[RetryConfig] = None,
        pool_size: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.retry = retry or RetryConfig()
        self.session = session or requests.Session()
        self.session.verify = verify_ssl
        self.session.headers.update({"Accept": "application/json"})
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        (auth or AuthConfig()).apply(self.session)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "RestCatalogClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return urljoin(self.base_url, path.lstrip("/"))

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        def attempt() -> requests.Response:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            if response.status_code >= 500:
                raise _RetryableStatus(response)
            return response

        try:
            return retry_operation(attempt, self.retry, f"{method} {url}", _RETRYABLE)
        except _RetryableStatus as exc:
            raise CatalogTransportError(
                "Catalog returned a server error",
                status_code=exc.response.status_code,
                url=url,
                cause=exc,
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise CatalogTransportError(
                f"Catalog request failed: {type(exc).__name__}",
                url=url,
                cause=exc,
                suggestion="Check that the catalog is reachable from this host",
            ) from exc

    def _json(self, response: requests.Response) -> Dict[str, Any]:
        if response.status_code >= 400:
            raise CatalogTransportError(
                f"Catalog rejected the request: {response.text[:200]}",
                status_code=response.status_code,
                url=response.url,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise CatalogTransportError(
                "Catalog returned a response that is not JSON",
                status_code=response.status_code,
                url=response.url,
                cause=exc,
            ) from exc

    def get_object(self, object_id: str) -> Optional[CatalogObject]:
        response = self._request("GET", self._url(f"assets/{quote(object_id, safe='')}"))
        if response.status_code == 404:
            logger.debug("Catalog object %s not found", object_id)
            return None
        data = self._json(response)
        if not data or "_id" not in data:
            return None
        return CatalogObject.from_dict(data)

    def search(self, query: CatalogQuery) -> SearchPage:
        payload = query.to_payload()
        logger.debug("Catalog search: %s", payload)
        response = self._request("POST", self._url("search"), json=payload)
        return SearchPage.from_dict(self._json(response))

    def next_page(self, page: SearchPage) -> SearchPage:
        if not page.has_more or not page.next_url:
            return SearchPage(begin=page.begin + len(page.items), page_size=page.page_size)
        response = self._request("GET", self._url(page.next_url))
        return SearchPage.from_dict(self._json(response))

    def update_object(self, object_id: str, fields: Dict[str, Any]) -> None:
        response = self._request(
            "PUT", self._url(f"assets/{quote(object_id, safe='')}"), json=fields
        )
        if response.status_code >= 400:
            self._json(response)
