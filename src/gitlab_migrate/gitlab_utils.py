"""
HTTP transport towards a GitLab instance.

Every request goes through a python-gitlab client bound to one
``InstanceEndpoint``. Callers always say which instance they talk to by
passing a ``GitLabInstance``; there is no global "use the destination" switch.

Requests are sent with ``obey_rate_limit=False``: python-gitlab would
otherwise sleep and resend on HTTP 429 behind the caller's back. Retries
happen only where fetcher.RetryPolicy asks for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final, cast

import requests
from gitlab import Gitlab
from gitlab.exceptions import GitlabError, GitlabParsingError
from requests.adapters import HTTPAdapter

from .exceptions import DecodeError, ProtocolError, TransportError

if TYPE_CHECKING:
    from .config import InstanceEndpoint

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Final[float] = 30.0
DEFAULT_MAX_IDLE_CONNS: Final[int] = 100
DEFAULT_IDLE_CONN_TIMEOUT: Final[float] = 90.0


@dataclass(frozen=True)
class HttpClientConfig:
    """Settings for the HTTP client used against one instance.

    ``idle_conn_timeout`` is kept for parity with the configuration surface;
    urllib3 pools do not expire idle connections on a timer, so it is only
    reported in debug output.
    """

    timeout: float = DEFAULT_TIMEOUT
    skip_tls_verify: bool = False
    max_idle_conns: int = DEFAULT_MAX_IDLE_CONNS
    idle_conn_timeout: float = DEFAULT_IDLE_CONN_TIMEOUT


def build_session(http_config: HttpClientConfig) -> requests.Session:
    """Create a requests session with a connection pool sized from the config."""
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=1, pool_maxsize=http_config.max_idle_conns)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.verify = not http_config.skip_tls_verify
    return session


def get_client(endpoint: InstanceEndpoint, http_config: HttpClientConfig | None = None) -> Gitlab:
    """Get a GitLab client for the endpoint, authenticated with its token."""
    http_config = http_config or HttpClientConfig()
    logger.debug(
        f"Building {endpoint.side} client for {endpoint.base_url} "
        f"(timeout={http_config.timeout}s, verify_tls={not http_config.skip_tls_verify}, "
        f"max_idle_conns={http_config.max_idle_conns}, idle_conn_timeout={http_config.idle_conn_timeout}s)"
    )
    return Gitlab(
        url=endpoint.base_url.rstrip("/"),
        private_token=endpoint.token,
        timeout=http_config.timeout,
        ssl_verify=not http_config.skip_tls_verify,
        session=build_session(http_config),
    )


@dataclass
class GitLabInstance:
    """An endpoint together with the client that talks to it."""

    endpoint: InstanceEndpoint
    client: Gitlab = field(repr=False)

    @classmethod
    def connect(cls, endpoint: InstanceEndpoint, http_config: HttpClientConfig | None = None) -> GitLabInstance:
        return cls(endpoint=endpoint, client=get_client(endpoint, http_config))

    @property
    def side(self) -> str:
        return self.endpoint.side

    @property
    def base_url(self) -> str:
        return self.endpoint.base_url.rstrip("/")

    def get_json(self, path: str, query_data: dict[str, Any] | None = None) -> Any:
        """GET ``path`` (relative to /api/v4) and decode the JSON body.

        Raises:
            ProtocolError: If the instance answers with a non-2xx status
            TransportError: On connection failures and timeouts
            DecodeError: If the body is not valid JSON
        """
        try:
            # http_get with raw=True returns requests.Response (type stubs are incorrect)
            response = cast(
                requests.Response,
                self.client.http_get(path, query_data=query_data or {}, raw=True, obey_rate_limit=False),
            )
        except GitlabError as e:
            msg = f"GET {path} on {self.side} failed with status {e.response_code}: {e.error_message}"
            raise ProtocolError(msg, status_code=e.response_code) from e
        except requests.RequestException as e:
            msg = f"GET {path} on {self.side} failed: {e}"
            raise TransportError(msg) from e

        try:
            return response.json()
        except ValueError as e:
            msg = f"GET {path} on {self.side} returned malformed JSON: {e}"
            raise DecodeError(msg) from e

    def post_json(self, path: str, body: dict[str, Any]) -> Any:
        """POST ``body`` verbatim as JSON to ``path`` (relative to /api/v4).

        Raises:
            ProtocolError: If the instance answers with a non-2xx status
            TransportError: On connection failures and timeouts
            DecodeError: If the response body is not valid JSON
        """
        try:
            return self.client.http_post(path, post_data=body, obey_rate_limit=False)
        except GitlabParsingError as e:
            msg = f"POST {path} on {self.side} returned malformed JSON: {e}"
            raise DecodeError(msg) from e
        except GitlabError as e:
            msg = f"POST {path} on {self.side} failed with status {e.response_code}: {e.error_message}"
            raise ProtocolError(msg, status_code=e.response_code) from e
        except requests.RequestException as e:
            msg = f"POST {path} on {self.side} failed: {e}"
            raise TransportError(msg) from e
