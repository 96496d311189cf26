"""
npm registry client.

Looks up the version a dist-tag points to. The request is first sent without
credentials; if the registry answers with a 4xx other than 404 the request is
repeated exactly once with an Authorization header from the npm config.
Packages that stay inaccessible resolve to None instead of an error, so a
private or unpublished package never breaks the caller's own command.
"""

from __future__ import annotations

import enum
import http
import http.client
import json
import logging
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Optional
from urllib.parse import quote, urljoin

from . import __version__
from .errors import (
    InvalidInput,
    MalformedResponse,
    PackageNotFound,
    RegistryServerError,
    RegistryTimeout,
    RegistryUnreachable,
    UnknownDistTag,
)
from .npmrc import Credential, load_npm_config

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"
USER_AGENT = f"check-kit/{__version__}"


class AuthState(enum.Enum):
    """Whether the Authorization retry has been used."""

    NO_AUTH_TRIED = "no-auth-tried"
    AUTH_TRIED = "auth-tried"


@dataclass(frozen=True)
class RegistryQuery:
    """A single registry metadata request."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    auth_state: AuthState = AuthState.NO_AUTH_TRIED

    def with_authorization(self, credential: Credential) -> "RegistryQuery":
        """Copy of this query carrying credentials, marked as the auth retry."""
        return replace(
            self,
            headers={**self.headers, "Authorization": credential.header},
            auth_state=AuthState.AUTH_TRIED,
        )


@dataclass(frozen=True)
class HttpResponse:
    """Status code and raw body of a completed HTTP exchange."""

    status: int
    body: bytes = b""


# (url, headers, timeout seconds) -> HttpResponse for any status code.
# Raises RegistryUnreachable / RegistryTimeout when no response was received.
Transport = Callable[[str, Mapping[str, str], Optional[float]], HttpResponse]

CredentialLookup = Callable[[str], Optional[Credential]]


class UrllibTransport:
    """
    Default HTTP transport on urllib.request.

    Attributes:
        proxy: Proxy URL for http and https requests (environment proxies if None)
        strict_ssl: Verify TLS certificates
        ca_file: Extra CA bundle to trust
    """

    def __init__(
        self,
        proxy: str | None = None,
        strict_ssl: bool = True,
        ca_file: str | None = None,
    ):
        self.proxy = proxy
        self.strict_ssl = strict_ssl
        self.ca_file = ca_file

        handlers: list[urllib.request.BaseHandler] = [
            urllib.request.HTTPSHandler(context=self._ssl_context()),
        ]
        if proxy:
            handlers.append(urllib.request.ProxyHandler({"http": proxy, "https": proxy}))
        self._opener = urllib.request.build_opener(*handlers)

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context(cafile=self.ca_file)
        if not self.strict_ssl:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def __call__(
        self,
        url: str,
        headers: Mapping[str, str],
        timeout: float | None = None,
    ) -> HttpResponse:
        request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, **headers})
        try:
            with self._opener.open(request, timeout=timeout) as response:
                return HttpResponse(response.status, response.read())
        except urllib.error.HTTPError as e:
            try:
                body = e.read()
            except OSError:
                body = b""
            return HttpResponse(e.code, body)
        except urllib.error.URLError as e:
            if isinstance(e.reason, TimeoutError):
                raise RegistryTimeout(f"Timed out connecting to npm registry: {url}", url=url) from e
            raise RegistryUnreachable(f"Failed to connect to npm registry: {e.reason}", url=url) from e
        except TimeoutError as e:
            raise RegistryTimeout(f"Timed out reading from npm registry: {url}", url=url) from e
        except (ConnectionError, http.client.HTTPException) as e:
            raise RegistryUnreachable(f"Failed to connect to npm registry: {e}", url=url) from e


def package_scope(name: str) -> str | None:
    """Scope part of a package name ("@acme/tool" -> "@acme"), or None."""
    index = name.find("/")
    return name[:index] if index != -1 else None


def build_query(name: str, registry_url: str) -> RegistryQuery:
    """
    Build the metadata request for a package.

    The name is percent-encoded as a single path segment, but a leading "@"
    stays literal: the registry serves "@scope%2Fname", not "%40scope%2Fname".

    Args:
        name: Package name
        registry_url: Registry base URL

    Returns:
        RegistryQuery without credentials
    """
    if not registry_url.endswith("/"):
        registry_url = f"{registry_url}/"

    encoded = quote(name, safe="")
    if encoded.startswith("%40"):
        encoded = "@" + encoded[3:]

    return RegistryQuery(
        url=urljoin(registry_url, encoded),
        headers={"Accept": ACCEPT_HEADER},
    )


def _status_phrase(status: int) -> str:
    try:
        return http.HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


def fetch_metadata(
    query: RegistryQuery,
    transport: Transport,
    credential_lookup: CredentialLookup,
    registry_url: str,
    timeout: float | None = None,
) -> bytes | None:
    """
    Execute a query, retrying once with credentials on a 4xx.

    Args:
        query: Initial query
        transport: HTTP capability
        credential_lookup: Returns credentials for a registry URL
        registry_url: Registry base URL used for the credential lookup
        timeout: Request timeout in seconds

    Returns:
        Response body, or None if the package is not accessible

    Raises:
        PackageNotFound: Registry answered 404 to the unauthenticated request
        RegistryServerError: Any non-2xx, non-4xx status
        RegistryUnreachable: Transport could not reach the registry
    """
    while True:
        logger.debug(f"GET {query.url} ({query.auth_state.value})")
        response = transport(query.url, query.headers, timeout)
        status = response.status

        if 200 <= status < 300:
            return response.body

        if not 400 <= status < 500:
            raise RegistryServerError(
                f"Response code {status} ({_status_phrase(status)})",
                url=query.url,
                status=status,
            )

        if query.auth_state is AuthState.AUTH_TRIED:
            logger.debug(f"Authorized request still failed with {status}, giving up")
            return None

        if status == 404:
            raise PackageNotFound(f"Package not found: {query.url}", url=query.url, status=status)

        credential = credential_lookup(registry_url)
        if credential is None:
            logger.debug(f"No credentials for {registry_url}, treating package as inaccessible")
            return None

        logger.warning("Request failed, retrying with authorization header...")
        query = query.with_authorization(credential)


def parse_metadata(body: bytes, url: str | None = None) -> dict[str, Any]:
    """Decode a registry response body into the package info object."""
    try:
        info = json.loads(body)
    except ValueError as e:
        raise MalformedResponse(f"Failed to parse registry response: {e}", url=url) from e

    if not isinstance(info, dict):
        raise MalformedResponse("Expected registry package info to be an object", url=url)
    return info


def query_latest(
    name: str,
    dist_tag: str = "latest",
    transport: Transport | None = None,
    registry_url: str | None = None,
    credential_lookup: CredentialLookup | None = None,
    timeout: float | None = None,
    cwd: str | None = None,
) -> str | None:
    """
    Get the version a dist-tag points to.

    Args:
        name: Package name, optionally scoped ("@scope/name")
        dist_tag: Distribution tag to resolve
        transport: HTTP capability (UrllibTransport if None)
        registry_url: Registry base URL (resolved from npm config by scope if None)
        credential_lookup: Credential source for the auth retry (npm config if None)
        timeout: Request timeout in seconds
        cwd: Directory used to find the project .npmrc

    Returns:
        Version string, or None if the package exists but is not accessible

    Raises:
        InvalidInput: name or dist_tag is not a non-empty string
        PackageNotFound: Registry answered 404
        RegistryUnreachable: Registry could not be reached
        RegistryServerError: Registry answered with an unexpected status
        MalformedResponse: Body is not a JSON object
        UnknownDistTag: dist_tag does not exist for the package
    """
    if not name or not isinstance(name, str):
        raise InvalidInput("Expected name to be a non-empty string")
    if not dist_tag or not isinstance(dist_tag, str):
        raise InvalidInput("Expected distTag to be a non-empty string")

    if registry_url is None or credential_lookup is None:
        npm_config = load_npm_config(cwd)
        if registry_url is None:
            registry_url = npm_config.registry_url(package_scope(name))
        if credential_lookup is None:
            credential_lookup = npm_config.auth_token

    if transport is None:
        transport = UrllibTransport()

    query = build_query(name, registry_url)
    body = fetch_metadata(query, transport, credential_lookup, registry_url, timeout)
    if body is None:
        return None

    info = parse_metadata(body, query.url)
    dist_tags = info.get("dist-tags")
    version = dist_tags.get(dist_tag) if isinstance(dist_tags, dict) else None
    if not version or not isinstance(version, str):
        raise UnknownDistTag(f'Distribution tag "{dist_tag}" does not exist', url=query.url)

    logger.debug(f"{name}@{dist_tag} resolved to {version}")
    return version
