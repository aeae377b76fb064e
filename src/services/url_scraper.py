"""URL scraping service for fetching pages and extracting title and favicon."""
import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (compatible; LinkSaver/1.0)'
DEFAULT_TIMEOUT = 5.0

_DEFAULT_PORTS = {'http': 80, 'https': 443}


class SSRFBlockedError(Exception):
    """Raised when a URL targets a private/internal network address."""

    pass


def is_private_ip(ip_str: str) -> bool:
    """
    Check if an IP address is private, loopback, or otherwise internal.

    Args:
        ip_str: IP address string (IPv4 or IPv6).

    Returns:
        True if the IP is private/internal, False if public.
    """
    try:
        ip = ipaddress.ip_address(ip_str)
        return (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_multicast
            or ip.is_reserved
            or ip.is_unspecified
        )
    except ValueError:
        # Unparseable addresses are treated as internal
        return True


async def validate_url_not_private(url: str) -> None:
    """
    Validate that a URL does not target a private/internal network.

    Resolves the hostname to check the actual IP address, preventing
    DNS rebinding attacks where a hostname resolves to an internal IP.

    Raises:
        SSRFBlockedError: If the URL targets a private network.
        ValueError: If the URL is malformed or the host cannot be resolved.
    """
    hostname = urlsplit(url).hostname

    if not hostname:
        raise ValueError(f"Invalid URL (no hostname): {url}")

    if hostname.lower() in ('localhost', 'localhost.localdomain'):
        raise SSRFBlockedError(f"Blocked request to localhost: {url}")

    try:
        addrinfo = await asyncio.get_running_loop().getaddrinfo(
            hostname, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM,
        )
    except socket.gaierror as e:
        raise ValueError(f"Could not resolve hostname: {hostname}") from e

    # sockaddr is (ip, port) for IPv4 or (ip, port, flow, scope) for IPv6
    for _, _, _, _, sockaddr in addrinfo:
        ip_str = sockaddr[0]
        if is_private_ip(ip_str):
            raise SSRFBlockedError(
                f"Blocked request to private/internal address: {url} resolves to {ip_str}",
            )


@dataclass
class FetchResult:
    """Result of fetching a URL."""

    html: str | None
    final_url: str
    status_code: int | None
    content_type: str | None
    error: str | None


@dataclass
class PageMetadata:
    """Display title and favicon URL derived from a page."""

    title: str
    favicon: str


async def fetch_url(url: str, timeout: float = DEFAULT_TIMEOUT) -> FetchResult:  # noqa: ASYNC109
    """
    Fetch the raw body of a URL.

    Best-effort fetch that returns error info on failure rather than raising.
    Follows redirects and captures the final URL. Both the requested URL and
    the final URL after redirects must resolve to public addresses.

    Args:
        url:
            The URL to fetch.
        timeout:
            Request timeout in seconds.

    Returns:
        FetchResult containing the body or error information.
    """
    try:
        await validate_url_not_private(url)
    except (SSRFBlockedError, ValueError) as e:
        return FetchResult(
            html=None,
            final_url=url,
            status_code=None,
            content_type=None,
            error=str(e),
        )

    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers={'User-Agent': USER_AGENT},
            http2=True,
        ) as client:
            response = await client.get(url)

            final_url_str = str(response.url)
            try:
                await validate_url_not_private(final_url_str)
            except (SSRFBlockedError, ValueError) as e:
                return FetchResult(
                    html=None,
                    final_url=final_url_str,
                    status_code=response.status_code,
                    content_type=None,
                    error=f"Redirect blocked: {e}",
                )

            content_type = response.headers.get('content-type', '')

            if not response.is_success:
                return FetchResult(
                    html=None,
                    final_url=final_url_str,
                    status_code=response.status_code,
                    content_type=content_type,
                    error=f"HTTP {response.status_code}",
                )

            return FetchResult(
                html=response.text,
                final_url=final_url_str,
                status_code=response.status_code,
                content_type=content_type,
                error=None,
            )
    except httpx.TimeoutException:
        return FetchResult(
            html=None,
            final_url=url,
            status_code=None,
            content_type=None,
            error="Request timed out",
        )
    except httpx.HTTPError as e:
        return FetchResult(
            html=None,
            final_url=url,
            status_code=None,
            content_type=None,
            error=f"Request failed: {e}",
        )


def get_origin(url: str) -> str:
    """
    Return the origin (scheme://host[:port]) of an absolute URL.

    Userinfo is dropped and default ports are omitted.

    Raises:
        ValueError: If the URL has no scheme or host.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    hostname = parts.hostname
    if not scheme or not hostname:
        raise ValueError(f"URL has no origin: {url}")

    host = f'[{hostname}]' if ':' in hostname else hostname
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f'{host}:{port}'
    return f'{scheme}://{host}'


def resolve_favicon(href: str | None, page_url: str) -> str:
    """
    Turn a favicon reference into an absolute URL on the page's origin.

    A missing reference becomes ``/favicon.ico`` at the origin. References
    that do not start with ``http`` are rebased: an absolute path is appended
    directly to the origin, anything else gets a ``/`` separator.
    """
    origin = get_origin(page_url)
    if not href:
        return f'{origin}/favicon.ico'
    if href.startswith('http'):
        return href
    if href.startswith('//'):
        return f'{urlsplit(page_url).scheme.lower()}:{href}'
    if href.startswith('/'):
        return f'{origin}{href}'
    return f'{origin}/{href}'


def _find_favicon_href(soup: BeautifulSoup) -> str | None:
    """
    Find the favicon reference in parsed HTML.

    Priority:
    1. <link rel="icon">
    2. <link rel="shortcut icon">
    3. <meta property="og:image">
    """
    links = soup.find_all('link', href=True)
    for rel in ('icon', 'shortcut icon'):
        for link in links:
            # bs4 parses rel as a multi-valued attribute
            rel_value = link.get('rel') or []
            if isinstance(rel_value, str):
                rel_value = rel_value.split()
            if ' '.join(rel_value).lower() == rel and link['href'].strip():
                return link['href'].strip()

    og_image = soup.find('meta', property='og:image')
    if og_image and og_image.get('content', '').strip():
        return og_image['content'].strip()
    return None


def extract_metadata(html: str, url: str) -> PageMetadata:
    """
    Extract the display title and favicon URL from HTML.

    Pure function with no I/O. Uses BeautifulSoup for parsing.

    Args:
        html:
            Raw HTML string to parse.
        url:
            The page URL, used as the title fallback and as the origin for
            relative favicon references.

    Returns:
        PageMetadata; title falls back to the URL when <title> is missing or blank.
    """
    soup = BeautifulSoup(html, 'lxml')

    title_tag = soup.find('title')
    title = title_tag.get_text().strip() if title_tag else ''

    return PageMetadata(
        title=title or url,
        favicon=resolve_favicon(_find_favicon_href(soup), url),
    )


async def extract_page_metadata(url: str, timeout: float = DEFAULT_TIMEOUT) -> PageMetadata:  # noqa: ASYNC109
    """
    Fetch a page and derive its title and favicon. Never raises.

    Any fetch or parse failure is logged and yields ``title=url, favicon=""``.
    The timeout bounds the whole fetch, including redirects and slow bodies.
    """
    fallback = PageMetadata(title=url, favicon='')

    try:
        async with asyncio.timeout(timeout):
            fetch_result = await fetch_url(url, timeout=timeout)
    except TimeoutError:
        logger.warning("Metadata fetch timed out for %s", url)
        return fallback

    if fetch_result.html is None:
        logger.warning("Metadata fetch failed for %s: %s", url, fetch_result.error)
        return fallback

    try:
        return extract_metadata(fetch_result.html, url)
    except Exception as e:
        logger.warning("Metadata parse failed for %s: %s", url, e)
        return fallback
