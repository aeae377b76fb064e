"""
Reader-based summary extraction.

A third-party reader service renders the page as markdown-ish plain text;
this module strips navigation noise from that rendering and keeps the first
few sentences as the bookmark summary.
"""
import asyncio
import logging
import re
from urllib.parse import quote

import httpx

from services.url_scraper import DEFAULT_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

READER_BASE_URL = 'https://r.jina.ai/'

SUMMARY_FAILED = 'Summary could not be generated.'
NO_SUMMARY = 'No summary available.'

MAX_READER_CHARS = 10_000
MAX_SENTENCES = 6
MARKDOWN_MARKER = 'Markdown Content:'

# Lines containing any of these (case-insensitive) are page chrome, not content
NOISE_PHRASES = (
    'sign in',
    'sign up',
    'open in app',
    'sitemap',
    'redirect=',
    'favicon',
)

SENTENCE_PATTERN = re.compile(r'[^.!?]+[.!?]')

# Characters encodeURIComponent leaves unescaped, beyond quote()'s always-safe set
_URI_COMPONENT_SAFE = "!*'()"


def build_reader_url(url: str, reader_base_url: str = READER_BASE_URL) -> str:
    """Build the reader endpoint URL for a page, percent-encoding the page URL."""
    return f'{reader_base_url}{quote(url, safe=_URI_COMPONENT_SAFE)}'


def _is_content_line(line: str) -> bool:
    if not line.strip():
        return False
    if line.startswith(('[', '![')):
        return False
    lowered = line.lower()
    return not any(phrase in lowered for phrase in NOISE_PHRASES)


def summarize_reader_text(raw: str) -> str:
    """
    Reduce a reader rendering to a short plain-text summary.

    Pure function with no I/O.

    Steps:
    1. Keep the first 10,000 characters.
    2. Drop everything up to and including "Markdown Content:" when present.
    3. Drop blank lines, markdown link/image lines and lines with sign-in or
       sitemap style noise; join the rest with spaces.
    4. Keep the first six sentences (runs ending in ".", "!" or "?") and join
       them with spaces. Each run keeps its own leading whitespace.

    Returns:
        The summary, or "No summary available." when nothing survives.
    """
    text = raw[:MAX_READER_CHARS]

    marker_index = text.find(MARKDOWN_MARKER)
    if marker_index != -1:
        text = text[marker_index + len(MARKDOWN_MARKER):].strip()

    cleaned = ' '.join(line for line in text.split('\n') if _is_content_line(line))

    sentences = SENTENCE_PATTERN.findall(cleaned)[:MAX_SENTENCES]
    summary = ' '.join(sentences).strip()
    return summary or NO_SUMMARY


async def extract_summary(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    reader_base_url: str = READER_BASE_URL,
) -> str:
    """
    Fetch the reader rendering of a page and summarize it. Never raises.

    Network errors, timeouts and non-2xx responses are logged and yield
    "Summary could not be generated.".
    """
    reader_url = build_reader_url(url, reader_base_url)
    try:
        async with asyncio.timeout(timeout):
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=timeout,
                headers={'User-Agent': USER_AGENT},
            ) as client:
                response = await client.get(reader_url)
                response.raise_for_status()
                body = response.text
    except TimeoutError:
        logger.warning("Summary fetch timed out for %s", url)
        return SUMMARY_FAILED
    except httpx.HTTPError as e:
        logger.warning("Summary fetch failed for %s: %s", url, e)
        return SUMMARY_FAILED

    return summarize_reader_text(body)
