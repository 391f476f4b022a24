#!/usr/bin/env python3
"""Fetch Help Center articles from the Zendesk API and convert their HTML bodies to Markdown."""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional

import requests
from requests.auth import AuthBase, HTTPBasicAuth
from html2text import HTML2Text

logger = logging.getLogger("zendesk_dump")

ARTICLES_URL_TEMPLATE = "https://{subdomain}.zendesk.com/api/v2/help_center/articles.json"


# =====================================================
# Errors
# =====================================================
class ConfigurationError(ValueError):
    """Missing or invalid flag / environment variable."""


class ArticleFetchError(RuntimeError):
    """Request could not be built or sent."""


class ApiStatusError(ArticleFetchError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API request failed with status {status_code}: {body}")


class ArticleDecodeError(ArticleFetchError):
    """Response body is not a valid articles envelope."""


# =====================================================
# Data model
# =====================================================
@dataclass(frozen=True)
class Article:
    id: int
    title: str = ""
    body: str = ""
    html_url: str = ""
    locale: str = ""
    created_at: str = ""
    updated_at: str = ""
    position: int = 0
    section_id: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict) -> "Article":
        if not isinstance(data, dict):
            raise ArticleDecodeError(f"Article entry is not an object: {data!r}")

        article_id = data.get("id")
        if isinstance(article_id, bool) or not isinstance(article_id, int):
            raise ArticleDecodeError(f"Article has no numeric id: {article_id!r}")

        return cls(
            id=article_id,
            title=data.get("title") or "",
            body=data.get("body") or "",
            html_url=data.get("html_url") or "",
            locale=data.get("locale") or "",
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
            position=data.get("position") or 0,
            section_id=data.get("section_id"),
        )


@dataclass
class Page:
    articles: List[Article] = field(default_factory=list)
    next_page: Optional[str] = None


# =====================================================
# Auth & session
# =====================================================
class BearerAuth(AuthBase):
    """Attach an OAuth access token as a bearer credential."""

    def __init__(self, token: str):
        self.token = token

    def __call__(self, request):
        request.headers["Authorization"] = f"Bearer {self.token}"
        return request


def build_auth(email=None, api_token=None, oauth_token=None):
    """
    Pick the auth scheme from whatever credentials are available.

    OAuth bearer tokens take precedence over API tokens. An API token
    authenticates as "{email}/token" over HTTP Basic, so both halves
    must be present.
    """
    if oauth_token:
        return BearerAuth(oauth_token)

    if email and api_token:
        return HTTPBasicAuth(f"{email}/token", api_token)

    if email or api_token:
        missing = "ZENDESK_API_TOKEN" if email else "ZENDESK_EMAIL"
        raise ConfigurationError(f"{missing} is required for API token authentication")

    return None


def make_session(auth=None) -> requests.Session:
    session = requests.Session()
    session.auth = auth
    session.headers.update({"Accept": "application/json"})
    return session


def build_articles_url(subdomain: str) -> str:
    subdomain = (subdomain or "").strip()
    if not subdomain:
        raise ValueError("subdomain must not be empty")
    return ARTICLES_URL_TEMPLATE.format(subdomain=subdomain)


# =====================================================
# Pagination
# =====================================================
def fetch_articles_page(session: requests.Session, url: str, timeout: Optional[float] = None) -> Page:
    """Fetch and decode a single page of the articles listing."""
    try:
        response = session.get(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise ArticleFetchError(f"Error making request to {url}: {e}") from e

    if not 200 <= response.status_code < 300:
        raise ApiStatusError(response.status_code, response.text)

    try:
        data = response.json()
    except ValueError as e:
        raise ArticleDecodeError(f"Error decoding response from {url}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("articles"), list):
        raise ArticleDecodeError(f"Response from {url} has no 'articles' list")

    next_page = data.get("next_page")
    if next_page is not None and not isinstance(next_page, str):
        raise ArticleDecodeError(f"Unexpected next_page value: {next_page!r}")

    return Page(
        articles=[Article.from_api(item) for item in data["articles"]],
        next_page=next_page or None,
    )


def iter_article_pages(session: requests.Session, start_url: str, timeout: Optional[float] = None) -> Iterator[Page]:
    """Yield pages one at a time, following next_page until the server stops sending one."""
    next_url = start_url
    page_number = 0

    while next_url:
        page_number += 1
        logger.info(f"Fetching page {page_number}: {next_url}")
        page = fetch_articles_page(session, next_url, timeout=timeout)
        logger.info(f"  → Got {len(page.articles)} articles")
        logger.debug(f"  next_page: {page.next_page!r}")

        yield page
        next_url = page.next_page


def fetch_articles_from_api(start_url: str, session: Optional[requests.Session] = None, timeout: Optional[float] = None) -> List[Article]:
    """Fetch every article reachable from start_url."""
    session = session or make_session()
    articles = []
    for page in iter_article_pages(session, start_url, timeout=timeout):
        articles.extend(page.articles)
    return articles


# =====================================================
# HTML → Markdown
# =====================================================
SCRIPT_RE = re.compile(r"<script\b.*?</script\s*>", re.S | re.I)
IMG_RE = re.compile(r"<img\b[^>]*>", re.I)
IMG_SRC_RE = re.compile(r'(?<![\w-])src\s*=\s*"([^"]*)"', re.I)
IMG_ALT_RE = re.compile(r'\balt\s*=\s*"([^"]*)"', re.I)
PRE_RE = re.compile(r"<pre\b[^>]*>(.*?)</pre\s*>", re.S | re.I)
LINK_RE = re.compile(r'<a\b[^>]*(?<![\w-])href\s*=\s*"([^"]*)"[^>]*>(.*?)</a\s*>', re.S | re.I)
# A list with no other list inside it
INNER_LIST_RE = re.compile(r"<([uo]l)\b[^>]*>((?:(?!<[uo]l\b).)*?)</\1\s*>", re.S | re.I)
LIST_ITEM_RE = re.compile(r"<li\b[^>]*>(.*?)(?:</li\s*>|(?=<li\b)|$)", re.S | re.I)
BR_RE = re.compile(r"<br\b[^>]*>", re.I)
BLOCK_RE = re.compile(r"<(?:p|div|span)\b[^>]*>(.*?)</(?:p|div|span)\s*>", re.S | re.I)
TAG_RE = re.compile(r"<[^>]+>")


def _heading_re(level: int):
    return re.compile(rf"<h{level}\b[^>]*>(.*?)</h{level}\s*>", re.S | re.I)


HEADING_RES = [(level, _heading_re(level)) for level in range(6, 0, -1)]


def _image_to_markdown(match) -> str:
    tag = match.group(0)
    src = IMG_SRC_RE.search(tag)
    if not src:
        return tag
    alt = IMG_ALT_RE.search(tag)
    return f"![{alt.group(1) if alt else ''}]({src.group(1)})"


def _list_to_markdown(match) -> str:
    items = LIST_ITEM_RE.sub(lambda m: f"- {m.group(1).strip()}\n", match.group(2))
    return f"\n{items}\n"


def normalize_whitespace(content: str) -> str:
    content = re.sub(r"[ \t]+", " ", content)
    content = re.sub(r"^[ \t]+$", "", content, flags=re.M)
    content = re.sub(r"\n{3,}", "\n\n", content)
    return content.strip()


def html_to_markdown(html_string: Optional[str]) -> str:
    """
    Convert an article body to Markdown with a fixed sequence of regex rewrites.

    No DOM is built, so badly nested markup gives best-effort output.
    Entities are left as they are.
    """
    if not html_string:
        return ""

    content = SCRIPT_RE.sub("", html_string)
    content = IMG_RE.sub(_image_to_markdown, content)

    # h6 first so "<h1" never eats part of a longer prefix
    for level, pattern in HEADING_RES:
        content = pattern.sub(lambda m, hashes="#" * level: f"\n{hashes} {m.group(1)}\n", content)

    content = PRE_RE.sub(lambda m: f"\n```\n{m.group(1)}\n```\n", content)
    content = LINK_RE.sub(lambda m: f"[{m.group(2)}]({m.group(1)})", content)

    # Innermost lists first, until nothing is left to rewrite
    while True:
        content, replaced = INNER_LIST_RE.subn(_list_to_markdown, content)
        if not replaced:
            break

    content = BR_RE.sub("\n", content)
    content = BLOCK_RE.sub(lambda m: f"{m.group(1)}\n\n", content)
    content = TAG_RE.sub("", content)

    return normalize_whitespace(content)


def html2text_to_markdown(html_string: Optional[str]) -> str:
    """Convert HTML to Markdown with html2text instead of the regex pipeline."""
    if not html_string:
        return ""

    h = HTML2Text()
    h.ignore_links = False
    h.body_width = 0  # Don't wrap lines
    h.ignore_emphasis = False
    h.unicode_snob = True

    return normalize_whitespace(h.handle(html_string))


def raw_html(html_string: Optional[str]) -> str:
    return html_string or ""


CONVERTERS: Dict[str, Callable[[Optional[str]], str]] = {
    "markdown": html_to_markdown,
    "html2text": html2text_to_markdown,
    "none": raw_html,
}


def get_converter(name: str) -> Callable[[Optional[str]], str]:
    try:
        return CONVERTERS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown converter {name!r} (expected one of: {', '.join(CONVERTERS)})"
        ) from None
