#!/usr/bin/env python3

import logging
import re
from pathlib import Path
from typing import Callable, Iterable, Optional

from scrape_articles import Article, ConfigurationError, html_to_markdown

logger = logging.getLogger("zendesk_dump")

# =====================================================
# Constants
# =====================================================
UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')
MAX_FILENAME_LENGTH = 100

FILENAME_STYLES = ("id", "id-title")
COMBINED_FILENAME = "articles.md"
COMBINED_SEPARATOR = "\n\n" + "-" * 50 + "\n\n"


class EmptyArticleSetError(ValueError):
    """Raised when a combined file would contain no articles."""


# =====================================================
# Utilities
# =====================================================
def sanitize_filename(text: str) -> str:
    """Replace characters that are unsafe in filenames and cap the length."""
    return UNSAFE_FILENAME_CHARS.sub("_", text or "")[:MAX_FILENAME_LENGTH]


def article_filename(article: Article, style: str = "id") -> str:
    if style not in FILENAME_STYLES:
        raise ConfigurationError(
            f"Unknown filename style {style!r} (expected one of: {', '.join(FILENAME_STYLES)})"
        )

    if style == "id-title":
        safe_title = sanitize_filename(article.title)
        if safe_title.strip():
            return f"{article.id}-{safe_title}.md"

    return f"{article.id}.md"


def render_article(article: Article, convert: Callable[[Optional[str]], str] = html_to_markdown) -> str:
    """Header block with the article metadata, a rule, then the converted body."""
    return (
        f"# {article.title}\n\n"
        f"- ID: {article.id}\n"
        f"- URL: {article.html_url}\n"
        f"- Created: {article.created_at}\n"
        f"- Updated: {article.updated_at}\n"
        f"- Locale: {article.locale}\n\n"
        f"---\n\n"
        f"{convert(article.body)}"
    )


# =====================================================
# Writers
# =====================================================
def save_article_as_markdown(
    article: Article,
    output_dir: Path,
    style: str = "id",
    convert: Callable[[Optional[str]], str] = html_to_markdown,
) -> Path:
    output_file = Path(output_dir) / article_filename(article, style)

    with open(output_file, "w", encoding="utf-8") as f:
        f.write(render_article(article, convert) + "\n")

    logger.debug(f"Saved: {output_file.name}")
    return output_file


def save_articles_combined(
    articles: Iterable[Article],
    output_path: Path,
    convert: Callable[[Optional[str]], str] = html_to_markdown,
) -> Path:
    """
    Write every article into one Markdown file, separated by a dashed rule.

    Nothing is written when there are no articles.
    """
    articles = list(articles)
    if not articles:
        raise EmptyArticleSetError("no articles to save")

    content = COMBINED_SEPARATOR.join(render_article(article, convert) for article in articles) + "\n"

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(content)

    logger.info(f"Saved {len(articles)} articles to {output_path}")
    return output_path
