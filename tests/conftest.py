"""Shared fixtures: fake Zendesk API responses and sessions."""

import logging
from unittest.mock import Mock

import pytest

BASE_URL = "https://acme.zendesk.com/api/v2/help_center/articles.json"


def article_payload(article_id, title="Article", body="<p>Body</p>"):
    return {
        "id": article_id,
        "title": title,
        "body": body,
        "html_url": f"https://acme.zendesk.com/hc/en-us/articles/{article_id}",
        "locale": "en-us",
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-02-01T00:00:00Z",
        "position": 0,
        "section_id": 42,
    }


def make_response(status_code=200, payload=None, text=None):
    response = Mock()
    response.status_code = status_code
    response.text = text if text is not None else ""
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def two_page_session():
    """Page 1 has two articles and a next link, page 2 has one article and an empty link."""
    session = Mock()
    session.get.side_effect = [
        make_response(payload={
            "articles": [
                article_payload(1, "Getting started", "<h1>Welcome</h1><p>Hello</p>"),
                article_payload(2, "Billing: FAQ?", "<ul><li>Invoices</li><li>Refunds</li></ul>"),
            ],
            "next_page": f"{BASE_URL}?page=2",
        }),
        make_response(payload={
            "articles": [article_payload(3, "Troubleshooting", "<p>Restart it</p>")],
            "next_page": "",
        }),
    ]
    return session


@pytest.fixture(autouse=True)
def reset_dump_logger():
    """Drop file handlers that setup_logging attached during a test."""
    yield
    logger = logging.getLogger("zendesk_dump")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
