"""Index store client construction."""

from __future__ import annotations

import logging

from opensearchpy import AsyncOpenSearch

from . import config

log = logging.getLogger(__name__)


def create_client() -> AsyncOpenSearch:
    """Build the async store client from configuration.

    An API key takes precedence over basic credentials.
    """
    kwargs: dict = {
        "hosts": [config.OPENSEARCH_URL],
        "verify_certs": config.OPENSEARCH_VERIFY_CERTS,
        "ssl_show_warn": config.OPENSEARCH_VERIFY_CERTS,
        "timeout": config.OPENSEARCH_TIMEOUT,
    }
    if config.OPENSEARCH_API_KEY:
        kwargs["headers"] = {"Authorization": f"ApiKey {config.OPENSEARCH_API_KEY}"}
    elif config.OPENSEARCH_USERNAME:
        kwargs["http_auth"] = (config.OPENSEARCH_USERNAME, config.OPENSEARCH_PASSWORD)

    log.info("Connecting to index store at %s", config.OPENSEARCH_URL)
    return AsyncOpenSearch(**kwargs)
