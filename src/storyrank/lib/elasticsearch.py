"""Shared Elasticsearch utilities.

Helpers for working with Elasticsearch responses that are used across the
store adapters.
"""

import logging

from elastic_transport import ObjectApiResponse, TransportError
from elasticsearch import ApiError

logger = logging.getLogger(__name__)


class ContentStoreError(RuntimeError):
    """Raised when the backing store returns something we cannot use."""


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response, handling both ObjectApiResponse and dict.

    Raises ``ContentStoreError`` if the response type is unexpected.
    """
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    elif isinstance(resp, dict):
        return resp
    else:
        logger.error("Unexpected Elasticsearch response type: %s", type(resp))
        raise ContentStoreError("Invalid Elasticsearch response")


def iter_hits(resp):
    """Yield ``(_id, _source)`` pairs from a search response."""
    data = unwrap_es_response(resp)
    for hit in data.get("hits", {}).get("hits", []):
        yield hit.get("_id"), (hit.get("_source") or {})


def hit_document(doc_id: str | None, src: dict) -> dict:
    """Merge a hit's ``_id`` into its source so models can validate it."""
    if doc_id is None:
        return dict(src)
    return {**src, "id": doc_id}


def terms_filter(field: str, values) -> dict:
    return {"terms": {field: list(values)}}


def date_range(field: str, gte) -> dict:
    """Range filter accepting a datetime or an ES date-math string."""
    if hasattr(gte, "isoformat"):
        gte = gte.isoformat()
    return {"range": {field: {"gte": gte}}}


# Failures of the backing store that the API reports as a bad gateway
STORE_ERRORS = (ApiError, TransportError, ContentStoreError)
