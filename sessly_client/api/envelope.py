"""
List payload normalization.

List endpoints answer either with a bare collection or with a wrapper
object. The accepted shapes are enumerated here and nowhere else:

    [...]                  -> the list itself
    {"results": [...]}     -> the inner list (paginated responses)
    {"data": [...]}        -> the inner list

Anything else is treated as an empty collection so that a backend change
degrades a list view instead of breaking it.
"""

from typing import Any, List, Optional

from sessly_client.utils.logger import get_logger

logger = get_logger(__name__)

ENVELOPE_KEYS = ("results", "data")


def extract_list(payload: Any, source: Optional[str] = None) -> List[Any]:
    """
    Return the list carried by ``payload``.

    Args:
        payload: Parsed JSON response body
        source: Endpoint name for log context

    Returns:
        The list, or [] when the shape is not recognised
    """
    if isinstance(payload, list):
        return payload

    if isinstance(payload, dict):
        for key in ENVELOPE_KEYS:
            if isinstance(payload.get(key), list):
                return payload[key]

    logger.warning(
        "Unexpected list response shape; treating as empty",
        operation="extract_list",
        context={
            "source": source,
            "type": type(payload).__name__,
            "keys": sorted(payload.keys())[:10] if isinstance(payload, dict) else None,
        },
    )
    return []
