import json
import logging
from typing import Any, Union

from ..exceptions import ChunkParseError

logger = logging.getLogger(__name__)

CONCATENATION_MARKER = "}{"


def decode_chunk(raw: Union[str, bytes]) -> Any:
    """
    Decode one inbound payload into a structured object.

    The service sometimes writes several result objects back to back without
    a separator. When that happens only the last (most complete) object is
    returned. If the concatenated payload still cannot be parsed, the input
    is returned unchanged so callers can report it.

    Args:
        raw: Payload text. Bytes are decoded as UTF-8.

    Returns:
        The parsed object, or `raw` verbatim (bytes stay bytes) when a
        concatenated payload cannot be repaired.

    Raises:
        ChunkParseError: The payload is not UTF-8, or it has no concatenation
            marker and is not valid JSON. `e.raw` is the input as given.
    """
    text = raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ChunkParseError(f"Payload is not valid UTF-8: {e}", raw=raw) from e

    if not text or CONCATENATION_MARKER not in text:
        try:
            return json.loads(text)
        except ValueError as e:
            raise ChunkParseError(f"Payload is not valid JSON: {e}", raw=raw) from e

    repaired = "[" + text.replace(CONCATENATION_MARKER, "},{") + "]"
    try:
        parsed = json.loads(repaired)
    except ValueError:
        logger.debug(f"Could not repair concatenated payload of {len(text)} chars")
        return raw

    logger.debug(f"Recovered {len(parsed)} concatenated objects, keeping the last one")
    return parsed[-1]


def is_decoded(value: Any) -> bool:
    """Check whether `decode_chunk` produced a result object rather than raw input."""
    return isinstance(value, dict)


def safe_decode_chunk(raw: Union[str, bytes]) -> Any:
    """Like `decode_chunk`, but returns the raw input instead of raising."""
    try:
        return decode_chunk(raw)
    except ChunkParseError as e:
        logger.debug(f"Falling back to raw payload: {e}")
        return e.raw
