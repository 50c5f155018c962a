import json
import logging
from functools import lru_cache
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from .errors import InvalidDataError


logger = logging.getLogger(__name__)


@lru_cache(maxsize=128)
def _adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def decode(payload: Optional[bytes], target: Any = Any) -> Any:
    """Decode a JSON payload into ``target``.

    Returns None for an absent payload. Validation is strict, so "5" is not an int.
    Malformed JSON and schema mismatches both raise :class:`InvalidDataError`; the
    underlying detail is dropped.
    """
    if payload is None:
        return None
    try:
        return _adapter(target).validate_json(payload, strict=True)
    except ValidationError:
        raise InvalidDataError() from None


def encode_body(body: Any) -> Optional[bytes]:
    if body is None:
        return None
    try:
        return json.dumps(body).encode("utf-8")
    except (TypeError, ValueError) as exc:
        logger.debug("Dropping unserializable request body: %s", exc)
        return None
