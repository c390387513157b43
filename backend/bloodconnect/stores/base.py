from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..errors import StoreUnavailable
from ..utils.logging import log_db_error


def resolve_id(document_id: str) -> Any:
    try:
        return ObjectId(document_id)
    except (InvalidId, TypeError):
        return document_id


def id_filter(document_id: str) -> Dict[str, Any]:
    return {"_id": resolve_id(document_id)}


@contextmanager
def guarded(context: str) -> Iterator[None]:
    """Turn driver failures into StoreUnavailable after logging them."""
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as exc:
        log_db_error(context, exc)
        raise StoreUnavailable(f"{context} failed: database unavailable") from exc
