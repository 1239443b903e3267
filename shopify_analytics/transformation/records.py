"""
Input guards for the transformation functions.

Transformations accept canonical models or their plain-dict dumps (e.g. a
cache payload). Dicts are validated here; a malformed record is skipped so
one bad order never blanks out a whole aggregate.
"""

from typing import Any, Iterable, List, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def as_records(model: Type[ModelT], items: Iterable[Any]) -> List[ModelT]:
    records = []
    for item in items or []:
        if isinstance(item, model):
            records.append(item)
            continue
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping invalid record", model=model.__name__, error=str(e))
    return records
