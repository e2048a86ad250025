"""Base schema classes with camelCase alias generation.

Python code stays snake_case; JSON on the wire is camelCase. Timestamps are
always timezone-aware UTC once they pass through a schema, whatever the
database driver handed back.
"""
from datetime import datetime, timezone
from typing import Annotated
from pydantic import AfterValidator, BaseModel
from pydantic.alias_generators import to_camel


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    """Requests and embedded value objects. Accepts either casing, emits camelCase."""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "protected_namespaces": (),
    }


class CamelORMModel(CamelModel):
    """Responses built straight from SQLAlchemy rows."""
    model_config = {
        **CamelModel.model_config,
        "from_attributes": True,
    }
