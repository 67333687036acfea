"""Pydantic base schema utilities for control-plane records."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """
    Base Pydantic model for all stored records.

    Configures common Pydantic behaviors:
    - ``populate_by_name=True``: Allow initialization by alias or field name.
    - ``alias_generator=to_camel``: ``model_dump(by_alias=True)`` produces the
      camelCase shape the gateway puts on the wire.
    - ``extra="forbid"``: Prevent unknown fields from slipping into a record.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        extra="forbid",
    )
