"""Pydantic bases for wire records and configuration."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Snake-case in Python, camelCase on the wire.

    `ephemeral_public_key` is read and written as `ephemeralPublicKey`.
    Python callers may still pass field names.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
    )


class StrictBaseModel(CamelModel):
    """Frozen record that takes no unknown keys and does no type coercion."""

    model_config = CamelModel.model_config | ConfigDict(extra="forbid", frozen=True, strict=True)
