"""Shared schema bases.

Python attributes are snake_case; JSON on the wire is camelCase. Either form
is accepted on input so services can build schemas from plain kwargs.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class CamelModel(BaseModel):
    """Request bodies and option maps."""
    model_config = _CAMEL


class StrictCamelModel(BaseModel):
    """Patch bodies: an unknown key is a validation error, not a silent no-op."""
    model_config = ConfigDict(**_CAMEL, extra="forbid")


class CamelORMModel(BaseModel):
    """Responses built straight from ORM rows."""
    model_config = ConfigDict(**_CAMEL, from_attributes=True)
