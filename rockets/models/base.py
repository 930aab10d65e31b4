"""CamelModel: snake_case in Python, camelCase on the wire.

Inbound bodies may use either form (``launchSpeed`` or ``launch_speed``);
responses are always emitted with camelCase keys because FastAPI dumps
``response_model`` objects by alias.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )
