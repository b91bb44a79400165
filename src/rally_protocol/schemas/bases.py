"""
Base Schema Models

This module defines the base class every wire and configuration model in the
package inherits from. It fixes how models are populated (by field name or by
their camelCase JSON alias) and how they are serialized.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON output
    - WireModel: CanonicalModel whose JSON keys are camelCase, as used by the
      GSN relay server

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Produces a deterministic JSON representation (sorted keys, no extra
    whitespace) suitable for hashing, logging and comparing payloads.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()

    def clone(self):
        """Return an independent deep copy of this model."""
        return self.model_copy(deep=True)


class WireModel(CanonicalModel):
    """
    Base for models exchanged with the relay server.

    Field names are snake_case in Python and camelCase on the wire; both
    spellings are accepted when parsing.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)
