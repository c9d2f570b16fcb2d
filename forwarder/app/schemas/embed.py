"""
Discord embed field schema.

The unit of structured output produced by the log extraction engine.
Serializes to Discord's embed field JSON shape unchanged.
"""

from pydantic import BaseModel, ConfigDict, Field

# Discord embed hard limits
FIELD_VALUE_LIMIT = 1024
MAX_EMBED_FIELDS = 25


class EmbedField(BaseModel):
    """A single named, length-bounded embed field."""

    name: str = Field(..., min_length=1, max_length=256)
    value: str = Field(..., max_length=FIELD_VALUE_LIMIT)
    inline: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")
