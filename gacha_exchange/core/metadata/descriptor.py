from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


UNKNOWN_TRAIT = "Unknown"


class Attribute(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    trait_type: str = Field(description="Trait name, matched exactly")
    value: Any = Field(default=None, description="Trait value as stored in the document")

    def display_value(self) -> str:
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)


class Descriptor(BaseModel):
    """Off-chain document referenced by a token URI."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = Field(default=None, description="Display name")
    description: Optional[str] = Field(default=None, description="Free-form description")
    image: str = Field(description="Content-addressed or absolute image URI")
    attributes: List[Attribute] = Field(description="Ordered (trait_type, value) pairs")

    def trait(self, trait_type: str) -> str:
        """Value of the first attribute named ``trait_type``, or the sentinel."""
        for attribute in self.attributes:
            if attribute.trait_type == trait_type:
                return attribute.display_value()
        return UNKNOWN_TRAIT
