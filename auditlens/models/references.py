"""EntityReference model."""

from pydantic import BaseModel, ConfigDict, Field


class EntityReference(BaseModel):
    """A record identified by its logical type name and id."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Record id (GUID string)")
    logical_name: str = Field(..., description="Logical type name of the record")

    def __str__(self) -> str:
        return f"{self.logical_name}({self.id})"
