from typing import Any

from pydantic import BaseModel, Field


class ModelWrite(BaseModel):
    id: str | None = None
    name: str = ""
    schema_: Any = Field(default=None, alias="schema")

    model_config = {"populate_by_name": True}


class ModelRead(BaseModel):
    id: str
    name: str
    schema_: Any = Field(default=None, alias="schema")

    model_config = {"from_attributes": True, "populate_by_name": True}
