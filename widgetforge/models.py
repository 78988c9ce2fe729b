from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Theme(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: str
    secondary: str
    gradient: str


class GeneratedComponent(BaseModel):
    """One validated generation result, serialised with its camelCase wire names."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    html: str
    css: str
    javascript: str
    image_description: str = Field(alias="imageDescription")
    theme: Optional[Theme] = None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class WidgetWithImage(GeneratedComponent):
    description: str
    image_url: str = Field(alias="imageUrl")


class WidgetCode(BaseModel):
    html: str = ""
    css: str = ""
    javascript: str = ""


class SavedWidget(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    created_at: str = Field(alias="createdAt")
    prompt_id: Optional[int] = Field(default=None, alias="promptId")
    data: WidgetCode


class SavedPrompt(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    content: str
    created_at: str = Field(alias="createdAt")
