from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class NavigationPage(BaseModel):
    """A markdown file in the navigation tree."""

    model_config = ConfigDict(frozen=True)

    type: Literal["page"] = "page"
    name: str
    path: str  # Slash-separated, no extension: "guides/setup"


class NavigationCategory(BaseModel):
    """A directory in the navigation tree."""

    model_config = ConfigDict(frozen=True)

    type: Literal["category"] = "category"
    name: str
    path: str  # Directory path relative to the content root
    children: tuple[NavigationNode, ...] = ()


NavigationNode = Annotated[NavigationPage | NavigationCategory, Field(discriminator="type")]

NavigationCategory.model_rebuild()

# Converts between the tree and its JSON-compatible cache representation.
NavigationTree = TypeAdapter(list[NavigationNode])


class PageHeading(BaseModel):
    level: int = Field(ge=1, le=6)
    text: str
    id: str  # Anchor slug, see parser.slugify


class Breadcrumb(BaseModel):
    name: str
    path: str


class SearchResult(BaseModel):
    title: str
    path: str
    snippet: str  # HTML-escaped text with <mark> around the matched term


SearchResults = TypeAdapter(list[SearchResult])
