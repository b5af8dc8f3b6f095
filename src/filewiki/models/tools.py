from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from filewiki.models.content import Breadcrumb, NavigationNode, PageHeading, SearchResult


class PageInput(BaseModel):
    path: str = Field(default="", max_length=1024)


class PageOutput(BaseModel):
    path: str
    title: str
    html: str
    headings: list[PageHeading]
    breadcrumbs: list[Breadcrumb]
    modified: datetime | None


class SearchInput(BaseModel):
    query: str = Field(default="", max_length=500)


class SearchOutput(BaseModel):
    success: bool = True
    results: list[SearchResult]
    query: str
    total: int
    message: str | None = None


class NavigationOutput(BaseModel):
    title: str  # Site title from wiki.title
    items: list[NavigationNode]
