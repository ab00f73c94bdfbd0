"""Distinct-value listings used to populate selection UIs."""

from __future__ import annotations

from pydantic import BaseModel, Field


class NetworkMeta(BaseModel):
    network: str
    label: str
    sources: list[str] = Field(default_factory=list)


class CategoryMeta(BaseModel):
    category: str
    label: str
    classification: str
    sources: list[str] = Field(default_factory=list)


class AssetMeta(BaseModel):
    asset_symbol: str
    sources: list[str] = Field(default_factory=list)
    networks: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
