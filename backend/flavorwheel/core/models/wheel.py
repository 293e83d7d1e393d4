from __future__ import annotations

import hashlib
from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from .base import AppBaseModel, as_utc, utcnow
from .descriptor import DescriptorType


class WheelType(str, Enum):
    """Which descriptor types feed a wheel."""

    AROMA = "aroma"
    FLAVOR = "flavor"
    COMBINED = "combined"
    METAPHOR = "metaphor"

    @property
    def descriptor_types(self) -> tuple[DescriptorType, ...]:
        if self is WheelType.COMBINED:
            return (DescriptorType.AROMA, DescriptorType.FLAVOR, DescriptorType.TEXTURE)
        return (DescriptorType(self.value),)


class ScopeType(str, Enum):
    """Visibility boundary a wheel aggregates over."""

    PERSONAL = "personal"
    UNIVERSAL = "universal"
    COMPARATIVE = "comparative"
    TEAM = "team"


def personal_version_key(user_id: UUID) -> str:
    return f"personal:{user_id}"


def tasting_version_key(tasting_id: UUID) -> str:
    return f"tasting:{tasting_id}"


def team_version_key(team_id: UUID) -> str:
    return f"team:{team_id}"


UNIVERSAL_VERSION_KEY = "universal"


class WheelScope(AppBaseModel):
    """Scope of an aggregation: who owns the descriptors and over what time window.

    - personal: descriptors owned by ``user_id``
    - universal: every non-private descriptor
    - comparative: descriptors recorded in the given tasting sessions
    - team: descriptors owned by members of ``team_id``
    """

    scope_type: ScopeType
    user_id: UUID | None = None
    team_id: UUID | None = None
    tasting_ids: list[UUID] = Field(default_factory=list)
    window_start: datetime | None = None
    window_end: datetime | None = None

    @field_validator("window_start", "window_end")
    @classmethod
    def normalize_window_bound(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else v

    @model_validator(mode="after")
    def validate_scope_target(self) -> WheelScope:
        if self.scope_type is ScopeType.PERSONAL and self.user_id is None:
            raise ValueError("personal scope requires user_id")
        if self.scope_type is ScopeType.TEAM and self.team_id is None:
            raise ValueError("team scope requires team_id")
        if self.scope_type is ScopeType.COMPARATIVE and not self.tasting_ids:
            raise ValueError("comparative scope requires at least one tasting id")
        if self.window_start and self.window_end and self.window_start >= self.window_end:
            raise ValueError("window_start must be before window_end")
        return self

    @property
    def scope_id(self) -> str:
        if self.scope_type is ScopeType.PERSONAL:
            return str(self.user_id)
        if self.scope_type is ScopeType.TEAM:
            return str(self.team_id)
        if self.scope_type is ScopeType.COMPARATIVE:
            joined = ",".join(sorted({str(t) for t in self.tasting_ids}))
            return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]
        return "all"

    @property
    def window_key(self) -> str:
        start = self.window_start.isoformat() if self.window_start else "*"
        end = self.window_end.isoformat() if self.window_end else "*"
        return f"{start}..{end}"

    @property
    def version_keys(self) -> list[str]:
        """Scope-version counters whose sum tracks writes visible to this scope."""
        if self.scope_type is ScopeType.PERSONAL:
            return [personal_version_key(self.user_id)]
        if self.scope_type is ScopeType.TEAM:
            return [team_version_key(self.team_id)]
        if self.scope_type is ScopeType.COMPARATIVE:
            return sorted({tasting_version_key(t) for t in self.tasting_ids})
        return [UNIVERSAL_VERSION_KEY]

    def cache_key(self, wheel_type: WheelType) -> str:
        return f"{wheel_type.value}:{self.scope_type.value}:{self.scope_id}:{self.window_key}"


class WheelNode(AppBaseModel):
    """Node of a flavor wheel.

    ``value`` is the number of contributing descriptors; a parent's value is
    the sum of its children's. Only leaves carry descriptor ids.
    """

    name: str
    value: int = Field(ge=0)
    depth: int = Field(ge=0)
    descriptors: list[UUID] = Field(default_factory=list)
    children: list[WheelNode] = Field(default_factory=list)
    avg_confidence: float | None = None
    avg_intensity: float | None = None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def walk(self):
        """Yield this node and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


class WheelCacheEntry(AppBaseModel):
    """Persisted aggregation for one cache key."""

    id: UUID
    cache_key: str
    wheel_type: WheelType
    scope_type: ScopeType
    scope_id: str
    window_key: str
    tree: WheelNode
    descriptor_count: int = Field(ge=0)
    unique_descriptors: int = Field(default=0, ge=0)
    scope_version: int = Field(default=0, ge=0)
    generated_at: datetime = Field(default_factory=utcnow)
