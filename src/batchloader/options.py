"""
Loader configuration.
"""

from __future__ import annotations

import os
import typing as t

from pydantic import BaseModel, ConfigDict, Field

AUTO_DISPATCH_ENV_VAR = "BATCHLOADER_AUTO_DISPATCH_SECONDS"
DEFAULT_AUTO_DISPATCH_SECONDS = 0.05


def resolve_auto_dispatch_seconds() -> float:
    """
    Resolve the default auto-dispatch delay.

    Returns
    -------
    float
        Value of ``BATCHLOADER_AUTO_DISPATCH_SECONDS`` when set, else ``0.05``.
    """
    env_value = os.getenv(AUTO_DISPATCH_ENV_VAR)
    if env_value:
        return float(env_value)
    return DEFAULT_AUTO_DISPATCH_SECONDS


class LoaderOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    key: t.Callable[[t.Any], t.Hashable] | None = Field(
        default=None,
        description="optional, maps a requested key to its cache key. Defaults to identity",
    )
    name: str | None = Field(
        default=None,
        description="optional, loader name attached to every log event",
    )
    auto_dispatch_seconds: float = Field(
        default_factory=resolve_auto_dispatch_seconds,
        gt=0,
        description="delay after which a replacement batch window dispatches on its own",
    )

    def cache_key(self, key: t.Any) -> t.Hashable:
        """Return the cache key for ``key``."""
        if self.key is None:
            return key
        return self.key(key)
