"""Device identity model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class DeviceIdentity(BaseModel):
    """A candidate node as listed by the registry.

    Looked up fresh every pass; ``address`` may change between passes and is
    ``None`` when the node reports no usable address.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    name: str
    address: str | None = None

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        if not value:
            raise ValueError("device name must be non-empty")
        return value

    @field_validator("address")
    @classmethod
    def _empty_address_is_none(cls, value: str | None) -> str | None:
        return value or None
