"""Value types shared by manifests and translation rules."""

from typing import Any

from kubernetes.utils import parse_quantity
from pydantic import BaseModel, ConfigDict, Field, field_validator


class EnvVar(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    value: str = ""


class Forward(BaseModel):
    model_config = ConfigDict(extra="forbid")

    local: int
    remote: int


class Capabilities(BaseModel):
    model_config = ConfigDict(extra="forbid")

    add: list[str] = Field(default_factory=list)
    drop: list[str] = Field(default_factory=list)


class SecurityContext(BaseModel):
    model_config = ConfigDict(extra="forbid")

    run_as_user: int | None = Field(default=None, alias="runAsUser")
    run_as_group: int | None = Field(default=None, alias="runAsGroup")
    fs_group: int | None = Field(default=None, alias="fsGroup")
    capabilities: Capabilities | None = None


class ResourceRequirements(BaseModel):
    """Compute resources as (resource name, quantity string) pairs."""

    model_config = ConfigDict(extra="forbid")

    limits: dict[str, str] = Field(default_factory=dict)
    requests: dict[str, str] = Field(default_factory=dict)

    @field_validator("limits", "requests", mode="before")
    @classmethod
    def _validate_quantities(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        result = {}
        for name, quantity in value.items():
            quantity = str(quantity)
            parse_quantity(quantity)
            result[str(name)] = quantity
        return result


