"""Translation rules and the records persisted on workloads in dev mode.

A :class:`TranslationRule` holds the merge instructions derived from one
manifest node; a :class:`Translation` binds the rules that target one
workload. Both are stored as deterministic JSON in workload annotations so a
later session can undo the mutation. Serializing, parsing and re-serializing
a record always yields the same bytes.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tether.common.constants import TRANSLATION_VERSION
from tether.common.exceptions import CorruptStateError
from tether.model.types import EnvVar, ResourceRequirements, SecurityContext


def _dumps(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


class _Record(BaseModel):
    def to_json(self) -> str:
        return _dumps(self.model_dump(mode="json", by_alias=True))

    @classmethod
    def from_json(cls, raw: str):
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise CorruptStateError(f"malformed {cls.__name__} record: {e}") from e


class VolumeMount(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    mount_path: str
    sub_path: str = ""

    def to_k8s(self) -> dict[str, Any]:
        mount = {"name": self.name, "mountPath": self.mount_path}
        if self.sub_path:
            mount["subPath"] = self.sub_path
        return mount


class TranslationRule(_Record):
    model_config = ConfigDict(frozen=True, extra="forbid")

    container: str = ""
    image: str = ""
    image_pull_policy: str = ""
    environment: list[EnvVar] = Field(default_factory=list)
    workdir: str = ""
    volumes: list[VolumeMount] = Field(default_factory=list)
    security_context: SecurityContext | None = None
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)
    healthchecks: bool = False
    command: list[str] | None = None
    args: list[str] | None = None


class Translation(_Record):
    """All rules that target a single workload.

    ``deployment`` is the live workload the rules are applied to. It is never
    part of the serialized record.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    interactive: bool = False
    version: str = TRANSLATION_VERSION
    marker: str = ""
    replicas: int = 1
    rules: list[TranslationRule] = Field(default_factory=list)
    deployment: Any = Field(default=None, exclude=True)


class WorkloadSnapshot(_Record):
    """The complete spec of a workload as it was before dev mode was activated."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str = TRANSLATION_VERSION
    deployment: dict[str, Any]
