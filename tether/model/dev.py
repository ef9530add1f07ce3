"""Development environment manifest.

A manifest describes one interactive (primary) development environment and,
optionally, a list of detached services that are put into dev mode alongside
it. Manifests are parsed strictly from YAML: unknown fields are rejected.
"""

import os
import posixpath
import re
import shlex
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

from tether.common.constants import REMOTE_SSH_PORT, Names, Paths
from tether.common.exceptions import ManifestValidationError
from tether.logger import init_logger
from tether.model.selector import LabelSelector, NameSelector, WorkloadSelector, format_label_selector
from tether.model.translation import TranslationRule, VolumeMount
from tether.model.types import Capabilities, EnvVar, Forward, ResourceRequirements, SecurityContext

logger = init_logger(__name__)

PULL_ALWAYS = "Always"
PULL_IF_NOT_PRESENT = "IfNotPresent"
PULL_NEVER = "Never"
PULL_POLICIES = (PULL_ALWAYS, PULL_IF_NOT_PRESENT, PULL_NEVER)

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9\-]+")

BAD_NAME_MESSAGE = (
    "Invalid name: must consist of lower case alphanumeric characters or '-', "
    "and must start and end with an alphanumeric character"
)


class Dev(BaseModel):
    """A development environment manifest."""

    model_config = ConfigDict(extra="forbid")

    name: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    namespace: str = ""
    container: str = ""
    image: str = ""
    image_pull_policy: str = Field(default="", alias="imagePullPolicy")
    environment: list[EnvVar] = Field(default_factory=list)
    command: list[str] = Field(default_factory=list)
    workdir: str = ""
    mountpath: str = ""
    subpath: str = ""
    volumes: list[str] = Field(default_factory=list)
    security_context: SecurityContext | None = Field(default=None, alias="securityContext")
    forward: list[Forward] = Field(default_factory=list)
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)
    services: list["Dev"] = Field(default_factory=list)

    _dev_path: str = PrivateAttr(default="")
    _dev_dir: str = PrivateAttr(default="")

    @field_validator("labels", mode="before")
    @classmethod
    def _none_labels(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("environment", mode="before")
    @classmethod
    def _parse_environment(cls, value: Any) -> Any:
        """Accept ``NAME=value`` strings, expanding references to the local environment."""
        if not isinstance(value, list):
            return value
        parsed = []
        for item in value:
            if isinstance(item, str):
                name, _, raw = item.partition("=")
                parsed.append({"name": name, "value": os.path.expandvars(raw)})
            else:
                parsed.append(item)
        return parsed

    @field_validator("command", mode="before")
    @classmethod
    def _parse_command(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @field_validator("forward", mode="before")
    @classmethod
    def _parse_forward(cls, value: Any) -> Any:
        """Accept ``local:remote`` strings as well as mappings."""
        if not isinstance(value, list):
            return value
        parsed = []
        for item in value:
            if isinstance(item, str):
                local, sep, remote = item.partition(":")
                if not sep:
                    raise ValueError(f"forward '{item}' must be in the form 'local:remote'")
                parsed.append({"local": local, "remote": remote})
            else:
                parsed.append(item)
        return parsed

    @classmethod
    def load(cls, dev_path: str | Path) -> "Dev":
        """Read, default and validate the manifest stored at ``dev_path``."""
        path = Path(dev_path)
        dev = cls.read(path.read_bytes())
        dev._dev_dir = str(path.resolve().parent)
        dev._dev_path = path.name
        logger.debug(f"loaded manifest {dev._dev_dir}/{dev._dev_path}")
        return dev

    @classmethod
    def read(cls, content: bytes | str) -> "Dev":
        """Parse a manifest strictly and apply load-time defaults and validation."""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ManifestValidationError(f"invalid manifest: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ManifestValidationError("invalid manifest: expected a mapping of fields at the top level")

        try:
            dev = cls.model_validate(data)
        except ValidationError as e:
            raise ManifestValidationError(_format_validation_error(e)) from e

        dev._set_defaults()
        dev._validate()
        return dev

    @property
    def dev_path(self) -> str:
        return self._dev_path

    @property
    def dev_dir(self) -> str:
        return self._dev_dir

    def _set_defaults(self) -> None:
        if not self.command:
            self.command = [Paths.DEFAULT_COMMAND]
        _default_paths(self)
        self.volumes = list(dict.fromkeys(self.volumes))
        for service in self.services:
            _default_paths(service)
            service.namespace = ""
            service.forward = []
            service.volumes = []
            service.services = []
            service.resources = ResourceRequirements()

    def _validate(self) -> None:
        if not self.name:
            raise ManifestValidationError("Name cannot be empty")

        if _INVALID_NAME_CHARS.search(self.name):
            raise ManifestValidationError(BAD_NAME_MESSAGE)

        if self.name.startswith("-") or self.name.endswith("-"):
            raise ManifestValidationError(BAD_NAME_MESSAGE)

        _validate_pull_policy(self.image_pull_policy)

        for service in self.services:
            if service.name and service.labels:
                raise ManifestValidationError(
                    f"'name' and 'labels' cannot be defined at the same time for service '{service.name}'"
                )
            _validate_pull_policy(service.image_pull_policy)

    @property
    def selector(self) -> WorkloadSelector:
        if self.labels:
            return LabelSelector(labels=dict(self.labels))
        return NameSelector(name=self.name)

    def labels_selector(self) -> str:
        """Return the labels of the manifest as a label selector string."""
        return format_label_selector(self.labels)

    @property
    def sync_name(self) -> str:
        """Name of the synchronization resources (secret) of this environment."""
        return sync_name(self.name)

    def full_sub_path(self, index: int) -> str:
        """Sub-path of the ``index``-th mount inside the shared volume."""
        parts = [self.name, f"data-{index}"]
        sub_path = self.subpath.strip("/")
        if sub_path:
            parts.append(sub_path)
        return posixpath.join(*parts)

    def to_translation_rule(self, main: "Dev") -> TranslationRule:
        """Derive the merge instructions for this environment.

        ``main`` is the root manifest the environment belongs to; passing the
        root itself yields the interactive rule. Sub-paths are always allocated
        from the root, so every environment of one session shares its
        directory layout.
        """
        volumes = [
            VolumeMount(
                name=Names.VOLUME,
                mount_path=self.mountpath,
                sub_path=main.full_sub_path(0),
            )
        ]
        for i, path in enumerate(self.volumes):
            volumes.append(
                VolumeMount(
                    name=Names.VOLUME,
                    mount_path=path,
                    sub_path=main.full_sub_path(i + 1),
                )
            )

        command = None
        args = None
        if self is main:
            healthchecks = False
            command = ["tail"]
            args = ["-f", "/dev/null"]
        else:
            healthchecks = True
            if self.command:
                command = list(self.command)
                args = []

        return TranslationRule(
            container=self.container,
            image=self.image,
            image_pull_policy=self.image_pull_policy,
            environment=[env.model_copy() for env in self.environment],
            workdir=self.workdir,
            volumes=volumes,
            security_context=self.security_context.model_copy(deep=True) if self.security_context else None,
            resources=self.resources.model_copy(deep=True),
            healthchecks=healthchecks,
            command=command,
            args=args,
        )

    def load_remote(self, local_port: int) -> None:
        """Configure the environment for remote (ssh based) execution."""
        self.command = [Paths.REMOTE_COMMAND]
        self.forward.append(Forward(local=local_port, remote=REMOTE_SSH_PORT))
        self.volumes = list(dict.fromkeys([*self.volumes, Paths.VSCODE_SERVER]))

        if self.security_context is None:
            self.security_context = SecurityContext()
        if self.security_context.capabilities is None:
            self.security_context.capabilities = Capabilities()
        if "SYS_PTRACE" not in self.security_context.capabilities.add:
            self.security_context.capabilities.add.append("SYS_PTRACE")
        logger.info("enabled remote mode")


def sync_name(name: str) -> str:
    return Names.SYNC_NAME_TEMPLATE.format(name=name)[: Names.SYNC_NAME_MAX_LENGTH]


def _default_paths(dev: Dev) -> None:
    if not dev.mountpath and not dev.workdir:
        dev.mountpath = Paths.DEFAULT_MOUNT
        dev.workdir = Paths.DEFAULT_MOUNT
    if dev.workdir and not dev.mountpath:
        dev.mountpath = dev.workdir
    if not dev.image_pull_policy:
        dev.image_pull_policy = PULL_ALWAYS


def _validate_pull_policy(pull_policy: str) -> None:
    if pull_policy not in PULL_POLICIES:
        raise ManifestValidationError(
            "supported values for 'imagePullPolicy' are: 'Always', 'IfNotPresent' or 'Never'"
        )


def _format_validation_error(error: ValidationError) -> str:
    lines = ["Invalid manifest:"]
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        lines.append(f"    - {location}: {detail['msg']}")
    lines.append("    Check the field names and value types of your manifest")
    return "\n".join(lines)
