"""Strategies for locating the workload a manifest points at."""

from dataclasses import dataclass, field


def format_label_selector(labels: dict[str, str]) -> str:
    """Render labels in the conventional ``k1=v1, k2=v2`` selector syntax."""
    return ", ".join(f"{key}={value}" for key, value in labels.items())


@dataclass(frozen=True)
class NameSelector:
    """Exact lookup of a single workload by name."""

    name: str

    def describe(self) -> str:
        return f"name '{self.name}'"


@dataclass(frozen=True)
class LabelSelector:
    """Lookup of exactly one workload matching every label."""

    labels: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.labels:
            raise ValueError("a label selector needs at least one label")

    @property
    def selector(self) -> str:
        return format_label_selector(self.labels)

    def describe(self) -> str:
        return f"labels '{self.selector}'"


WorkloadSelector = NameSelector | LabelSelector
