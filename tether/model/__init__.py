from tether.model.dev import Dev
from tether.model.selector import LabelSelector, NameSelector, WorkloadSelector
from tether.model.translation import Translation, TranslationRule, VolumeMount, WorkloadSnapshot
from tether.model.types import Capabilities, EnvVar, Forward, ResourceRequirements, SecurityContext

__all__ = [
    "Dev",
    "Capabilities",
    "EnvVar",
    "Forward",
    "ResourceRequirements",
    "SecurityContext",
    "LabelSelector",
    "NameSelector",
    "WorkloadSelector",
    "Translation",
    "TranslationRule",
    "VolumeMount",
    "WorkloadSnapshot",
]
