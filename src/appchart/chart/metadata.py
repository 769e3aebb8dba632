"""Label and annotation rules.

An application carries two ordered lists of :class:`MetadataRule`: labels
and annotations. While a process is compiled, every rule is tested against
the (deployment version, process name) of the artifacts being built; rules
that apply are merged, in order, into one bucket per rendered object kind.

Rule matching::

    applies(rule) = rule.target is a recognized kind
                    and rule.deployment_version in (0, version)
                    and rule.process_name in ("", process_name)

Merging is overwrite-last: when two applicable rules set the same key on the
same kind, the later rule wins. Keys are validated before anything is
merged, so a malformed key fails the whole compile and no partial bucket
escapes.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from appchart.chart.models import ApplicationSpec, MetadataRule, TargetKind
from appchart.core.errors import MalformedMetadataKeyError

# https://kubernetes.io/docs/concepts/overview/working-with-objects/annotations/#syntax-and-character-set
_METADATA_KEY = re.compile(r"^([A-Za-z].{0,252}/)?[A-Z0-9a-z][A-Z0-9a-z\-_.]{0,63}$")


@dataclass
class MetadataBuckets:
    """Key/value pairs destined for each kind of rendered object."""

    deployment: dict[str, str] = field(default_factory=dict)
    service: dict[str, str] = field(default_factory=dict)
    pod: dict[str, str] = field(default_factory=dict)

    def bucket(self, kind: TargetKind) -> dict[str, str]:
        match kind:
            case TargetKind.DEPLOYMENT:
                return self.deployment
            case TargetKind.SERVICE:
                return self.service
            case TargetKind.POD:
                return self.pod
        raise AssertionError(f"unhandled target kind: {kind!r}")

    def to_values(self) -> dict[str, dict[str, str]]:
        return {
            "deployment": dict(self.deployment),
            "service": dict(self.service),
            "pod": dict(self.pod),
        }


@dataclass
class ProcessMetadata:
    labels: MetadataBuckets = field(default_factory=MetadataBuckets)
    annotations: MetadataBuckets = field(default_factory=MetadataBuckets)


def validate_key(key: str) -> None:
    if _METADATA_KEY.match(key) is None:
        raise MalformedMetadataKeyError(f"malformed metadata key: {key!r}")


def validate_rule(rule: MetadataRule) -> None:
    """Raises :class:`MalformedMetadataKeyError` for the first bad key."""
    for key in rule.apply:
        validate_key(key)


def rule_applies(rule: MetadataRule, deployment_version: int, process_name: str) -> bool:
    if rule.target.target_kind is None:
        return False
    if rule.deployment_version != 0 and rule.deployment_version != deployment_version:
        return False
    if rule.process_name != "" and rule.process_name != process_name:
        return False
    return True


def apply_rules(
    rules: Sequence[MetadataRule],
    deployment_version: int,
    process_name: str,
) -> MetadataBuckets:
    """Merge the applicable rules into per-kind buckets."""
    for rule in rules:
        validate_rule(rule)

    buckets = MetadataBuckets()
    for rule in rules:
        kind = rule.target.target_kind
        if kind is None or not rule_applies(rule, deployment_version, process_name):
            continue
        buckets.bucket(kind).update(rule.apply)
    return buckets


def resolve_process_metadata(
    app: ApplicationSpec,
    deployment_version: int,
    process_name: str,
) -> ProcessMetadata:
    """Labels and annotations of the objects rendered for one process."""
    return ProcessMetadata(
        labels=apply_rules(app.labels, deployment_version, process_name),
        annotations=apply_rules(app.annotations, deployment_version, process_name),
    )


def validate_application_metadata(app: ApplicationSpec) -> None:
    """Validate every label and annotation rule of an application up front."""
    for rule in [*app.labels, *app.annotations]:
        validate_rule(rule)


__all__ = [
    "MetadataBuckets",
    "ProcessMetadata",
    "apply_rules",
    "resolve_process_metadata",
    "rule_applies",
    "validate_application_metadata",
    "validate_key",
    "validate_rule",
]
