"""
Scrape target identity used by the target allocator.

A target is identified by its job name, URL and label set. The label set is
reduced to the Prometheus label-set fingerprint, which sorts label names
first, so two targets with equal labels hash the same whatever order the
labels were inserted in.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import quote_plus

# FNV-1a 64 bit, as used by Prometheus model fingerprints
FNV64_OFFSET = 14695981039346656037
FNV64_PRIME = 1099511628211
FNV64_MASK = 0xFFFFFFFFFFFFFFFF
LABEL_SEPARATOR = 0xFF


def _fnv_add(h: int, data: bytes) -> int:
    for b in data:
        h ^= b
        h = (h * FNV64_PRIME) & FNV64_MASK
    return h


def label_set_fingerprint(labels: Mapping[str, str]) -> int:
    """
    Compute the order-independent fingerprint of a label set.

    Names are visited in sorted order; every name and value is followed by
    the 0xff separator byte.
    """
    h = FNV64_OFFSET
    for name in sorted(labels):
        h = _fnv_add(h, name.encode("utf-8"))
        h = _fnv_add(h, bytes([LABEL_SEPARATOR]))
        h = _fnv_add(h, str(labels[name]).encode("utf-8"))
        h = _fnv_add(h, bytes([LABEL_SEPARATOR]))
    return h


def fingerprint_to_string(fingerprint: int) -> str:
    """Render a fingerprint as 16 hex digits."""
    return f"{fingerprint:016x}"


@dataclass
class TargetItem:
    """
    A scrape target as seen by the allocator.

    Attributes:
        job_name: Scrape job the target belongs to
        link: JSON link object pointing at the job's targets endpoint
        target_url: Address of the target
        labels: Discovered target labels
        collector_name: Collector the target is assigned to
    """

    job_name: str
    target_url: str
    labels: dict[str, str] = field(default_factory=dict)
    collector_name: str = ""
    link: dict[str, str] = field(default_factory=dict)

    def hash(self) -> str:
        """Identity key: job name + target URL + label fingerprint."""
        return self.job_name + self.target_url + fingerprint_to_string(
            label_set_fingerprint(self.labels)
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "job_name": self.job_name,
            "link": dict(self.link),
            "target_url": self.target_url,
            "labels": dict(self.labels),
            "collector_name": self.collector_name,
        }


def new_item(job_name: str, target_url: str, labels: Mapping[str, str],
             collector_name: str) -> TargetItem:
    """Create a TargetItem with its ``/jobs/<job>/targets`` link filled in."""
    return TargetItem(
        job_name=job_name,
        target_url=target_url,
        labels=dict(labels),
        collector_name=collector_name,
        link={"_link": f"/jobs/{quote_plus(job_name)}/targets"},
    )
