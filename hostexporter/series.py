"""Data structures for metric series points."""
from dataclasses import dataclass, field
from typing import Dict, List, Tuple


@dataclass
class SeriesPoint:
    """A single metric data point with labels."""
    name: str
    labels: Dict[str, str]
    value: float
    timestamp: float = 0.0

    def label_key(self) -> str:
        """Generate a stable key from sorted labels."""
        items = sorted(self.labels.items())
        return ",".join(f"{k}={v}" for k, v in items)


@dataclass
class CycleSamples:
    """Everything one collection cycle wants written to the registry.

    ``fixed`` maps metric name to value. ``families`` maps metric name to a
    complete label family, keyed by label values in schema order. Metrics of
    failed sources are simply missing.
    """
    timestamp: float
    fixed: Dict[str, float] = field(default_factory=dict)
    families: Dict[str, Dict[Tuple[str, ...], float]] = field(default_factory=dict)

    def metric_names(self) -> List[str]:
        return sorted(set(self.fixed) | set(self.families))
