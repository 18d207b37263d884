"""Process-wide store of the latest value of every host metric.

The scheduler writes, the Prometheus HTTP server reads. All state lives
behind one lock that is only held for dictionary swaps and copies, never
while a source is being read.
"""
import logging
import threading
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from hostexporter.metrics import METRIC_SPECS, MetricSpec
from hostexporter.series import CycleSamples, SeriesPoint

logger = logging.getLogger(__name__)

LabelValues = Tuple[str, ...]
LabelSet = Union[LabelValues, Mapping[str, str]]
Family = Mapping[LabelValues, float]


class MetricRegistry(Collector):
    """Latest values of fixed metrics and label families.

    Registered with a ``prometheus_client.CollectorRegistry`` it is exported
    through ``collect()``; ``snapshot()`` gives the same data as points.
    """

    def __init__(self, specs: Optional[Iterable[MetricSpec]] = None, prefix: str = ""):
        self.prefix = prefix
        self.specs: Dict[str, MetricSpec] = {
            spec.name: spec for spec in (specs if specs is not None else METRIC_SPECS)
        }
        self._lock = threading.Lock()
        self._fixed: Dict[str, float] = {}
        self._families: Dict[str, Dict[LabelValues, float]] = {}
        self._timestamps: Dict[str, float] = {}

    def _spec(self, name: str, family: bool) -> MetricSpec:
        spec = self.specs.get(name)
        if spec is None:
            raise KeyError(f"Unknown metric {name!r}")
        if spec.is_family != family:
            kind = "label family" if spec.is_family else "fixed metric"
            raise ValueError(f"Metric {name!r} is a {kind}")
        return spec

    @staticmethod
    def _label_values(spec: MetricSpec, labels: LabelSet) -> LabelValues:
        """Label values in schema order, checking the label schema."""
        if isinstance(labels, Mapping):
            if set(labels) != set(spec.label_names):
                raise ValueError(
                    f"Metric {spec.name!r} expects labels {list(spec.label_names)}, "
                    f"got {sorted(labels)}"
                )
            return tuple(str(labels[n]) for n in spec.label_names)
        if isinstance(labels, str):
            raise ValueError(
                f"Metric {spec.name!r} label values must be a tuple, got string {labels!r}"
            )
        if len(labels) != len(spec.label_names):
            raise ValueError(
                f"Metric {spec.name!r} expects {len(spec.label_names)} label values, "
                f"got {len(labels)}"
            )
        return tuple(str(v) for v in labels)

    def _normalize(self, spec: MetricSpec, mapping: Family) -> Dict[LabelValues, float]:
        return {
            self._label_values(spec, labels): float(value)
            for labels, value in mapping.items()
        }

    def set_fixed(self, name: str, value: float, timestamp: Optional[float] = None):
        """Overwrite the value of a fixed-cardinality metric."""
        self._spec(name, family=False)
        with self._lock:
            self._fixed[name] = float(value)
            if timestamp is not None:
                self._timestamps[name] = timestamp

    def replace_family(
        self,
        name: str,
        mapping: Family,
        timestamp: Optional[float] = None,
    ):
        """Swap in a complete label family; entries not in ``mapping`` are dropped.

        ``mapping`` is keyed by label values in the order of the label schema.
        """
        family = self._normalize(self._spec(name, family=True), mapping)
        with self._lock:
            previous = self._families.get(name, {})
            self._families[name] = family
            if timestamp is not None:
                self._timestamps[name] = timestamp

        removed = len(set(previous) - set(family))
        if removed:
            logger.debug(f"Dropped {removed} stale series from {name}")

    def apply(self, samples: CycleSamples):
        """Write one cycle's samples in a single critical section."""
        fixed = {}
        for name, value in samples.fixed.items():
            self._spec(name, family=False)
            fixed[name] = float(value)
        families = {
            name: self._normalize(self._spec(name, family=True), mapping)
            for name, mapping in samples.families.items()
        }

        with self._lock:
            self._fixed.update(fixed)
            self._families.update(families)
            for name in list(fixed) + list(families):
                self._timestamps[name] = samples.timestamp

    def get(self, name: str, labels: Optional[LabelSet] = None) -> Optional[float]:
        """Current value of one series, or None if it is not present."""
        spec = self.specs[name]
        with self._lock:
            if not spec.is_family:
                return self._fixed.get(name)
            family = self._families.get(name, {})
        return family.get(self._label_values(spec, labels))

    def family(self, name: str) -> Dict[LabelValues, float]:
        """Copy of the current label family of ``name``."""
        self._spec(name, family=True)
        with self._lock:
            return dict(self._families.get(name, {}))

    def _copy(self):
        with self._lock:
            return (
                dict(self._fixed),
                {name: dict(family) for name, family in self._families.items()},
                dict(self._timestamps),
            )

    def snapshot(self) -> List[SeriesPoint]:
        """Consistent copy of every series, sorted by name and labels."""
        fixed, families, timestamps = self._copy()
        points: List[SeriesPoint] = []
        for name, value in fixed.items():
            points.append(SeriesPoint(
                f"{self.prefix}{name}", {}, value, timestamps.get(name, 0.0)
            ))
        for name, family in families.items():
            label_names = self.specs[name].label_names
            for values, value in family.items():
                points.append(SeriesPoint(
                    f"{self.prefix}{name}",
                    dict(zip(label_names, values)),
                    value,
                    timestamps.get(name, 0.0),
                ))
        points.sort(key=lambda p: (p.name, p.label_key()))
        return points

    def series_count(self) -> int:
        with self._lock:
            return len(self._fixed) + sum(len(f) for f in self._families.values())

    def describe(self):
        for spec in self.specs.values():
            yield GaugeMetricFamily(
                f"{self.prefix}{spec.name}", spec.help, labels=list(spec.label_names) or None
            )

    def collect(self):
        fixed, families, _ = self._copy()
        for name, spec in self.specs.items():
            full_name = f"{self.prefix}{name}"
            if not spec.is_family:
                if name in fixed:
                    yield GaugeMetricFamily(full_name, spec.help, value=fixed[name])
                continue

            metric = GaugeMetricFamily(full_name, spec.help, labels=list(spec.label_names))
            for values in sorted(families.get(name, {})):
                metric.add_metric(list(values), families[name][values])
            yield metric
