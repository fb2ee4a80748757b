"""Prometheus collector that republishes SmartThings sensor readings."""
from typing import Dict, Iterable, List, Optional
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector
import logging
import re
import threading
import time

from smartthings_exporter import __version__
from smartthings_exporter.api import SmartThingsClient
from smartthings_exporter.config import SmartThingsConfig
from smartthings_exporter.errors import SmartThingsAPIError
from smartthings_exporter.models import Attribute, MetricDescriptor, Sensor
from smartthings_exporter.oauth_token import OAuthToken

logger = logging.getLogger(__name__)

NAMESPACE = "smartthings"

_INVALID_METRIC_CHARS = re.compile(r"[^a-zA-Z0-9_:]")


def metric_name(namespace: str, attribute_name: str) -> str:
    """Build a valid Prometheus metric name for an attribute."""
    return f"{namespace}_{_INVALID_METRIC_CHARS.sub('_', attribute_name)}"


class SmartThingsExporter(Collector):
    """Fetches sensors on every scrape and emits one gauge sample per attribute.

    Descriptors are created lazily, keyed by attribute name, and kept for the
    lifetime of the exporter. The same attribute reported by different sensors
    shares one descriptor; samples are told apart by the ``id`` and ``name``
    labels.
    """

    def __init__(
        self,
        client: SmartThingsClient,
        endpoint: str,
        namespace: str = NAMESPACE,
        self_metrics: Optional['SelfMetrics'] = None
    ):
        self.client = client
        self.endpoint = endpoint
        self.namespace = namespace
        self.self_metrics = self_metrics

        self.descriptors: Dict[str, MetricDescriptor] = {}
        self._descriptors_lock = threading.Lock()

    def descriptor_for(self, attribute: Attribute) -> MetricDescriptor:
        """Look up or create the descriptor for an attribute name.

        The first description seen for a name wins.
        """
        with self._descriptors_lock:
            descriptor = self.descriptors.get(attribute.name)
            if descriptor is None:
                descriptor = MetricDescriptor(
                    name=metric_name(self.namespace, attribute.name),
                    documentation=attribute.description,
                )
                self.descriptors[attribute.name] = descriptor
                logger.info(f"Registered SmartThings metric: {descriptor.name}")
            return descriptor

    def describe(self) -> Iterable[GaugeMetricFamily]:
        # Called on registration; must not fetch.
        with self._descriptors_lock:
            descriptors = list(self.descriptors.values())
        return [
            GaugeMetricFamily(d.name, d.documentation, labels=list(d.label_names))
            for d in descriptors
        ]

    def build_families(self, sensors: List[Sensor]) -> List[GaugeMetricFamily]:
        """Map sensors onto gauge families, one sample per (sensor, attribute).

        Attribute names that sanitize to the same metric name keep only the
        first sample per sensor.
        """
        families: Dict[str, GaugeMetricFamily] = {}
        emitted = set()
        for sensor in sensors:
            for attribute in sensor.attributes:
                descriptor = self.descriptor_for(attribute)
                if (descriptor.name, sensor.id) in emitted:
                    logger.warning(
                        f"Skipping attribute {attribute.name} of sensor {sensor.id}: "
                        f"{descriptor.name} already emitted for this sensor"
                    )
                    continue
                emitted.add((descriptor.name, sensor.id))
                family = families.get(descriptor.name)
                if family is None:
                    family = GaugeMetricFamily(
                        descriptor.name,
                        descriptor.documentation,
                        labels=list(descriptor.label_names),
                    )
                    families[descriptor.name] = family
                family.add_metric([sensor.id, sensor.display_name], attribute.value)
        return list(families.values())

    def collect(self) -> Iterable[GaugeMetricFamily]:
        """Fetch the sensor list and emit it. A failed fetch emits nothing."""
        start = time.time()
        try:
            sensors = self.client.get_sensors(self.endpoint)
        except SmartThingsAPIError as e:
            logger.error(f"Error reading list of sensors from {self.endpoint}: {e}")
            if self.self_metrics:
                self.self_metrics.record_scrape(time.time() - start, error=True)
            return []

        families = self.build_families(sensors)
        if self.self_metrics:
            self.self_metrics.record_scrape(time.time() - start)
            self.self_metrics.set_sensors(len(sensors))
        return families


class SelfMetrics:
    """Self-monitoring metrics for the exporter."""

    def __init__(self, registry=None, prefix="smartthings_exporter_"):
        if registry is None:
            registry = CollectorRegistry()

        self.scrapes_total = Counter(
            f"{prefix}scrapes_total",
            "Total number of SmartThings sensor fetches",
            registry=registry
        )

        self.scrape_errors_total = Counter(
            f"{prefix}scrape_errors_total",
            "Total number of failed SmartThings sensor fetches",
            registry=registry
        )

        self.scrape_duration_seconds = Histogram(
            f"{prefix}scrape_duration_seconds",
            "Duration of SmartThings sensor fetches in seconds",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry
        )

        self.sensors = Gauge(
            f"{prefix}sensors",
            "Number of sensors returned by the last successful fetch",
            registry=registry
        )

        self.build_info = Info(
            f"{prefix}build",
            "SmartThings exporter build information",
            registry=registry
        )
        self.build_info.info({"version": __version__})

    def record_scrape(self, duration: float, error: bool = False):
        """Record one sensor fetch."""
        self.scrapes_total.inc()
        self.scrape_duration_seconds.observe(duration)
        if error:
            self.scrape_errors_total.inc()

    def set_sensors(self, count: int):
        self.sensors.set(count)


def create_exporter(
    config: SmartThingsConfig,
    token: OAuthToken,
    registry: CollectorRegistry
) -> SmartThingsExporter:
    """Resolve the endpoint, verify it with one fetch and register the exporter.

    Errors propagate so the caller can fail before serving.
    """
    client = SmartThingsClient(token, timeout=config.timeout)
    endpoint = client.get_endpoints_uri()

    try:
        client.get_sensors(endpoint)
    except SmartThingsAPIError as e:
        raise SmartThingsAPIError(f"Error verifying connection to endpoint {endpoint}: {e}") from e

    exporter = SmartThingsExporter(
        client,
        endpoint,
        self_metrics=SelfMetrics(registry=registry),
    )
    registry.register(exporter)
    logger.info(f"SmartThings exporter registered for endpoint {endpoint}")
    return exporter
