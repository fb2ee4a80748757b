"""Data structures for sensor readings and metric descriptors."""
from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass
class Attribute:
    """A single numeric reading reported by a sensor."""
    name: str
    description: str
    value: float


@dataclass
class Sensor:
    """A device and the attributes it reported in one fetch."""
    id: str
    name: str
    display_name: str
    attributes: List[Attribute] = field(default_factory=list)


@dataclass(frozen=True)
class MetricDescriptor:
    """Name, help text and label schema of one metric kind."""
    name: str
    documentation: str
    label_names: Tuple[str, ...] = ("id", "name")
