"""Infrastructure services: storage backends and document exporters."""

from .exporter import CsvReportExporter, DocumentExporter, DossierDisplay, JsonReportExporter
from .storage import InMemoryBackend, JsonFileBackend, StorageBackend

__all__ = [
    "StorageBackend",
    "InMemoryBackend",
    "JsonFileBackend",
    "DocumentExporter",
    "DossierDisplay",
    "JsonReportExporter",
    "CsvReportExporter",
]
