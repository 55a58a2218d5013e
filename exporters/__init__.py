"""Data export modules for generating output files."""

from exporters.csv_exporter import CSVExporter
from exporters.json_exporter import JSONExporter
from exporters.summary_generator import SummaryGenerator

__all__ = ["CSVExporter", "JSONExporter", "SummaryGenerator"]
