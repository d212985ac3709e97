"""
Resources module - dialogue data loading.

Provides:
- GraphStore: id-indexed node storage with validation
- JSON Schema for authored node files
- CSV import
"""

from branchtalk.resources.graph_store import GraphIssue, GraphStore, node_schema
from branchtalk.resources.csv_import import convert_csv, import_csv

__all__ = [
    "GraphStore",
    "GraphIssue",
    "node_schema",
    "import_csv",
    "convert_csv",
]
