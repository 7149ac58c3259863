"""
sheetsync_config -- typed job configuration.

Jobs are described in YAML and parsed into frozen dataclasses.  The kernel
never imports from this package; ingestion services receive the parsed
objects from their caller.
"""

from __future__ import annotations

from sheetsync_config.loader import (
    compute_checksum,
    load_job_config,
    load_yaml_file,
    parse_job_config,
)
from sheetsync_config.schema import (
    ExtractionSettings,
    HierarchySettings,
    ScanSettings,
    SyncJobConfig,
    TransportConfig,
    strip_scheme,
)

__all__ = [
    "ExtractionSettings",
    "HierarchySettings",
    "ScanSettings",
    "SyncJobConfig",
    "TransportConfig",
    "compute_checksum",
    "load_job_config",
    "load_yaml_file",
    "parse_job_config",
    "strip_scheme",
]
