"""
sheetsync_ingestion -- Remote spreadsheet extraction and hierarchy propagation.

Provides the SFTP transport session, streaming row sources, bounded-memory
extractors, the dimension scanner, and the level-ordered hierarchy upsert
orchestrator.

Architecture:
    sheetsync_ingestion/ is a top-level package. Nothing in sheetsync_kernel
    imports from it.
"""
