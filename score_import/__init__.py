"""
Rhythm Score Import - Core Package

This package contains the modules for:
- Score ingestion from supported formats (score_import.ingestion)
- Hydration, derived ratings and session clustering (score_import.core)
- Document storage (score_import.storage)
- Shared configuration and utilities
"""

from score_import.config import *
