"""
Score Ingestion

Modules:
- common: Shared validation, percent/grade and date helpers
- batch_manual: BATCH-MANUAL JSON (file uploads and direct submissions)
- kai: FLO/EAG network API pulls for IIDX and SDVX
- eamusement_csv: Official e-amusement IIDX score CSV
- import_types: Import type registry and dispatch
"""


def __getattr__(name):
    """Lazy imports to avoid RuntimeWarning when running modules directly."""
    if name == "parse_import":
        from score_import.ingestion.import_types import parse_import
        return parse_import
    if name == "ImportType":
        from score_import.ingestion.import_types import ImportType
        return ImportType
    if name == "ParserResult":
        from score_import.ingestion.common import ParserResult
        return ParserResult
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
