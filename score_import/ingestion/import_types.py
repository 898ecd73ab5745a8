"""
Import type registry.

Maps each import type to the parser that turns its payload into a
ParserResult. Parsers differ in what they need beyond the payload (a
playtype for CSVs, a service for API pulls), so each entry adapts the
common call `parse_import(import_type, payload, logger, **options)`.
"""

from enum import Enum

from score_import.failures import ScoreImportFatalError
from score_import.ingestion.batch_manual import parse_batch_manual
from score_import.ingestion.common import ParserResult
from score_import.ingestion.eamusement_csv import parse_eamusement_iidx_csv
from score_import.ingestion.kai import parse_kai_iidx, parse_kai_sdvx


class ImportType(str, Enum):
    BATCH_MANUAL = "file/batch-manual"
    DIRECT_MANUAL = "ir/direct-manual"
    EAMUSEMENT_IIDX_CSV = "file/eamusement-iidx-csv"
    FLO_IIDX = "api/flo-iidx"
    EAG_IIDX = "api/eag-iidx"
    FLO_SDVX = "api/flo-sdvx"
    EAG_SDVX = "api/eag-sdvx"


def _batch_manual(import_type: ImportType):
    def parse(payload, logger, **options):
        return parse_batch_manual(payload, import_type.value, logger)
    return parse


def _eamusement_csv(payload, logger, playtype=None, version=None, **options):
    if playtype is None:
        raise ScoreImportFatalError(400, "No playtype provided - e-amusement CSVs need SP or DP.")
    return parse_eamusement_iidx_csv(payload, playtype, logger, version=version)


def _kai(parser, service: str):
    def parse(payload, logger, fetch=None, **options):
        if fetch is None:
            return parser(service, payload, logger)
        return parser(service, payload, logger, fetch=fetch)
    return parse


PARSERS = {
    ImportType.BATCH_MANUAL: _batch_manual(ImportType.BATCH_MANUAL),
    ImportType.DIRECT_MANUAL: _batch_manual(ImportType.DIRECT_MANUAL),
    ImportType.EAMUSEMENT_IIDX_CSV: _eamusement_csv,
    ImportType.FLO_IIDX: _kai(parse_kai_iidx, "FLO"),
    ImportType.EAG_IIDX: _kai(parse_kai_iidx, "EAG"),
    ImportType.FLO_SDVX: _kai(parse_kai_sdvx, "FLO"),
    ImportType.EAG_SDVX: _kai(parse_kai_sdvx, "EAG"),
}


def parse_import(import_type, payload, logger, **options) -> ParserResult:
    """
    Parse a payload with the parser registered for its import type.

    Args:
        import_type: ImportType or its string value
        payload: File contents, decoded JSON or API token, depending on type
        logger: Logger for this import
        **options: Parser-specific options (playtype, version, fetch)

    Returns:
        ParserResult with import_type filled in

    Raises:
        ScoreImportFatalError: Unknown import type, or the parser rejected the payload
    """
    try:
        import_type = ImportType(import_type)
    except ValueError:
        raise ScoreImportFatalError(
            400, f"Unknown import type {import_type} - expected any of {', '.join(t.value for t in ImportType)}"
        )

    result = PARSERS[import_type](payload, logger, **options)
    result.import_type = import_type.value
    return result
