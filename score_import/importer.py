"""
Score Importer

Runs one import batch end to end:

1. Convert every item concurrently, collecting per-item failures
2. Assign score IDs and skip plays that are already stored
3. Hydrate and insert the new scores
4. Cluster them into sessions, sequentially per (user, game, playtype)
5. Roll up profile ratings for every playtype the batch touched

Structural failures (ScoreImportFatalError) come from parsers and abort a
batch before any of the above starts.

Usage:
    python -m score_import.importer scores.json --user 1 --import-type file/batch-manual --store store.json
    OR
    from score_import.importer import ScoreImporter
"""

import argparse
import asyncio
import sys
from collections import defaultdict
from pathlib import Path

import pandas as pd

from score_import.config import (
    CONVERT_CONCURRENCY,
    INTERNAL_FAILURE_MESSAGE,
    OUTPUT_FOLDER,
    SCORES_COLLECTION,
    SESSIONS_COLLECTION,
)
from score_import.core.hydrate import create_score_id, hydrate_score
from score_import.core.rating import update_user_game_stats
from score_import.core.sessions import SessionLockRegistry, create_sessions
from score_import.failures import ConverterFailure, InternalFailure, ScoreImportFatalError
from score_import.ingestion.import_types import parse_import
from score_import.models import ImportFailureRecord, ImportResult
from score_import.storage import MemoryStore
from score_import.utils import SEVERE, append_log_ctx, atomic_write_csv, log_verbose, setup_logging

# --- Module Logger ---
logger = setup_logging(__name__)


class ScoreImporter:
    """
    Imports parsed batches into a DocumentStore.

    One importer can serve many users at once; session writes for the same
    (user, game, playtype) are serialized through the shared lock registry.
    """

    def __init__(self, store, locks: SessionLockRegistry | None = None, logger=logger, rng=None):
        self.store = store
        self.locks = locks or SessionLockRegistry()
        self._user_locks = {}
        self.logger = logger
        self.rng = rng

    def _user_lock(self, user_id: int) -> asyncio.Lock:
        if user_id not in self._user_locks:
            self._user_locks[user_id] = asyncio.Lock()
        return self._user_locks[user_id]

    # --- Conversion ---
    async def _convert_all(self, items: list, parser_result, import_type: str, log) -> list:
        semaphore = asyncio.Semaphore(CONVERT_CONCURRENCY)
        converter = parser_result.converter
        context = parser_result.context

        async def convert_one(index, item):
            async with semaphore:
                try:
                    return index, await converter(self.store, item, context, import_type, log), None
                except ConverterFailure as failure:
                    return index, None, failure
                except Exception as e:
                    log.log(SEVERE, f"Converter crashed on item {index}: {e!r}", exc_info=True)
                    return index, None, InternalFailure(INTERNAL_FAILURE_MESSAGE)

        return await asyncio.gather(*(convert_one(i, item) for i, item in enumerate(items)))

    @staticmethod
    def _failure_record(index: int, failure: ConverterFailure, log) -> ImportFailureRecord:
        if isinstance(failure, InternalFailure):
            message = INTERNAL_FAILURE_MESSAGE
        else:
            message = failure.message
            log_verbose(log, f"Item {index} failed ({failure.failure_kind}): {failure.message}")

        return ImportFailureRecord(index=index, failure_kind=failure.failure_kind, message=message)

    async def _insert_new_scores(self, user_id: int, candidates: list, result: ImportResult, log) -> list:
        """Skip stored or repeated score IDs, then hydrate and insert the rest."""
        existing = await self.store.find(
            SCORES_COLLECTION, {"scoreID": {"$in": [score_id for _, score_id, _ in candidates]}}
        )
        seen = {doc["scoreID"] for doc in existing}

        new_scores = []
        for index, score_id, converter_result in candidates:
            if score_id in seen:
                result.skipped += 1
                log_verbose(log, f"Skipped item {index}: score {score_id} already exists.")
                continue
            seen.add(score_id)

            try:
                score = hydrate_score(
                    user_id,
                    converter_result.dry_score,
                    converter_result.chart,
                    converter_result.song,
                    score_id,
                    log,
                )
            except InternalFailure as failure:
                result.errors.append(self._failure_record(index, failure, log))
                continue

            new_scores.append(score)

        if new_scores:
            await self.store.insert_many(SCORES_COLLECTION, [s.to_doc() for s in new_scores])

        return new_scores

    async def import_scores(self, user_id: int, import_type: str, parser_result) -> ImportResult:
        """
        Import one parsed batch for a user.

        Args:
            user_id: Owner of the scores
            import_type: Import type of the batch
            parser_result: ParserResult from parse_import or a format parser

        Returns:
            ImportResult with new score IDs, per-item failures, session info and ratings
        """
        log = append_log_ctx(self.logger, f"{import_type} {user_id}")
        result = ImportResult()

        iterable = parser_result.iterable
        if isinstance(iterable, list):
            items = iterable
        else:
            # API parsers page lazily with blocking requests.
            items = await asyncio.to_thread(list, iterable)

        log.info(f"Importing {len(items)} items.")

        # Step 1: Convert
        converted = await self._convert_all(items, parser_result, import_type, log)

        # Step 2: Assign IDs
        candidates = []
        for index, converter_result, failure in converted:
            if failure is not None:
                result.errors.append(self._failure_record(index, failure, log))
                continue
            score_id = create_score_id(user_id, converter_result.dry_score, converter_result.chart)
            candidates.append((index, score_id, converter_result))

        # Step 3: Hydrate and insert, one batch per user at a time
        async with self._user_lock(user_id):
            new_scores = await self._insert_new_scores(user_id, candidates, result, log)

        result.score_ids = [s.score_id for s in new_scores]
        log.info(
            f"Inserted {len(new_scores)} scores, skipped {result.skipped}, {len(result.errors)} failed."
        )

        if not new_scores:
            return result

        # Step 4: Sessions
        game = parser_result.game.value
        scores_by_playtype = defaultdict(list)
        for score in new_scores:
            scores_by_playtype[score.playtype].append(score)

        result.session_info = await create_sessions(
            self.store, user_id, import_type, game, dict(scores_by_playtype), log, self.locks, self.rng
        )

        # Step 5: Ratings
        for playtype in scores_by_playtype:
            result.ratings[playtype] = await update_user_game_stats(self.store, game, playtype, user_id, log)

        return result

    async def import_many(self, jobs) -> list:
        """
        Run independent batches concurrently.

        Args:
            jobs: Iterable of (user_id, import_type, parser_result)

        Returns:
            ImportResult per job, in order
        """
        return await asyncio.gather(
            *(self.import_scores(user_id, import_type, parser_result) for user_id, import_type, parser_result in jobs)
        )


# --- Export ---
async def export_user_data(store, user_id: int, output_folder: Path = OUTPUT_FOLDER) -> tuple:
    """
    Write a user's scores and sessions to CSV.

    Returns:
        Tuple of (scores_csv, sessions_csv) paths
    """
    scores = await store.find(SCORES_COLLECTION, {"userID": user_id}, sort=[("timeAchieved", 1)])
    sessions = await store.find(SESSIONS_COLLECTION, {"userID": user_id}, sort=[("timeStarted", 1)])

    scores_df = pd.json_normalize(scores) if scores else pd.DataFrame()

    sessions_df = pd.json_normalize(sessions) if sessions else pd.DataFrame()
    if not sessions_df.empty:
        sessions_df["scoreCount"] = sessions_df["scoreInfo"].apply(len)
        sessions_df = sessions_df.drop(columns=["scoreInfo"])

    scores_csv = output_folder / f"scores_{user_id}.csv"
    sessions_csv = output_folder / f"sessions_{user_id}.csv"

    atomic_write_csv(scores_df, scores_csv, index=False)
    atomic_write_csv(sessions_df, sessions_csv, index=False)

    return scores_csv, sessions_csv


# --- CLI ---
def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import a score file into a JSON-snapshot store.")
    parser.add_argument("file", type=Path, help="Score file (or API token file for api/* import types)")
    parser.add_argument("--user", type=int, required=True, help="User ID to import for")
    parser.add_argument("--import-type", required=True, help="e.g. file/batch-manual")
    parser.add_argument("--store", type=Path, required=True, help="JSON snapshot of the store")
    parser.add_argument("--playtype", help="Playtype for formats that do not carry one (SP/DP)")
    parser.add_argument("--version", help="Version to scope chart lookups to")
    parser.add_argument("--output", type=Path, default=OUTPUT_FOLDER, help="Folder for CSV exports")
    return parser


async def _run(args) -> ImportResult:
    payload = args.file.read_bytes()
    if args.import_type.startswith("api/"):
        payload = payload.decode("utf-8").strip()

    store = MemoryStore(snapshot_path=args.store)

    async with store:
        parser_result = parse_import(
            args.import_type, payload, logger, playtype=args.playtype, version=args.version
        )
        importer = ScoreImporter(store)
        result = await importer.import_scores(args.user, args.import_type, parser_result)
        scores_csv, sessions_csv = await export_user_data(store, args.user, args.output)

    logger.info(f"Exported scores to {scores_csv}")
    logger.info(f"Exported sessions to {sessions_csv}")
    return result


def main(argv=None) -> ImportResult:
    args = build_arg_parser().parse_args(argv)

    try:
        result = asyncio.run(_run(args))
    except ScoreImportFatalError as e:
        print(f"\nIMPORT FAILED ({e.status_code}): {e.message}")
        sys.exit(1)

    print("=" * 60)
    print("IMPORT COMPLETE")
    print(f"  New scores: {len(result.score_ids)}")
    print(f"  Skipped: {result.skipped}")
    print(f"  Failed: {len(result.errors)}")
    for info in result.session_info:
        print(f"  Session {info.session_id}: {info.type}")
    for playtype, stats in result.ratings.items():
        print(f"  {playtype} ratings: {stats['ratings']} {stats['customRatings']}")
    print("=" * 60)

    return result


if __name__ == "__main__":
    main()
