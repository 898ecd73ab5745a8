"""
Session clustering.

Groups a batch of newly imported scores into play sessions. Scores are split
wherever more than SESSION_INACTIVITY_MS passes between consecutive plays;
each group then either extends a nearby existing session or becomes a new
one.

Creating-or-extending a session is a read-then-write sequence with no
transactional guard, so everything for one (user, game, playtype) runs
sequentially under a lock from SessionLockRegistry.

Usage:
    locks = SessionLockRegistry()
    info = await create_sessions(store, user_id, import_type, game, scores_by_playtype, logger, locks)
"""

import asyncio
import secrets
import time

from score_import.config import (
    PBS_COLLECTION,
    SCORES_COLLECTION,
    SESSION_ID_PREFIX,
    SESSION_INACTIVITY_MS,
    SESSIONS_COLLECTION,
)
from score_import.core.name_generation import generate_session_name
from score_import.core.session_calc import create_session_calc_data
from score_import.models import Score, Session, SessionInfoReturn, SessionScoreInfo
from score_import.utils import append_log_ctx, log_verbose


class SessionLockRegistry:
    """One asyncio.Lock per (user, game, playtype)."""

    def __init__(self):
        self._locks = {}

    def get(self, user_id: int, game: str, playtype: str) -> asyncio.Lock:
        key = (user_id, game, playtype)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]


def create_session_id() -> str:
    return f"{SESSION_ID_PREFIX}{secrets.token_hex(20)}"


# --- Grouping ---
def group_scores_by_time(scores: list) -> list:
    """
    Split timestamped scores into groups separated by inactivity gaps.

    Args:
        scores: Scores with a time_achieved

    Returns:
        List of non-empty groups, each sorted by time_achieved
    """
    ordered = sorted(scores, key=lambda s: s.time_achieved)

    groups = []
    current = []
    last_timestamp = None

    for score in ordered:
        if last_timestamp is not None and score.time_achieved - last_timestamp > SESSION_INACTIVITY_MS:
            groups.append(current)
            current = []
        current.append(score)
        last_timestamp = score.time_achieved

    if current:
        groups.append(current)

    return groups


# --- Score Info ---
def process_score_into_session_score_info(score: Score, previous_pb) -> SessionScoreInfo:
    """
    Describe a session member relative to the PB it had before this import.

    Args:
        score: New score
        previous_pb: PB document for the same chart, or None

    Returns:
        SessionScoreInfo; a score with no previous PB is a new score
    """
    if not previous_pb:
        return SessionScoreInfo(score_id=score.score_id, is_new_score=True)

    pb_data = previous_pb["scoreData"]
    data = score.score_data

    return SessionScoreInfo(
        score_id=score.score_id,
        is_new_score=False,
        grade_delta=data.grade_index - pb_data["gradeIndex"],
        lamp_delta=data.lamp_index - pb_data["lampIndex"],
        percent_delta=data.percent - pb_data["percent"],
        score_delta=data.score - pb_data["score"],
    )


async def _previous_pbs(store, user_id: int, chart_ids: list) -> dict:
    pbs = await store.find(
        PBS_COLLECTION,
        {"userID": user_id, "chartID": {"$in": chart_ids}, "isPrimary": True},
    )
    return {pb["chartID"]: pb for pb in pbs}


# --- Session Lookup ---
async def find_nearby_session(store, user_id: int, game: str, playtype: str, start: int, end: int, logger):
    """
    Find an existing session close enough to a group to absorb it.

    A session matches if it starts or ends within SESSION_INACTIVITY_MS of the
    group, or fully encloses it. When several match, the earliest starting one
    wins.

    Returns:
        Session or None
    """
    window = {"$gte": start - SESSION_INACTIVITY_MS, "$lte": end + SESSION_INACTIVITY_MS}

    docs = await store.find(
        SESSIONS_COLLECTION,
        {
            "userID": user_id,
            "game": game,
            "playtype": playtype,
            "$or": [
                {"timeStarted": window},
                {"timeEnded": window},
                {"timeStarted": {"$lte": start}, "timeEnded": {"$gte": end}},
            ],
        },
        sort=[("timeStarted", 1), ("sessionID", 1)],
    )

    if not docs:
        return None

    if len(docs) > 1:
        logger.warning(
            f"{len(docs)} sessions overlap {start}-{end} for {user_id} ({game} {playtype}); "
            f"using {docs[0]['sessionID']}."
        )

    return Session.from_doc(docs[0])


async def get_scores_from_session(store, session: Session) -> list:
    """Fetch a session's member scores, in scoreInfo order."""
    score_ids = [info.score_id for info in session.score_info]
    docs = await store.find(SCORES_COLLECTION, {"scoreID": {"$in": score_ids}})
    by_id = {doc["scoreID"]: Score.from_doc(doc) for doc in docs}
    return [by_id[sid] for sid in score_ids if sid in by_id]


# --- Session Building ---
def update_existing_session(session: Session, new_info: list, old_scores: list, new_scores: list) -> Session:
    """
    Merge a group of new scores into an existing session.

    Score IDs already in the session are not appended twice. Bounds only ever
    widen.
    """
    existing_ids = {info.score_id for info in session.score_info}
    fresh_info = [info for info in new_info if info.score_id not in existing_ids]
    fresh_scores = [s for s in new_scores if s.score_id not in existing_ids]

    session.score_info = session.score_info + fresh_info
    session.calculated_data = create_session_calc_data(old_scores + fresh_scores)

    timestamps = [s.time_achieved for s in new_scores]
    session.time_started = min([session.time_started] + timestamps)
    session.time_ended = max([session.time_ended] + timestamps)

    return session


def create_session(
    user_id: int, import_type: str, group_info: list, group_scores: list, game: str, playtype: str, rng=None
) -> Session:
    return Session(
        session_id=create_session_id(),
        user_id=user_id,
        game=game,
        playtype=playtype,
        import_type=import_type,
        name=generate_session_name(rng),
        score_info=group_info,
        time_inserted=int(time.time() * 1000),
        time_started=group_scores[0].time_achieved,
        time_ended=group_scores[-1].time_achieved,
        calculated_data=create_session_calc_data(group_scores),
    )


# --- Entry Points ---
async def load_scores_into_sessions(
    store, user_id: int, import_type: str, scores: list, game: str, playtype: str, base_logger, rng=None
) -> list:
    """
    Cluster one playtype's new scores into sessions.

    Must run under the (user, game, playtype) lock.

    Returns:
        List of SessionInfoReturn, one per group
    """
    logger = append_log_ctx(base_logger, "Session Generation")

    timestamped = []
    for score in scores:
        if score.time_achieved is None:
            log_verbose(logger, f"Ignored score {score.score_id}, as it had no timeAchieved.")
            continue
        timestamped.append(score)

    if not timestamped:
        log_verbose(logger, "Skipped calculating sessions as there were no timestamped scores.")
        return []

    groups = group_scores_by_time(timestamped)
    log_verbose(logger, f"Created {len(groups)} groups from timestamped scores.")

    info_returns = []

    for group in groups:
        start = group[0].time_achieved
        end = group[-1].time_achieved

        pb_map = await _previous_pbs(store, user_id, list({s.chart_id for s in group}))
        group_info = [process_score_into_session_score_info(s, pb_map.get(s.chart_id)) for s in group]

        nearby = await find_nearby_session(store, user_id, game, playtype, start, end, logger)

        if nearby is not None:
            log_verbose(logger, f"Found nearby session for {user_id} ({game} {playtype}) around {start} {end}.")

            current_doc = await store.find_one(SESSIONS_COLLECTION, {"sessionID": nearby.session_id})
            current = Session.from_doc(current_doc) if current_doc else nearby

            old_scores = await get_scores_from_session(store, current)
            session = update_existing_session(current, group_info, old_scores, group)

            await store.update_one(SESSIONS_COLLECTION, {"sessionID": session.session_id}, session.to_doc())
            info_returns.append(SessionInfoReturn(session_id=session.session_id, type="Appended"))
        else:
            logger.debug(f"Creating new session for {user_id} ({game} {playtype}) around {start} {end}.")

            session = create_session(user_id, import_type, group_info, group, game, playtype, rng)

            await store.insert(SESSIONS_COLLECTION, session.to_doc())
            info_returns.append(SessionInfoReturn(session_id=session.session_id, type="Created"))

    return info_returns


async def create_sessions(
    store, user_id: int, import_type: str, game: str, scores_by_playtype: dict, logger, locks: SessionLockRegistry, rng=None
) -> list:
    """
    Cluster every playtype's new scores into sessions.

    Args:
        store: DocumentStore
        user_id: Owner of the scores
        import_type: Import type of the batch
        game: Title identifier
        scores_by_playtype: {playtype: [Score, ...]}
        logger: Logger for this import
        locks: SessionLockRegistry shared by concurrent imports
        rng: Optional random.Random for session names

    Returns:
        List of SessionInfoReturn across all playtypes
    """
    all_info = []

    for playtype, scores in scores_by_playtype.items():
        async with locks.get(user_id, game, playtype):
            all_info.extend(
                await load_scores_into_sessions(store, user_id, import_type, scores, game, playtype, logger, rng)
            )

    return all_info
