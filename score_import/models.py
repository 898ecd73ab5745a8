"""
Data models for the score import pipeline.

Catalog entities (Song, Chart) are read-only here. DryScore is the transient
converter output; Score and Session are persisted as camelCase documents via
to_doc()/from_doc().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


# --- Catalog ---
@dataclass(frozen=True)
class Song:
    id: int
    game: str
    title: str
    artist: str = ""
    alt_titles: tuple = ()
    search_terms: tuple = ()
    first_version: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: dict) -> "Song":
        return cls(
            id=int(doc["id"]),
            game=doc["game"],
            title=doc["title"],
            artist=doc.get("artist", ""),
            alt_titles=tuple(doc.get("altTitles", ())),
            search_terms=tuple(doc.get("searchTerms", ())),
            first_version=doc.get("firstVersion"),
        )


@dataclass(frozen=True)
class Chart:
    """
    One playable variant of a song.

    `versions` lists the version tags during which the chart was playable;
    `is_primary` marks the current chart for its (song, playtype, difficulty).
    """

    chart_id: str
    song_id: int
    game: str
    playtype: str
    difficulty: str
    level: str
    level_num: float
    in_game_id: Any = None
    is_primary: bool = True
    versions: tuple = ()
    data: dict = field(default_factory=dict)

    @classmethod
    def from_doc(cls, doc: dict) -> "Chart":
        return cls(
            chart_id=doc["chartID"],
            song_id=int(doc["songID"]),
            game=doc["game"],
            playtype=doc["playtype"],
            difficulty=doc["difficulty"],
            level=str(doc.get("level", "?")),
            level_num=float(doc.get("levelNum") or 0),
            in_game_id=doc.get("inGameID"),
            is_primary=bool(doc.get("isPrimary", True)),
            versions=tuple(doc.get("versions", ())),
            data=dict(doc.get("data", {})),
        )


# --- Converter Output ---
@dataclass
class DryScoreData:
    score: float
    percent: float
    grade: str
    lamp: str
    hit_data: dict = field(default_factory=dict)
    hit_meta: dict = field(default_factory=dict)


@dataclass
class DryScore:
    game: str
    service: str
    import_type: str
    score_data: DryScoreData
    time_achieved: Optional[int] = None
    comment: Optional[str] = None
    score_meta: dict = field(default_factory=dict)


@dataclass
class ConverterResult:
    song: Song
    chart: Chart
    dry_score: DryScore


# --- Persisted Score ---
@dataclass
class ScoreData:
    score: float
    percent: float
    grade: str
    lamp: str
    grade_index: int
    lamp_index: int
    hit_data: dict = field(default_factory=dict)
    hit_meta: dict = field(default_factory=dict)

    def to_doc(self) -> dict:
        return {
            "score": self.score,
            "percent": self.percent,
            "grade": self.grade,
            "lamp": self.lamp,
            "gradeIndex": self.grade_index,
            "lampIndex": self.lamp_index,
            "hitData": dict(self.hit_data),
            "hitMeta": dict(self.hit_meta),
        }

    @classmethod
    def from_doc(cls, doc: dict) -> "ScoreData":
        return cls(
            score=doc["score"],
            percent=doc["percent"],
            grade=doc["grade"],
            lamp=doc["lamp"],
            grade_index=doc["gradeIndex"],
            lamp_index=doc["lampIndex"],
            hit_data=dict(doc.get("hitData", {})),
            hit_meta=dict(doc.get("hitMeta", {})),
        )


@dataclass
class Score:
    """One immutable record per real play (PB flags aside)."""

    score_id: str
    user_id: int
    game: str
    playtype: str
    difficulty: str
    chart_id: str
    song_id: int
    service: str
    import_type: str
    score_data: ScoreData
    calculated_data: dict
    time_achieved: Optional[int]
    time_added: int
    comment: Optional[str] = None
    score_meta: dict = field(default_factory=dict)
    highlight: bool = False
    is_score_pb: bool = False
    is_lamp_pb: bool = False

    def to_doc(self) -> dict:
        return {
            "scoreID": self.score_id,
            "userID": self.user_id,
            "game": self.game,
            "playtype": self.playtype,
            "difficulty": self.difficulty,
            "chartID": self.chart_id,
            "songID": self.song_id,
            "service": self.service,
            "importType": self.import_type,
            "scoreData": self.score_data.to_doc(),
            "calculatedData": self.calculated_data,
            "timeAchieved": self.time_achieved,
            "timeAdded": self.time_added,
            "comment": self.comment,
            "scoreMeta": dict(self.score_meta),
            "highlight": self.highlight,
            "isScorePB": self.is_score_pb,
            "isLampPB": self.is_lamp_pb,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> "Score":
        return cls(
            score_id=doc["scoreID"],
            user_id=doc["userID"],
            game=doc["game"],
            playtype=doc["playtype"],
            difficulty=doc["difficulty"],
            chart_id=doc["chartID"],
            song_id=doc["songID"],
            service=doc["service"],
            import_type=doc["importType"],
            score_data=ScoreData.from_doc(doc["scoreData"]),
            calculated_data=doc.get("calculatedData", {}),
            time_achieved=doc.get("timeAchieved"),
            time_added=doc["timeAdded"],
            comment=doc.get("comment"),
            score_meta=dict(doc.get("scoreMeta", {})),
            highlight=doc.get("highlight", False),
            is_score_pb=doc.get("isScorePB", False),
            is_lamp_pb=doc.get("isLampPB", False),
        )


# --- Sessions ---
@dataclass
class SessionScoreInfo:
    """Lightweight reference to a session member plus its deltas vs the previous PB."""

    score_id: str
    is_new_score: bool
    grade_delta: Optional[int] = None
    lamp_delta: Optional[int] = None
    percent_delta: Optional[float] = None
    score_delta: Optional[float] = None

    def to_doc(self) -> dict:
        if self.is_new_score:
            return {"scoreID": self.score_id, "isNewScore": True}

        return {
            "scoreID": self.score_id,
            "isNewScore": False,
            "gradeDelta": self.grade_delta,
            "lampDelta": self.lamp_delta,
            "percentDelta": self.percent_delta,
            "scoreDelta": self.score_delta,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> "SessionScoreInfo":
        return cls(
            score_id=doc["scoreID"],
            is_new_score=doc["isNewScore"],
            grade_delta=doc.get("gradeDelta"),
            lamp_delta=doc.get("lampDelta"),
            percent_delta=doc.get("percentDelta"),
            score_delta=doc.get("scoreDelta"),
        )


@dataclass
class Session:
    session_id: str
    user_id: int
    game: str
    playtype: str
    import_type: str
    name: str
    score_info: list
    time_inserted: int
    time_started: int
    time_ended: int
    calculated_data: dict
    desc: Optional[str] = None
    highlight: bool = False

    def to_doc(self) -> dict:
        return {
            "sessionID": self.session_id,
            "userID": self.user_id,
            "game": self.game,
            "playtype": self.playtype,
            "importType": self.import_type,
            "name": self.name,
            "desc": self.desc,
            "highlight": self.highlight,
            "scoreInfo": [info.to_doc() for info in self.score_info],
            "timeInserted": self.time_inserted,
            "timeStarted": self.time_started,
            "timeEnded": self.time_ended,
            "calculatedData": self.calculated_data,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> "Session":
        return cls(
            session_id=doc["sessionID"],
            user_id=doc["userID"],
            game=doc["game"],
            playtype=doc["playtype"],
            import_type=doc["importType"],
            name=doc["name"],
            score_info=[SessionScoreInfo.from_doc(d) for d in doc.get("scoreInfo", [])],
            time_inserted=doc["timeInserted"],
            time_started=doc["timeStarted"],
            time_ended=doc["timeEnded"],
            calculated_data=doc.get("calculatedData", {}),
            desc=doc.get("desc"),
            highlight=doc.get("highlight", False),
        )


# --- Import Results ---
@dataclass(frozen=True)
class SessionInfoReturn:
    session_id: str
    type: str  # "Created" or "Appended"

    def to_dict(self) -> dict:
        return {"sessionID": self.session_id, "type": self.type}


@dataclass(frozen=True)
class ImportFailureRecord:
    index: int
    failure_kind: str
    message: str

    def to_dict(self) -> dict:
        return {"index": self.index, "failureKind": self.failure_kind, "message": self.message}


@dataclass
class ImportResult:
    """What one import batch produced, for the API layer to turn into a response."""

    score_ids: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    session_info: list = field(default_factory=list)
    ratings: dict = field(default_factory=dict)
    skipped: int = 0

    def to_dict(self) -> dict:
        return {
            "scoreIDs": list(self.score_ids),
            "errors": [e.to_dict() for e in self.errors],
            "sessionInfo": [s.to_dict() for s in self.session_info],
            "ratings": self.ratings,
            "skipped": self.skipped,
        }
