"""
Import Core

Modules:
- hydrate: DryScore to persisted Score
- calculated_data: Per-score rating figures
- session_calc: Session aggregate figures
- name_generation: Random session names
- sessions: Session clustering
- rating: Profile rating rollup
"""


def __getattr__(name):
    """Lazy imports to avoid RuntimeWarning when running modules directly."""
    if name == "hydrate_score":
        from score_import.core.hydrate import hydrate_score
        return hydrate_score
    if name == "create_sessions":
        from score_import.core.sessions import create_sessions
        return create_sessions
    if name == "SessionLockRegistry":
        from score_import.core.sessions import SessionLockRegistry
        return SessionLockRegistry
    if name == "update_user_game_stats":
        from score_import.core.rating import update_user_game_stats
        return update_user_game_stats
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
