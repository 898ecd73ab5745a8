"""
Random session names, e.g. "Blazing Comet Ascends".
"""

import random

ADJECTIVES = (
    "Blazing", "Quiet", "Relentless", "Shimmering", "Frantic", "Gentle", "Electric",
    "Midnight", "Crimson", "Endless", "Hollow", "Radiant", "Stormy", "Velvet",
    "Wandering", "Sudden", "Golden", "Restless", "Frozen", "Neon",
)

NOUNS = (
    "Comet", "Rhythm", "Keyboard", "Turntable", "Groove", "Lantern", "Cascade",
    "Engine", "Horizon", "Pulse", "Spiral", "Tempo", "Echo", "Orbit", "Signal",
    "Meteor", "Circuit", "Harbor", "Thunder", "Prism",
)

VERBS = (
    "Ascends", "Stumbles", "Returns", "Dances", "Collapses", "Ignites", "Drifts",
    "Sprints", "Rebounds", "Awakens", "Wavers", "Shatters", "Persists", "Glides",
    "Erupts", "Lingers", "Charges", "Unravels", "Soars", "Endures",
)


def generate_session_name(rng: random.Random | None = None) -> str:
    """
    Build an "<Adjective> <Noun> <Verb>" session name.

    Args:
        rng: Optional random.Random for reproducible names

    Returns:
        Session name
    """
    rng = rng or random
    return f"{rng.choice(ADJECTIVES)} {rng.choice(NOUNS)} {rng.choice(VERBS)}"
