"""Heuristic intent classification."""

from __future__ import annotations

from doc_library.types import Intent

TROUBLE_TRIGGERS: tuple[str, ...] = ("error", "exception", "fail", "stack")

HOWTO_TRIGGERS: tuple[str, ...] = (
    "how", "howto", "how-to", "install", "installation", "configure",
    "configuration", "setup", "set", "set up", "calibrate", "calibration",
    "replace", "upgrade", "update", "clean", "reset", "connect", "deploy",
    "enable", "disable",
)


def detect_intent(normalized: str) -> Intent:
    """Classify lowercased text by substring containment.

    Substrings rather than whole tokens, so "failover" or "reinstalled" still
    count. Trouble indicators win when both kinds are present.
    """

    if any(trigger in normalized for trigger in TROUBLE_TRIGGERS):
        return Intent.TROUBLESHOOT
    if any(trigger in normalized for trigger in HOWTO_TRIGGERS):
        return Intent.HOWTO
    return Intent.UNKNOWN
