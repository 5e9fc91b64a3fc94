"""
Cheap pre-screen deciding which chat messages are worth a model call.

The filter favours precision over recall: most chat is harmless, and a missed
evaluation only means the model never sees that message. The model, not this
filter, decides what gets moderated.
"""

from __future__ import annotations

from typing import Iterable, Sequence

MIN_MESSAGE_LENGTH = 5
CAPS_MIN_LENGTH = 10
CAPS_RATIO_THRESHOLD = 0.7
REPEAT_RUN_LENGTH = 5

SUSPICIOUS_SUBSTRINGS = (
    "http://",
    "https://",
    "@everyone",
    "@here",
)

# Channel emote prefix; a lone emote token is never worth evaluating
DEFAULT_EMOTE_PREFIXES = ("soypet2",)

# Chat bots and the channel owner are never moderated
DEFAULT_SKIP_USERS = (
    "Nightbot",
    "StreamElements",
    "Streamlabs",
    "Moobot",
    "Pedro_el_asistente",
    "soypetetech",
)


def has_repeated_chars(text: str, run_length: int = REPEAT_RUN_LENGTH) -> bool:
    """Return True if any character repeats ``run_length`` or more times in a row."""
    if len(text) < run_length:
        return False

    count = 1
    for previous, current in zip(text, text[1:]):
        if current == previous:
            count += 1
            if count >= run_length:
                return True
        else:
            count = 1
    return False


def uppercase_ratio(text: str) -> float:
    """Return the share of ASCII uppercase letters among all characters of ``text``."""
    if not text:
        return 0.0
    upper = sum(1 for char in text if "A" <= char <= "Z")
    return upper / len(text)


def is_emote_only(text: str, emote_prefixes: Sequence[str] = DEFAULT_EMOTE_PREFIXES) -> bool:
    """Return True for a single non-spaced token starting with a channel emote prefix."""
    if " " in text:
        return False
    return any(text.startswith(prefix) for prefix in emote_prefixes)


def needs_evaluation(text: str, emote_prefixes: Sequence[str] = DEFAULT_EMOTE_PREFIXES) -> bool:
    """Decide whether a message should be sent to the model.

    Messages shorter than five characters and lone emotes are never evaluated.
    Otherwise a message qualifies when it contains a link or mass mention, is
    longer than ten characters with more than 70% uppercase letters, or
    contains a run of five identical characters.
    """
    if len(text) < MIN_MESSAGE_LENGTH:
        return False

    if is_emote_only(text, emote_prefixes):
        return False

    lowered = text.lower()
    if any(pattern in lowered for pattern in SUSPICIOUS_SUBSTRINGS):
        return True

    if len(text) > CAPS_MIN_LENGTH and uppercase_ratio(text) > CAPS_RATIO_THRESHOLD:
        return True

    return has_repeated_chars(text, REPEAT_RUN_LENGTH)


def should_skip_user(name: str, skip_users: Iterable[str] = DEFAULT_SKIP_USERS) -> bool:
    """Case-insensitive membership test against the skip-list."""
    folded = name.casefold()
    return any(folded == entry.casefold() for entry in skip_users)
