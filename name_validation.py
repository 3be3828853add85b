"""
=============================================================================
NAME_VALIDATION.PY — Username and tree name checks
=============================================================================
Runs BEFORE anything touches the database: an invalid name is rejected
with a 400 and no write happens.

Matching is deliberately loose: every denylisted word matches either as a
whole word or as a bare substring, so "grass" is flagged because of "ass".
"""

import re

# Case-insensitive denylist, plus common obfuscations.
PROFANITY_LIST = [
    "damn", "crap", "shit", "fuck", "bitch", "ass", "asshole",
    "bastard", "dick", "cock", "pussy", "cunt", "whore", "slut",
    "fag", "nigger", "nigga", "retard", "retarded", "idiot",
    # obfuscated variants
    "sh1t", "f*ck", "b1tch", "a$$", "@ss", "fuk", "fuq", "phuck",
    "s**t", "b**ch", "d**k", "c**k", "sh!t", "a55", "azz",
]

MAX_USERNAME_LENGTH = 15
MAX_TREE_NAME_LENGTH = 15

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

# Obfuscated variants contain regex metacharacters, so every word is escaped.
_PROFANITY_PATTERNS = [
    re.compile(rf"\b{re.escape(word)}\b|{re.escape(word)}", re.IGNORECASE)
    for word in PROFANITY_LIST
]


def contains_profanity(text: str) -> bool:
    normalized = text.lower().strip()
    return any(pattern.search(normalized) for pattern in _PROFANITY_PATTERNS)


def validate_username(username: str) -> dict:
    """
    Returns {"valid": True} or {"valid": False, "error": "..."}.
    Length is checked on the trimmed value.
    """
    trimmed = username.strip()

    if not trimmed:
        return {"valid": False, "error": "Username is required"}

    if len(trimmed) > MAX_USERNAME_LENGTH:
        return {"valid": False, "error": f"Username must be {MAX_USERNAME_LENGTH} characters or less"}

    if contains_profanity(trimmed):
        return {"valid": False, "error": "Username contains inappropriate language"}

    if not USERNAME_PATTERN.match(trimmed):
        return {
            "valid": False,
            "error": "Username can only contain letters, numbers, underscores, and hyphens",
        }

    return {"valid": True}


def validate_tree_name(name: str) -> dict:
    """Same rules as usernames, minus the character restriction."""
    trimmed = name.strip()

    if not trimmed:
        return {"valid": False, "error": "Tree name is required"}

    if len(trimmed) > MAX_TREE_NAME_LENGTH:
        return {"valid": False, "error": f"Tree name must be {MAX_TREE_NAME_LENGTH} characters or less"}

    if contains_profanity(trimmed):
        return {"valid": False, "error": "Tree name contains inappropriate language"}

    return {"valid": True}
