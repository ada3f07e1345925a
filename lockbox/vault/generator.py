"""
Password Generator — CSPRNG-backed password, passphrase and username generation.

Every character is drawn with ``secrets.choice``, which samples uniformly
(rejection sampling over the OS CSPRNG), so larger pools carry no modulo
bias.
"""
import re
import secrets
import string
from typing import Optional

from pydantic import BaseModel

from .errors import ValidationError

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
NUMBERS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
DEFAULT_POOL = LOWERCASE + UPPERCASE + NUMBERS

PRODUCT_KEY_POOL = UPPERCASE + NUMBERS

PASSPHRASE_WORDS = (
    "apple", "banana", "cherry", "dragon", "eagle", "forest", "guitar", "horizon",
    "island", "jungle", "knight", "lightning", "mountain", "nebula", "ocean", "phoenix",
    "quantum", "river", "shadow", "thunder", "umbrella", "valley", "whisper", "xenial",
    "yellow", "zealous", "anchor", "beacon", "castle", "diamond", "element", "flower",
)

_ADJECTIVES = (
    "swift", "rapid", "silent", "noble", "brave", "smart", "quick", "dark",
    "cyber", "digital", "epic", "ultra", "mega", "nexus", "apex", "sonic",
    "volt", "nova", "titan", "zen",
)
_NOUNS = (
    "fox", "wolf", "hawk", "dragon", "phoenix", "tiger", "ninja", "shadow",
    "knight", "viper", "ace", "sage", "storm", "forge", "blaze", "prime",
    "core", "flux", "spark", "blade",
)


def _check_length(length: int) -> None:
    if not isinstance(length, int) or isinstance(length, bool) or length < 1:
        raise ValidationError(f"length must be a positive integer, got {length!r}")


def character_pool(
    uppercase: bool = True,
    lowercase: bool = True,
    numbers: bool = True,
    symbols: bool = True,
) -> str:
    """Union of the enabled character classes, or the alphanumeric default."""
    pool = ""
    if uppercase:
        pool += UPPERCASE
    if lowercase:
        pool += LOWERCASE
    if numbers:
        pool += NUMBERS
    if symbols:
        pool += SYMBOLS
    return pool or DEFAULT_POOL


def generate_password(
    length: int = 16,
    uppercase: bool = True,
    lowercase: bool = True,
    numbers: bool = True,
    symbols: bool = True,
) -> str:
    """Generate a random password.

    Args:
        length: Number of characters (policy bounds belong to the caller).
        uppercase: Include A-Z.
        lowercase: Include a-z.
        numbers: Include 0-9.
        symbols: Include punctuation.

    Returns:
        Random password drawn uniformly from the enabled pool.
    """
    _check_length(length)
    pool = character_pool(uppercase, lowercase, numbers, symbols)
    return "".join(secrets.choice(pool) for _ in range(length))


def generate_passphrase(word_count: int = 8, separator: str = "-") -> str:
    """Generate a word passphrase, first word capitalized."""
    _check_length(word_count)
    words = [secrets.choice(PASSPHRASE_WORDS) for _ in range(word_count)]
    words[0] = words[0].capitalize()
    return separator.join(words)


def generate_username(
    length: int = 10, uppercase: bool = True, numbers: bool = True
) -> str:
    """Generate an adjective+noun username, padded or cut to ``length``."""
    _check_length(length)
    username = secrets.choice(_ADJECTIVES) + secrets.choice(_NOUNS)
    if numbers and len(username) < length:
        digits = min(3, length - len(username))
        username += "".join(secrets.choice(NUMBERS) for _ in range(digits))
    if uppercase:
        username = username[0].upper() + username[1:]
    filler = LOWERCASE + (NUMBERS if numbers else "")
    while len(username) < length:
        username += secrets.choice(filler)
    return username[:length]


def generate_product_key(groups: int = 5, group_size: int = 5) -> str:
    """Generate a license-style key such as ``ABCDE-12345-...``."""
    _check_length(groups)
    _check_length(group_size)
    return "-".join(
        "".join(secrets.choice(PRODUCT_KEY_POOL) for _ in range(group_size))
        for _ in range(groups)
    )


class PasswordStrength(BaseModel):
    """Heuristic strength score (0-100) with improvement hints."""

    score: int
    feedback: list[str]

    @property
    def label(self) -> str:
        if self.score >= 80:
            return "strong"
        if self.score >= 50:
            return "fair"
        return "weak"


def calculate_strength(password: Optional[str]) -> PasswordStrength:
    """Score a password on length, variety and obvious patterns."""
    if not password:
        return PasswordStrength(score=0, feedback=["Password is empty"])

    score = 0
    feedback: list[str] = []
    length = len(password)

    for tier, points in ((8, 10), (12, 15), (16, 15), (20, 10)):
        if length >= tier:
            score += points

    has_lower = re.search(r"[a-z]", password) is not None
    has_upper = re.search(r"[A-Z]", password) is not None
    has_digit = re.search(r"[0-9]", password) is not None
    has_symbol = re.search(r"[^a-zA-Z0-9]", password) is not None
    score += 10 * has_lower + 10 * has_upper + 10 * has_digit + 15 * has_symbol

    if re.search(r"(.)\1{2,}", password):
        score -= 10
        feedback.append("Avoid repeated characters")
    if re.fullmatch(r"[a-zA-Z]+", password):
        score -= 5
        feedback.append("Add numbers or symbols")
    if re.fullmatch(r"[0-9]+", password):
        score -= 15
        feedback.append("Add letters and symbols")

    if length < 8:
        feedback.append("Use at least 8 characters")
    if not has_upper:
        feedback.append("Add uppercase letters")
    if not has_lower:
        feedback.append("Add lowercase letters")
    if not has_digit:
        feedback.append("Add numbers")
    if not has_symbol:
        feedback.append("Add special characters")

    return PasswordStrength(score=max(0, min(100, score)), feedback=feedback)
