import random
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .errors import InsufficientRoles, InvalidRoleCounts

T = TypeVar("T")


class Role(str, Enum):
    WOLF = "wolf"
    VILLAGER = "villager"
    SEER = "seer"
    GUARD = "guard"
    SCEMO = "scemo"
    HUNTER = "hunter"
    WITCH = "witch"
    LARA = "lara"
    MAYOR = "mayor"
    HITMAN = "hitman"
    MEDIUM = "medium"
    ROMEO = "romeo"
    GIULIETTA = "giulietta"


# Role that a death reveal falls back to when nobody dealt the dead player a card
BASE_ROLE = Role.VILLAGER
DOUBLE_VOTE_ROLE = Role.MAYOR
REVEAL_ROLE = Role.MEDIUM
PAIRED_ROLES = (Role.ROMEO, Role.GIULIETTA)
MAX_COUPLES = 2
# per-key ceiling on host-supplied counts
MAX_ROLE_COUNT = 100

# count key sent by the host -> token it puts in the deck
COUNT_KEYS: Dict[str, Role] = {
    "wolves": Role.WOLF,
    "villagers": Role.VILLAGER,
    "seers": Role.SEER,
    "guards": Role.GUARD,
    "scemo": Role.SCEMO,
    "hunter": Role.HUNTER,
    "witch": Role.WITCH,
    "lara": Role.LARA,
    "mayor": Role.MAYOR,
    "hitman": Role.HITMAN,
    "medium": Role.MEDIUM,
}
COUPLE_KEY = "couple"


def same_role(role: Optional[str], expected: Role) -> bool:
    return (role or "").strip().lower() == expected.value


def normalize_role_counts(raw: Optional[Mapping[str, object]]) -> Dict[str, int]:
    """Turn a host-supplied mapping into a full count table.

    Every known key is present in the result (missing keys count as 0), unknown
    keys are dropped and the couple count is capped at MAX_COUPLES. Raises
    InvalidRoleCounts for negative, non-integer or oversized values.
    """
    raw = raw or {}
    if not isinstance(raw, Mapping):
        raise InvalidRoleCounts()
    counts: Dict[str, int] = {}
    for key in list(COUNT_KEYS) + [COUPLE_KEY]:
        value = raw.get(key, 0)
        if value is None:
            value = 0
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise InvalidRoleCounts(f"Invalid count for {key}")
        try:
            number = int(value)
        except ValueError:
            raise InvalidRoleCounts(f"Invalid count for {key}")
        if number < 0:
            raise InvalidRoleCounts(f"Count for {key} cannot be negative")
        if number > MAX_ROLE_COUNT:
            raise InvalidRoleCounts(f"Count for {key} cannot exceed {MAX_ROLE_COUNT}")
        counts[key] = number
    counts[COUPLE_KEY] = min(counts[COUPLE_KEY], MAX_COUPLES)
    return counts


def deck_size(counts: Mapping[str, int]) -> int:
    """Number of cards build_role_deck would produce, without building it."""
    couples = max(0, min(counts.get(COUPLE_KEY, 0), MAX_COUPLES))
    return sum(counts.get(key, 0) for key in COUNT_KEYS) + 2 * couples


def build_role_deck(counts: Mapping[str, int]) -> List[str]:
    """Expand a normalised count table into one token per dealt card."""
    deck: List[str] = []
    for key, role in COUNT_KEYS.items():
        deck.extend([role.value] * counts.get(key, 0))
    couples = max(0, min(counts.get(COUPLE_KEY, 0), MAX_COUPLES))
    deck.extend([Role.ROMEO.value] * couples)
    deck.extend([Role.GIULIETTA.value] * couples)
    return deck


def shuffle(items: List[T], rng: Optional[random.Random] = None) -> None:
    """In-place Fisher-Yates shuffle, backed by the OS entropy source by default."""
    rng = rng or random.SystemRandom()
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]


def deal_roles(
    deck: Sequence[str], candidates: Sequence[T], rng: Optional[random.Random] = None
) -> List[Tuple[T, str]]:
    """Shuffle deck and candidates independently and zip them index for index.

    Surplus cards are discarded. The candidates come back in their shuffled
    order, which is also the order couples get matched in.
    """
    if len(deck) < len(candidates):
        raise InsufficientRoles(len(deck), len(candidates))
    cards = list(deck)
    people = list(candidates)
    shuffle(cards, rng)
    shuffle(people, rng)
    return list(zip(people, cards))
