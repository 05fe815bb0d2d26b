import asyncio
import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .errors import InsufficientRoles
from .roles import (
    BASE_ROLE,
    DOUBLE_VOTE_ROLE,
    PAIRED_ROLES,
    REVEAL_ROLE,
    Role,
    build_role_deck,
    deal_roles,
    deck_size,
    normalize_role_counts,
    same_role,
)


def normalize_name(name: Optional[str]) -> str:
    return name.strip() if isinstance(name, str) else ""


def same_name(a: Optional[str], b: Optional[str]) -> bool:
    """Names are compared trimmed and case-insensitively everywhere."""
    return normalize_name(a).casefold() == normalize_name(b).casefold()


class Player:
    def __init__(self, name: str, connection: Optional[str] = None):
        self.name = name
        self.connection = connection
        self.online = connection is not None
        self.role = ""
        self.eliminated = False
        self.current_vote: Optional[str] = None

    def reset_round(self):
        self.role = ""
        self.current_vote = None
        self.eliminated = False

    def go_online(self, connection: str):
        self.connection = connection
        self.online = True

    def go_offline(self):
        self.connection = None
        self.online = False

    def has_role(self, role: Role) -> bool:
        return same_role(self.role, role)

    def __repr__(self):
        return f"Player({self.name!r}, role={self.role!r}, eliminated={self.eliminated})"


class CoupleState:
    """The tracked romeo/giulietta pair and where they currently sleep."""

    def __init__(self, romeo: str, giulietta: str, sleep_at: str = Role.ROMEO.value):
        self.romeo = romeo
        self.giulietta = giulietta
        self.sleep_at = sleep_at

    @property
    def giulietta_sheltered(self) -> bool:
        return self.sleep_at == Role.ROMEO.value


@dataclass
class VoteTally:
    votes: int = 0
    voted_by: List[str] = field(default_factory=list)


@dataclass
class DealtRound:
    candidates: List[Player]
    pairs: List[tuple]


@dataclass
class EliminationOutcome:
    target: Optional[Player] = None
    vetoed: bool = False
    sheltered_by: Optional[str] = None
    eliminated: List[Player] = field(default_factory=list)
    couple_died: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.eliminated)


class Room:
    """One game session. Callers hold `lock` around every mutation."""

    def __init__(self, room_id: str, host_name: str, host_secret: str, host_connection: Optional[str] = None):
        self.id = room_id
        self.host_name = normalize_name(host_name)
        self.host_secret = host_secret
        self.host_connection = host_connection
        self.players: List[Player] = []
        self.game_started = False
        self.voting_open = False
        self.couple: Optional[CoupleState] = None
        self.role_counts: Optional[Dict[str, int]] = None
        self.lock = asyncio.Lock()

    # ----- roster -----

    def is_host_name(self, name: Optional[str]) -> bool:
        return same_name(name, self.host_name)

    def find_player(self, name: Optional[str]) -> Optional[Player]:
        for player in self.players:
            if same_name(player.name, name):
                return player
        return None

    def find_player_by_connection(self, connection: str) -> Optional[Player]:
        for player in self.players:
            if player.connection == connection:
                return player
        return None

    def add_player(self, name: str, connection: str) -> Player:
        player = Player(normalize_name(name), connection)
        self.players.append(player)
        return player

    def remove_player(self, player: Player):
        self.players.remove(player)

    # ----- phases -----

    def _reset_round(self):
        for player in self.players:
            player.reset_round()
        self.couple = None
        self.voting_open = False

    def restart(self):
        self._reset_round()
        self.game_started = False
        self.role_counts = None

    def start_game(self, raw_counts: Optional[Mapping[str, object]], rng: Optional[random.Random] = None) -> DealtRound:
        """Re-deal a fresh round.

        Counts and deck size are validated before anything is touched, so a
        rejected start leaves the room exactly as it was. A re-deal clears every
        eliminated flag, so the whole roster is the candidate pool.
        """
        counts = normalize_role_counts(raw_counts)
        size = deck_size(counts)
        if size < len(self.players):
            raise InsufficientRoles(size, len(self.players))
        deck = build_role_deck(counts)

        self._reset_round()
        candidates = [p for p in self.players if not p.eliminated]
        dealt = deal_roles(deck, candidates, rng)
        for player, role in dealt:
            player.role = role

        shuffled = [player for player, _ in dealt]
        pairs = self._pair_couples(shuffled)

        self.game_started = True
        self.voting_open = False
        self.role_counts = counts
        return DealtRound(candidates=shuffled, pairs=pairs)

    def _pair_couples(self, ordered: List[Player]) -> List[tuple]:
        romeos = [p for p in ordered if not p.eliminated and p.has_role(Role.ROMEO)]
        giuliettas = [p for p in ordered if not p.eliminated and p.has_role(Role.GIULIETTA)]
        pairs = list(zip(romeos, giuliettas))
        if pairs:
            # only the first couple is tracked for the shelter mechanic
            romeo, giulietta = pairs[0]
            self.couple = CoupleState(romeo.name, giulietta.name)
        return pairs

    def open_voting(self) -> bool:
        if not self.game_started:
            return False
        self.voting_open = True
        for player in self.players:
            player.current_vote = None
        return True

    def close_voting(self) -> bool:
        self.voting_open = False
        return True

    # ----- votes -----

    def can_vote(self, voter: Optional[Player]) -> bool:
        return self.voting_open and voter is not None and not voter.eliminated

    def cast_vote(self, voter: Player, target_name: Optional[str]) -> bool:
        if not self.can_vote(voter):
            return False
        if not normalize_name(target_name):
            voter.current_vote = None
            return True
        target = self.find_player(target_name)
        if target is None or target.eliminated:
            return False
        voter.current_vote = target.name
        return True

    def retract_vote(self, voter: Player) -> bool:
        if not self.can_vote(voter):
            return False
        voter.current_vote = None
        return True

    def tally(self) -> Dict[str, VoteTally]:
        """Weighted vote totals keyed by the case-folded target name."""
        result: Dict[str, VoteTally] = {}
        for voter in self.players:
            if voter.eliminated or not voter.current_vote:
                continue
            double = voter.has_role(DOUBLE_VOTE_ROLE)
            entry = result.setdefault(voter.current_vote.casefold(), VoteTally())
            entry.votes += 2 if double else 1
            entry.voted_by.append(f"{voter.name} (x2)" if double else voter.name)
        return result

    # ----- resolution -----

    def eliminate(self, name: str) -> EliminationOutcome:
        player = self.find_player(name)
        if player is None or player.eliminated:
            return EliminationOutcome()

        couple = self.couple
        is_giulietta = couple is not None and same_name(player.name, couple.giulietta)
        is_romeo = couple is not None and same_name(player.name, couple.romeo)

        if is_giulietta and couple.giulietta_sheltered:
            return EliminationOutcome(target=player, vetoed=True, sheltered_by=couple.romeo)

        outcome = EliminationOutcome(target=player)
        player.eliminated = True
        outcome.eliminated.append(player)

        if is_romeo:
            giulietta = self.find_player(couple.giulietta)
            if giulietta is not None and not giulietta.eliminated:
                giulietta.eliminated = True
                outcome.eliminated.append(giulietta)
                outcome.couple_died = True
        return outcome

    def revive(self, name: str) -> Optional[Player]:
        player = self.find_player(name)
        if player is None:
            return None
        player.eliminated = False
        player.current_vote = None
        return player

    def set_couple_sleep(self, player: Optional[Player], where: Optional[str]) -> Optional[str]:
        where = normalize_name(where).lower()
        if where not in [role.value for role in PAIRED_ROLES]:
            return None
        if player is None or player.eliminated or self.couple is None:
            return None
        if not any(player.has_role(role) for role in PAIRED_ROLES):
            return None
        self.couple.sleep_at = where
        return where

    def revealed_role(self, dead: Player) -> str:
        return dead.role if dead.role.strip() else BASE_ROLE.value

    def reveal_recipients(self) -> List[Player]:
        return [
            p for p in self.players
            if not p.eliminated and p.online and p.connection and p.has_role(REVEAL_ROLE)
        ]
