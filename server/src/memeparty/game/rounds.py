"""Round logic: dealing, prompts, submissions, votes and scoring.

All methods are static and mutate the lobby in place. They never arm timers
or emit notifications; the lobby state machine does that after each call.
"""

import logging
import secrets
import string

from memeparty.game.models import (
    Card,
    GamePhase,
    HighlightMoment,
    Lobby,
    Player,
    Prompt,
    Round,
)
from memeparty.game.prompts import new_spin_prompts, prompts_for_theme
from memeparty.game.scoring import score_round

logger = logging.getLogger(__name__)


def slot_label(index: int) -> str:
    """Anonymized label for the index-th submission (A, B, ..., Z, AA, ...)."""
    letters = string.ascii_uppercase
    label = ""
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, len(letters))
        label = letters[remainder] + label
    return label


class RoundEngine:
    """Rules for a single play cycle."""

    @staticmethod
    def reset_prompts(lobby: Lobby) -> None:
        """Reload the prompt pool for the lobby's theme."""
        lobby.prompt_pool = prompts_for_theme(lobby.settings.theme)
        lobby.used_prompts.clear()
        lobby.prompt_generation = 0

    @staticmethod
    def pick_prompt(lobby: Lobby) -> Prompt:
        """Pick an unused prompt, regenerating the pool once it runs dry."""
        available = [p for p in lobby.prompt_pool if p.id not in lobby.used_prompts]
        if not available:
            lobby.prompt_generation += 1
            lobby.prompt_pool = new_spin_prompts(lobby.settings.theme, lobby.prompt_generation)
            lobby.used_prompts.clear()
            available = list(lobby.prompt_pool)
            logger.info(
                f"Prompt pool exhausted in lobby {lobby.id}, "
                f"regenerated (generation {lobby.prompt_generation})"
            )

        choice = lobby.rng.choice(available)
        lobby.used_prompts.add(choice.id)
        return choice

    @staticmethod
    def deal(lobby: Lobby, player: Player, count: int) -> int:
        """Deal up to count cards from the tail of the draw pile.

        Returns:
            Number of cards actually dealt
        """
        dealt = 0
        while dealt < count and lobby.deck:
            player.hand.append(lobby.deck.pop())
            dealt += 1
        return dealt

    @staticmethod
    def begin_round(lobby: Lobby) -> Round:
        """Start the next round in the selection phase."""
        previous = lobby.round.round_number if lobby.round else 0
        round_ = Round(
            round_number=previous + 1,
            prompt=RoundEngine.pick_prompt(lobby),
            seed=secrets.randbits(64),
        )
        lobby.round = round_
        lobby.phase = GamePhase.SELECTION

        for player in lobby.players.values():
            player.submitted_card_id = None
            player.vote_ranking = None

        logger.info(f"Round {round_.round_number} started in lobby {lobby.id}")
        return round_

    @staticmethod
    def submit_card(lobby: Lobby, player: Player, card_id: str) -> bool:
        """Record a player's card for the round.

        Returns:
            True if the submission was accepted
        """
        round_ = lobby.round
        if round_ is None or lobby.phase != GamePhase.SELECTION:
            return False
        if player.spectator or player.id in round_.submissions:
            return False

        card = player.find_card(card_id)
        if card is None:
            return False

        RoundEngine._take_card(round_, player, card)
        return True

    @staticmethod
    def all_submitted(lobby: Lobby) -> bool:
        round_ = lobby.round
        if round_ is None:
            return False
        return all(p.id in round_.submissions for p in lobby.active_players)

    @staticmethod
    def close_selection(lobby: Lobby) -> None:
        """Auto-submit for stragglers, assign slot labels and open voting."""
        round_ = lobby.round
        if round_ is None:
            return

        for player in lobby.active_players:
            if player.id in round_.submissions or not player.hand:
                continue
            card = lobby.rng.choice(player.hand)
            RoundEngine._take_card(round_, player, card)
            logger.debug(f"Auto-submitted {card.id} for player {player.id} in lobby {lobby.id}")

        order = list(round_.submissions)
        lobby.rng.shuffle(order)
        round_.slots = {player_id: slot_label(index) for index, player_id in enumerate(order)}

        round_.phase = GamePhase.VOTING
        lobby.phase = GamePhase.VOTING

    @staticmethod
    def vote_targets(lobby: Lobby, voter_id: str) -> list[str]:
        """Submitters a voter must rank: everyone but themselves."""
        if lobby.round is None:
            return []
        return [pid for pid in lobby.round.submissions if pid != voter_id]

    @staticmethod
    def submit_vote(lobby: Lobby, player: Player, ranking: list[str]) -> bool:
        """Record a voter's full ranking.

        The ranking must be a permutation of exactly the voter's targets.

        Returns:
            True if the vote was accepted
        """
        round_ = lobby.round
        if round_ is None or lobby.phase != GamePhase.VOTING or player.spectator:
            return False

        targets = RoundEngine.vote_targets(lobby, player.id)
        if not targets:
            return False
        if len(ranking) != len(targets) or set(ranking) != set(targets):
            return False

        round_.votes[player.id] = list(ranking)
        player.vote_ranking = list(ranking)
        return True

    @staticmethod
    def all_voted(lobby: Lobby) -> bool:
        """True when every active player with something to rank has voted."""
        round_ = lobby.round
        if round_ is None:
            return False
        return all(
            p.id in round_.votes
            for p in lobby.active_players
            if RoundEngine.vote_targets(lobby, p.id)
        )

    @staticmethod
    def close_voting(lobby: Lobby) -> None:
        """Auto-vote for stragglers, score the round and merge the results."""
        round_ = lobby.round
        if round_ is None:
            return

        for voter in lobby.active_players:
            if voter.id in round_.votes:
                continue
            ranking = RoundEngine.vote_targets(lobby, voter.id)
            if not ranking:
                continue
            lobby.rng.shuffle(ranking)
            round_.votes[voter.id] = ranking
            voter.vote_ranking = list(ranking)

        round_.leaderboard = score_round(list(round_.submissions), round_.votes, round_.seed)

        for entry in round_.leaderboard:
            player = lobby.players.get(entry.player_id)
            if player is None:
                continue
            player.score += entry.points
            card = round_.submissions[entry.player_id]
            if player.best_moment is None or entry.points > player.best_moment.points:
                player.best_moment = HighlightMoment(
                    card=card,
                    prompt=round_.prompt,
                    points=entry.points,
                    round_number=round_.round_number,
                )

        round_.phase = GamePhase.ROUND_RESULTS
        lobby.phase = GamePhase.ROUND_RESULTS

    @staticmethod
    def finish_round(lobby: Lobby) -> bool:
        """Move past the results screen.

        Returns:
            True if another round started, False if the game is over
        """
        round_ = lobby.round
        if round_ is None:
            return False

        if round_.round_number >= lobby.settings.rounds:
            lobby.phase = GamePhase.FINAL_RESULTS
            lobby.round = None
            logger.info(f"Game finished in lobby {lobby.id} after {round_.round_number} rounds")
            return False

        RoundEngine.begin_round(lobby)
        return True

    @staticmethod
    def _take_card(round_: Round, player: Player, card: Card) -> None:
        # Exactly one copy leaves the hand
        player.hand.remove(card)
        round_.submissions[player.id] = card
        player.submitted_card_id = card.id
