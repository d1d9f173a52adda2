"""Borda count scoring for a single round.

Each voter ranks the other submitters, best first. With N submitters, rank
position i awards N-1-i points. Points are summed across voters and the
leaderboard is ordered by points, then first place mentions, then second
place mentions. Whatever is still tied is ordered by a permutation drawn
from the round's seed, so the same seed and votes always give the same
leaderboard.
"""

import random
from collections.abc import Iterable, Mapping, Sequence

from memeparty.game.models import RoundResultEntry


def points_for_position(field_size: int, position: int) -> int:
    """Points awarded for a 0-based rank position in a field of submitters."""
    return max(0, field_size - 1 - position)


def _tie_break_order(player_ids: Iterable[str], seed: int) -> dict[str, int]:
    """Map each player to a seeded random position.

    Ids are sorted first so the permutation depends only on the seed and the
    set of ids, never on input order.
    """
    ordered = sorted(player_ids)
    random.Random(seed).shuffle(ordered)
    return {player_id: index for index, player_id in enumerate(ordered)}


def score_round(
    submitters: Sequence[str],
    rankings: Mapping[str, Sequence[str]],
    seed: int,
) -> list[RoundResultEntry]:
    """Compute the ranked leaderboard for a round.

    Args:
        submitters: Players who submitted a card this round
        rankings: voter_id -> ranking of player ids, most preferred first
        seed: Round seed used for the final tie-break

    Returns:
        Leaderboard entries, best first. Empty when nobody submitted.
    """
    field_size = len(submitters)
    histogram_size = max(1, field_size - 1)
    entries = {
        player_id: RoundResultEntry(player_id=player_id, placements=[0] * histogram_size)
        for player_id in submitters
    }

    for ranking in rankings.values():
        for position, player_id in enumerate(ranking):
            entry = entries.get(player_id)
            if entry is None:
                continue
            entry.points += points_for_position(field_size, position)
            if position == 0:
                entry.first_place_votes += 1
            elif position == 1:
                entry.second_place_votes += 1
            if position < histogram_size:
                entry.placements[position] += 1

    tie_break = _tie_break_order(entries.keys(), seed)
    return sorted(
        entries.values(),
        key=lambda e: (
            -e.points,
            -e.first_place_votes,
            -e.second_place_votes,
            tie_break[e.player_id],
        ),
    )
