"""Per-viewer lobby state payloads.

Every payload is built for one viewer: it carries that viewer's hand and
submission but never anyone else's, and hides who submitted what until
voting has closed.
"""

from typing import Any

from memeparty.game.models import GamePhase, Lobby, Player, Round, RoundResultEntry


def serialize_player(player: Player, lobby: Lobby) -> dict[str, Any]:
    """Serialize a Player for the public roster."""
    round_ = lobby.round
    return {
        "id": player.id,
        "name": player.name,
        "avatar": player.avatar,
        "isHost": player.id == lobby.host_id,
        "connected": player.connected,
        "spectator": player.spectator,
        "score": player.score,
        "submitted": bool(round_ and player.id in round_.submissions),
        "voted": bool(round_ and player.id in round_.votes),
    }


def serialize_leaderboard(leaderboard: list[RoundResultEntry]) -> list[dict[str, Any]]:
    return [
        {
            "playerId": entry.player_id,
            "points": entry.points,
            "rank": index + 1,
            "breakdown": list(entry.placements),
            "firstPlaceVotes": entry.first_place_votes,
            "secondPlaceVotes": entry.second_place_votes,
        }
        for index, entry in enumerate(leaderboard)
    ]


def visible_submissions(lobby: Lobby, viewer_id: str) -> list[dict[str, Any]]:
    """Submissions the viewer may see in the current phase.

    Nothing during selection; anonymous slots without the viewer's own card
    during voting; everything with authors once results are in.
    """
    round_ = lobby.round
    if round_ is None or round_.phase == GamePhase.SELECTION:
        return []

    reveal = round_.phase == GamePhase.ROUND_RESULTS
    views = []
    for player_id, card in round_.submissions.items():
        if not reveal and player_id == viewer_id:
            continue
        view: dict[str, Any] = {"slot": round_.slots.get(player_id, "?"), "card": card.to_dict()}
        if reveal:
            view["playerId"] = player_id
        views.append(view)
    views.sort(key=lambda v: (len(v["slot"]), v["slot"]))
    return views


def serialize_round(lobby: Lobby, round_: Round, viewer_id: str) -> dict[str, Any]:
    return {
        "roundNumber": round_.round_number,
        "totalRounds": lobby.settings.rounds,
        "prompt": round_.prompt.to_dict(),
        "phase": round_.phase.value,
        "submissions": visible_submissions(lobby, viewer_id),
        "leaderboard": serialize_leaderboard(round_.leaderboard) if round_.leaderboard else [],
        "endsAt": int(round_.ends_at * 1000) if round_.ends_at is not None else None,
    }


def final_standings(lobby: Lobby) -> list[dict[str, Any]]:
    """Active players by cumulative score; tied scores share a rank."""
    ordered = sorted(lobby.active_players, key=lambda p: p.score, reverse=True)
    standings = []
    rank = 0
    previous_score: int | None = None
    for index, player in enumerate(ordered):
        if player.score != previous_score:
            rank = index + 1
            previous_score = player.score
        standings.append(
            {
                "playerId": player.id,
                "score": player.score,
                "rank": rank,
                "bestMoment": player.best_moment.to_dict() if player.best_moment else None,
            }
        )
    return standings


def project_lobby_state(lobby: Lobby, viewer_id: str) -> dict[str, Any] | None:
    """Build the full state payload for a viewer.

    Args:
        lobby: Lobby to project
        viewer_id: Player the payload is for

    Returns:
        JSON-compatible dict, or None if the viewer is not in the lobby
    """
    viewer = lobby.players.get(viewer_id)
    if viewer is None:
        return None

    payload: dict[str, Any] = {
        "lobbyId": lobby.id,
        "settings": lobby.settings.to_dict(),
        "players": [serialize_player(p, lobby) for p in lobby.players.values()],
        "hostId": lobby.host_id,
        "phase": lobby.phase.value,
        "you": {
            "id": viewer.id,
            "spectator": viewer.spectator,
            "hand": [card.to_dict() for card in viewer.hand],
            "submittedCardId": viewer.submitted_card_id,
        },
    }

    if lobby.round is not None:
        payload["round"] = serialize_round(lobby, lobby.round, viewer_id)

    if lobby.phase == GamePhase.FINAL_RESULTS:
        payload["finalResults"] = final_standings(lobby)

    return payload
