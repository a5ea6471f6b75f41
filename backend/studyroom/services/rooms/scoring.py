from typing import List, Optional

from .types import LeaderboardEntry, Player, Question

POINTS_PER_CORRECT_ANSWER = 1


def is_answer_correct(question: Optional[Question], answer_index: int) -> bool:
    if question is None:
        return False
    return answer_index == question.correct_answer


def award_points(player: Player, is_correct: bool) -> int:
    """Credit a scored answer to the player and return the points awarded."""
    points = POINTS_PER_CORRECT_ANSWER if is_correct else 0
    player.score += points
    return points


def build_leaderboard(players: List[Player]) -> List[LeaderboardEntry]:
    """Rank players by score, highest first.

    ``sorted`` is stable, so players with equal scores keep their join order
    and earlier joiners rank higher.
    """
    ranked = sorted(players, key=lambda p: -p.score)
    return [
        LeaderboardEntry(rank=position, id=p.id, name=p.name, score=p.score)
        for position, p in enumerate(ranked, start=1)
    ]
