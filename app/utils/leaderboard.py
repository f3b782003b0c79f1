"""
Season leaderboard aggregation.

Pure functions over already loaded predictions. Queries live in
app/services/prediction_service.py; this module only folds scores into
ranked totals, so it never touches the session and never fails on
missing data.
"""

from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: int
    total_score: int
    scored_predictions: int
    rank: int
    previous_rank: Optional[int] = None

    @property
    def trend(self):
        """Positive when the user climbed, negative when they dropped"""
        if self.previous_rank is None:
            return None
        return self.previous_rank - self.rank

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "total_score": self.total_score,
            "scored_predictions": self.scored_predictions,
            "rank": self.rank,
            "previous_rank": self.previous_rank,
            "trend": self.trend,
        }


def _season_of(prediction):
    target = prediction.target
    return target.season if target is not None else None


def aggregate(season, predictions: Iterable) -> List[LeaderboardEntry]:
    """
    Fold scored predictions of one season into a ranked leaderboard.

    Pending predictions and predictions from other seasons are ignored.
    Ties share a rank and the next rank skips ahead (10, 10, 8 -> 1, 1, 3);
    tied users are listed by ascending user id.
    """
    totals = defaultdict(int)
    counts = defaultdict(int)

    for prediction in predictions:
        if prediction.score is None or _season_of(prediction) != season:
            continue
        totals[prediction.user_id] += prediction.score
        counts[prediction.user_id] += 1

    ordered = sorted(totals, key=lambda user_id: (-totals[user_id], user_id))

    entries = []
    previous_total = None
    rank = 0
    for position, user_id in enumerate(ordered, start=1):
        if totals[user_id] != previous_total:
            rank = position
            previous_total = totals[user_id]
        entries.append(
            LeaderboardEntry(
                user_id=user_id,
                total_score=totals[user_id],
                scored_predictions=counts[user_id],
                rank=rank,
            )
        )

    return entries


def with_previous_ranks(current, previous):
    """Attach each user's rank from an earlier leaderboard"""
    previous_by_user = {entry.user_id: entry.rank for entry in previous}
    return [
        replace(entry, previous_rank=previous_by_user.get(entry.user_id))
        for entry in current
    ]


def rank_of(entries, user_id):
    for entry in entries:
        if entry.user_id == user_id:
            return entry.rank
    return None
