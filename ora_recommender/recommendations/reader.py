"""
Read side of the recommendations namespace, as consumed by the app.

``get_recommended_content()`` resolves the ranked ids of the ``latest``
record to catalog items, keeping rank order. Ids that no longer exist in
the catalog are skipped with a warning.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from ora_recommender.db.repositories.content_repo import ContentRepository
from ora_recommender.db.repositories.recommendation_repo import RecommendationRepository
from ora_recommender.models.content import ContentItem
from ora_recommender.models.recommendation import RecommendationRecord
from ora_recommender.recommendations.writer import LATEST_KEY

logger = logging.getLogger(__name__)


def get_latest_recommendation(
    conn: sqlite3.Connection, uid: str
) -> Optional[RecommendationRecord]:
    return RecommendationRepository(conn).get(uid, LATEST_KEY)


def has_recommendations(conn: sqlite3.Connection, uid: str) -> bool:
    return get_latest_recommendation(conn, uid) is not None


def get_recommended_content(
    conn: sqlite3.Connection,
    uid: str,
    limit: int = 5,
) -> list[ContentItem]:
    """Return catalog items for the user's latest recommendations.

    Args:
        conn:  Open connection.
        uid:   Target user.
        limit: Maximum number of items returned.

    Returns:
        Items in rank order; empty when the user has no recommendations.
    """
    record = get_latest_recommendation(conn, uid)
    if record is None or not record.content_ids:
        return []

    wanted = record.content_ids[:limit]
    found = ContentRepository(conn).get_many(wanted)

    items: list[ContentItem] = []
    for content_id in wanted:
        item = found.get(content_id)
        if item is None:
            logger.warning(
                "Recommended content %s for user %s is not in the catalog", content_id, uid
            )
            continue
        items.append(item)
    return items
