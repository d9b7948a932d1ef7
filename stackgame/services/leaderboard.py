from stackgame.models import db, User

MAX_ENTRIES = 50


def top_entries(limit=MAX_ENTRIES):
    """
    Top users by best score, ties broken by id.

    Zero-score users are included so the board is consistent for every
    identity type.
    """
    try:
        limit = min(int(limit), MAX_ENTRIES)
    except (TypeError, ValueError):
        limit = MAX_ENTRIES
    if limit <= 0:
        return []

    rows = db.session.query(
        User.id, User.display_name, User.best_score, User.avatar_url, User.xp
    ).order_by(User.best_score.desc(), User.id.asc()).limit(limit).all()

    return [{
        "rank": rank,
        "id": row.id,
        "name": row.display_name,
        "score": row.best_score,
        "avatar": row.avatar_url,
        "xp": row.xp,
    } for rank, row in enumerate(rows, start=1)]


def rank_of(user):
    """Competition rank: 1 + users with a strictly higher best score."""
    ahead = db.session.query(db.func.count(User.id)).filter(
        User.best_score > user.best_score).scalar()
    return (ahead or 0) + 1
