from flask import g

from models import db
from models.coach import Coach
from models.user import User
from security.session import resolve_session
from services.errors import Forbidden


def load_current_user():
    g.user = None
    g.session = None
    g.coach = None

    sess = resolve_session()
    if not sess:
        return
    g.session = sess
    g.user = db.session.get(User, sess.user_id)
    if g.user is not None:
        g.coach = Coach.query.filter_by(user_id=g.user.id).first()


def current_coach() -> Coach:
    """Coach profile of the signed-in user; raises Forbidden when there is none."""
    coach = getattr(g, "coach", None)
    if coach is None:
        raise Forbidden("Coach profile required", code="coach_profile_required")
    return coach
