from models import db
from models.user import Role

DEFAULT_ROLES = ("CLIENT", "COACH", "ADMIN")


def ensure_role(name: str) -> Role:
    role = Role.query.filter_by(name=name).first()
    if role is None:
        role = Role(name=name)
        db.session.add(role)
        db.session.flush()
    return role


def seed_roles(names=DEFAULT_ROLES):
    for name in names:
        ensure_role(name)
    db.session.commit()
