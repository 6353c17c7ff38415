from flask_login import UserMixin

from ..extensions import db
from .mixins import TimestampMixin


class User(UserMixin, TimestampMixin, db.Model):
    """Acting user whose name is written to the audit trail."""
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    @property
    def display_name(self):
        return self.name or self.email or f"User #{self.id}"

    def __repr__(self):
        return f'<User {self.id} {self.name}>'
