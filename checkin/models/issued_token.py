"""Persisted single-use student tokens."""
from checkin import db
from checkin.models.base import BaseModel

class IssuedToken(BaseModel):
    """Stored form of a student token.

    Only the sha256 of the signed token is kept, so a leaked table cannot
    be replayed. ``used`` flips once, inside the redemption transaction.
    """

    __tablename__ = 'issued_tokens'

    token_hash = db.Column(db.String(64), unique=True, nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey('group_sessions.id'), nullable=True)
    issued_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    used = db.Column(db.Boolean, nullable=False, default=False)
    used_at = db.Column(db.DateTime, nullable=True)

    def __repr__(self):
        return f'<IssuedToken {self.id} student={self.student_id} used={self.used}>'
