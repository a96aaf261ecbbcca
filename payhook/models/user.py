from sqlalchemy import func
from payhook.extensions import db

class User(db.Model):
    """Directory entry the gateway's customer email resolves against."""
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(320), nullable=False, unique=True, index=True)  # stored lowercased
    full_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    plan = db.relationship("UserPlan", back_populates="user", uselist=False)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
