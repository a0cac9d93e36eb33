from __future__ import annotations
from datetime import datetime
from sqlalchemy import func
from .extensions import db


def _iso(value):
    return value.isoformat() if isinstance(value, datetime) else value


class TaskRow(db.Model):
    __tablename__ = "tasks_pg"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "created_at": _iso(self.created_at),
        }


class UserRow(db.Model):
    __tablename__ = "users_pg"
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    password = db.Column(db.String(255), nullable=False)
    oauth_provider = db.Column(db.String(50), nullable=False, default="local")
    oauth_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=func.now())
    updated_at = db.Column(db.DateTime, nullable=False, default=func.now(), onupdate=func.now())

    def to_record(self):
        """Store-neutral user dict; the password hash stays inside the service layer."""
        return {
            "id": str(self.id),
            "username": self.username,
            "email": self.email,
            "password": self.password,
            "oauth_provider": self.oauth_provider or "local",
            "oauth_id": self.oauth_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
