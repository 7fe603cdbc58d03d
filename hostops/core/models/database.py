"""
Database server models.
"""

from __future__ import annotations

from pydantic import BaseModel


class Database(BaseModel):
    name: str
    size: str | None = None     # human-readable, as reported by the server

    def to_dict(self) -> dict:
        return self.model_dump()


class DatabaseUser(BaseModel):
    name: str
    host: str = "localhost"
    database: str | None = None    # authentication database (MongoDB)

    def to_dict(self) -> dict:
        return self.model_dump()
