"""Shared base for all persisted domain entities"""

from sqlalchemy import BigInteger, Integer
from sqlmodel import SQLModel

# SQLite only auto-increments INTEGER PRIMARY KEY columns
IdType = BigInteger().with_variant(Integer, "sqlite")


class BaseModel(SQLModel):
    pass
