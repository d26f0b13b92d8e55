from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class DATA_STATUS:
    DELETED = 1000
    ACTIVE = 1


__all__ = [
    "Base",
    "Column",
    "String",
    "Integer",
    "DateTime",
    "Boolean",
    "Text",
    "JSON",
    "ForeignKey",
    "UniqueConstraint",
    "DATA_STATUS",
]
