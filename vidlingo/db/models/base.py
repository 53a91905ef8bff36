"""Declarative base shared by all vidlingo tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
