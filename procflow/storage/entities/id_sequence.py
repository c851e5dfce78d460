"""Identifier sequence table: one counter row per category."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from procflow.storage.models import Base


class IdSequenceEntity(Base):
    __tablename__ = "id_sequence"

    category: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<IdSequenceEntity(category={self.category!r}, last_value={self.last_value})>"
