from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from quizgate.app.db.base import Base


class AccessCodeRow(Base):
    __tablename__ = "access_codes"
    __table_args__ = (
        Index("idx_access_codes_expires", "expires_at"),
    )

    code: Mapped[str] = mapped_column(String(20), primary_key=True)
    max_uses: Mapped[int] = mapped_column(Integer)
    current_uses: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class SimulatedTest(Base):
    """Synthetic quiz result used to calibrate the percentile transform."""

    __tablename__ = "simulated_tests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    egoism: Mapped[int] = mapped_column(Integer)
    greed: Mapped[int] = mapped_column(Integer)
    mach: Mapped[int] = mapped_column(Integer)
    moral: Mapped[int] = mapped_column(Integer)
    narcissism: Mapped[int] = mapped_column(Integer)
    power: Mapped[int] = mapped_column(Integer)
    psychopathy: Mapped[int] = mapped_column(Integer)
    sadism: Mapped[int] = mapped_column(Integer)
    selfcentered: Mapped[int] = mapped_column(Integer)
    spitefulness: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
