from sqlalchemy import Column, DateTime, Integer, Text, Time
from mpkwatch.core.db import Base

class Trip(Base):
    __tablename__ = "trips"

    # surrogate key only; the same trip observed twice is stored twice
    id = Column(Integer, primary_key=True, autoincrement=True)

    trip_id = Column(Text, nullable=False, index=True)
    captured_at = Column(DateTime(timezone=True), nullable=False, index=True)

    actual_relative_time = Column(Integer, nullable=False)
    actual_time = Column(Time, nullable=True)

    direction = Column(Text, nullable=False)
    mixed_time = Column(Text, nullable=False)
    passage_id = Column(Text, nullable=False)
    pattern_text = Column(Text, nullable=False)

    planned_time = Column(Time, nullable=False)

    route_id = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False)
    vehicle_id = Column(Text, nullable=False)
