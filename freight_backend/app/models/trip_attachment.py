"""
Trip Attachment database model.

Metadata only; file bytes live in external storage.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from freight_backend.app.db.session import Base


class TripAttachment(Base):
    __tablename__ = "trip_attachments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id', ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=True)
    storage_path = Column(String(500), nullable=False)
    uploaded_by = Column(Integer, ForeignKey('agents.id'), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    trip = relationship("Trip", back_populates="attachments")

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<TripAttachment(id={self.id}, trip_id={self.trip_id}, filename='{self.filename}')>"
