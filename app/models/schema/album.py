from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, SmallInteger, String

from app.database import Base


class AlbumEntry(Base):
    __tablename__ = "albums"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    artist = Column(String(200), nullable=False)
    genre = Column(String(100), nullable=False)
    rating = Column(SmallInteger, nullable=False)
    listened_at = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_albums_user_genre", "user_id", "genre"),
        Index("ix_albums_user_rating", "user_id", "rating"),
    )
