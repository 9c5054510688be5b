from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.users import CamelModel


class AlbumCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    artist: str = Field(min_length=1, max_length=200)
    genre: str = Field(min_length=1, max_length=100)
    rating: int = Field(ge=1, le=5)
    listened_at: date

    @field_validator("title", "artist", "genre", mode="before")
    @classmethod
    def normalize_required_text(cls, value):
        if not isinstance(value, str):
            return value
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("This field is required")
        return cleaned


class AlbumOut(CamelModel):
    id: int
    title: str
    artist: str
    genre: str
    rating: int
    listened_at: date
    created_at: Optional[datetime] = None


class AlbumEnvelope(BaseModel):
    success: bool = True
    data: AlbumOut


class AlbumListEnvelope(BaseModel):
    success: bool = True
    data: list[AlbumOut]


class GenreStats(CamelModel):
    genre: str
    count: int
    avg_rating: Optional[float] = None


class AlbumStats(CamelModel):
    total: int
    avg_rating: Optional[str] = None
    top_rated: list[AlbumOut]
    by_genre: list[GenreStats]


class AlbumStatsEnvelope(BaseModel):
    success: bool = True
    data: AlbumStats
