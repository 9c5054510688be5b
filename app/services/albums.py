from datetime import datetime, timezone

from sqlalchemy import func, select

from app.database import session_scope
from app.models.db_operation import _add_record
from app.models.schema.album import AlbumEntry
from app.schemas.albums import AlbumCreate, AlbumOut, AlbumStats, GenreStats

ORDERABLE_COLUMNS = {
    "listened_at": AlbumEntry.listened_at,
    "rating": AlbumEntry.rating,
    "created_at": AlbumEntry.created_at,
}
TOP_RATED_LIMIT = 5


def _to_out(entry: AlbumEntry) -> AlbumOut:
    return AlbumOut(
        id=entry.id,
        title=entry.title,
        artist=entry.artist,
        genre=entry.genre,
        rating=entry.rating,
        listened_at=entry.listened_at,
        created_at=entry.created_at,
    )


class AlbumStore:
    def add_album(self, account_id: int, payload: AlbumCreate) -> AlbumOut:
        now = datetime.now(timezone.utc)
        entry = _add_record(
            "album",
            user_id=account_id,
            title=payload.title,
            artist=payload.artist,
            genre=payload.genre,
            rating=payload.rating,
            listened_at=payload.listened_at,
            created_at=now,
            updated_at=now,
        )
        return _to_out(entry)

    def list_albums(
        self,
        account_id: int,
        *,
        genre: str | None = None,
        min_rating: int | None = None,
        limit: int = 20,
        offset: int = 0,
        order_by: str = "listened_at",
        order: str = "desc",
    ) -> list[AlbumOut]:
        column = ORDERABLE_COLUMNS.get(order_by)
        if column is None:
            raise ValueError(f"Cannot order albums by '{order_by}'")
        ordering = column.asc() if order == "asc" else column.desc()

        stmt = select(AlbumEntry).where(AlbumEntry.user_id == account_id)
        if genre:
            stmt = stmt.where(AlbumEntry.genre == genre)
        if min_rating is not None:
            stmt = stmt.where(AlbumEntry.rating >= min_rating)
        stmt = stmt.order_by(ordering, AlbumEntry.id.desc()).limit(limit).offset(offset)

        with session_scope() as session:
            entries = session.execute(stmt).scalars().all()
            return [_to_out(entry) for entry in entries]

    def stats(self, account_id: int) -> AlbumStats:
        with session_scope() as session:
            total, avg_rating = session.execute(
                select(func.count(AlbumEntry.id), func.avg(AlbumEntry.rating)).where(
                    AlbumEntry.user_id == account_id
                )
            ).one()

            top_rated = session.execute(
                select(AlbumEntry)
                .where(AlbumEntry.user_id == account_id)
                .order_by(AlbumEntry.rating.desc(), AlbumEntry.listened_at.desc())
                .limit(TOP_RATED_LIMIT)
            ).scalars().all()

            genre_count = func.count(AlbumEntry.id).label("album_count")
            by_genre = session.execute(
                select(
                    AlbumEntry.genre,
                    genre_count,
                    func.avg(AlbumEntry.rating).label("avg_rating"),
                )
                .where(AlbumEntry.user_id == account_id)
                .group_by(AlbumEntry.genre)
                .order_by(genre_count.desc(), AlbumEntry.genre)
            ).all()

            return AlbumStats(
                total=total or 0,
                avg_rating=f"{float(avg_rating):.2f}" if avg_rating is not None else None,
                top_rated=[_to_out(entry) for entry in top_rated],
                by_genre=[
                    GenreStats(
                        genre=row.genre,
                        count=row.album_count,
                        avg_rating=round(float(row.avg_rating), 2)
                        if row.avg_rating is not None
                        else None,
                    )
                    for row in by_genre
                ],
            )


album_store = AlbumStore()
