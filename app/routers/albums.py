import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError

from app.routers.deps import client_address, require_identity
from app.schemas.albums import (
    AlbumCreate,
    AlbumEnvelope,
    AlbumListEnvelope,
    AlbumStatsEnvelope,
)
from app.services.albums import album_store
from app.services.authority import Identity
from app.services.events import database_change, event_emitter, user_activity

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/albums", tags=["albums"])


@router.post(
    "",
    response_model=AlbumEnvelope,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def add_album(
    payload: AlbumCreate,
    request: Request,
    identity: Identity = Depends(require_identity),
) -> AlbumEnvelope:
    try:
        album = album_store.add_album(identity.account_id, payload)
    except SQLAlchemyError as exc:
        LOGGER.error("Add album failed for user_id=%s: %s", identity.account_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add album",
        ) from exc

    LOGGER.info(
        "Album added: user_id=%s album_id=%s title=%r rating=%s",
        identity.account_id,
        album.id,
        album.title,
        album.rating,
    )
    event_emitter.publish(
        user_activity(
            "ADD_ALBUM",
            identity.account_id,
            client_address(request),
            title=album.title,
            artist=album.artist,
            genre=album.genre,
            rating=album.rating,
        )
    )
    event_emitter.publish(
        database_change("INSERT", "albums", userId=identity.account_id, albumId=album.id)
    )
    return AlbumEnvelope(data=album)


@router.get("", response_model=AlbumListEnvelope)
def list_albums(
    genre: Optional[str] = Query(default=None, min_length=1, max_length=100),
    min_rating: Optional[int] = Query(default=None, alias="minRating", ge=1, le=5),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    order_by: Literal["listened_at", "rating", "created_at"] = Query(
        default="listened_at", alias="orderBy"
    ),
    order: Literal["asc", "desc"] = Query(default="desc"),
    identity: Identity = Depends(require_identity),
) -> AlbumListEnvelope:
    try:
        albums = album_store.list_albums(
            identity.account_id,
            genre=genre,
            min_rating=min_rating,
            limit=limit,
            offset=offset,
            order_by=order_by,
            order=order,
        )
    except SQLAlchemyError as exc:
        LOGGER.error("List albums failed for user_id=%s: %s", identity.account_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list albums",
        ) from exc
    return AlbumListEnvelope(data=albums)


@router.get("/stats", response_model=AlbumStatsEnvelope)
def album_stats(identity: Identity = Depends(require_identity)) -> AlbumStatsEnvelope:
    try:
        stats = album_store.stats(identity.account_id)
    except SQLAlchemyError as exc:
        LOGGER.error("Stats failed for user_id=%s: %s", identity.account_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get stats",
        ) from exc
    return AlbumStatsEnvelope(data=stats)
