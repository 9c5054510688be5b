from sqlalchemy import and_, select, update

from app.database import session_scope
from app.models.schema.db_config import Databases


def _model(db: str):
    return getattr(Databases, db)


def _conditions(model, filters: dict) -> list:
    conditions = []
    for field, value in filters.items():
        if not hasattr(model, field):
            raise ValueError(f"{model.__name__} has no column '{field}'")
        column = getattr(model, field)
        if value is None:
            conditions.append(column.is_(None))
        else:
            conditions.append(column == value)
    return conditions


def _add_record(db: str, **kwargs):
    model = _model(db)

    instance = model(**kwargs)

    with session_scope() as session:
        session.add(instance)
        session.flush()
    return instance


def _get_record(db: str, record_id: int):
    model = _model(db)
    with session_scope() as session:
        return session.get(model, record_id)


def _select_one_or_none(db: str, **kwargs):
    model = _model(db)
    conditions = _conditions(model, kwargs)

    with session_scope() as session:
        return session.execute(
            select(model).where(and_(*conditions))
        ).scalar_one_or_none()


def _update_records(
    db: str,
    *,
    values: dict,
    **filters
) -> int:
    model = _model(db)
    conditions = _conditions(model, filters)

    with session_scope() as session:
        result = session.execute(
            update(model)
            .where(*conditions)
            .values(**values)
        )

        return result.rowcount
