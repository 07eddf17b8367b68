from collections.abc import Generator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.errors import DistributionError
from app.services.identity import Actor, resolve_actor


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_actor(
    x_user_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> Actor:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthorized", "message": "X-User-Id header required"},
        )
    try:
        return resolve_actor(db, x_user_id)
    except DistributionError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthorized", "message": "Unknown user"},
        )
