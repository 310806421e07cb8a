"""
FastAPI dependencies (DB session, current user, clock, pipelines)
"""
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.application.dispatch_worker import DispatchServices, get_default_services
from app.domain.clock import SystemClock
from app.infrastructure.db.session import get_db as _get_db
from app.infrastructure.db.models import User


# Re-exported for routers
get_db = _get_db


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Current user from the session cookie (for API endpoints)

    Raises:
        HTTPException(401): not logged in

    Usage:
        @router.get("/orders")
        def list_orders(user: User = Depends(get_current_user)):
            ...
    """
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user


def get_clock():
    return SystemClock()


def get_services() -> DispatchServices:
    return get_default_services()
