from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from admin_auth import is_admin
from email_service import EmailService
from order_tracking import OrderTrackingService
from storage import Storage


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


def get_tracker(request: Request) -> OrderTrackingService:
    return request.app.state.tracker


# Demo identity: the client sends back the user id it received from /api/login.
def get_current_user(
    x_user_id: Optional[str] = Header(None),
    storage: Storage = Depends(get_storage),
) -> dict:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = storage.get_user(x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Authentication required")
    if not user.get("is_verified"):
        raise HTTPException(status_code=403, detail="Please verify your email first")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
