import logging
from typing import Optional, Union

import config
from storage import Storage, normalize_email

logger = logging.getLogger("foodieexpress.admin")


def is_admin(user: Union[dict, str, None]) -> bool:
    if not user:
        return False
    email = user if isinstance(user, str) else user.get("email")
    return bool(email) and normalize_email(email) == normalize_email(config.ADMIN_EMAIL)


def create_admin_if_not_exists(storage: Storage) -> Optional[dict]:
    existing = storage.get_user_by_email(config.ADMIN_EMAIL)
    if existing:
        return existing
    admin = storage.create_user({
        "email": config.ADMIN_EMAIL,
        "first_name": "Admin",
        "last_name": "User",
        "phone": "",
        "password": config.ADMIN_PASSWORD,
        "is_verified": True,
    })
    logger.info("Admin user %s created", config.ADMIN_EMAIL)
    return admin


def authenticate_admin(storage: Storage, email: str, password: str) -> bool:
    if not is_admin(email):
        return False
    user = storage.get_user_by_email(email)
    if not user:
        return False
    return storage.verify_password(password, user["password"])
