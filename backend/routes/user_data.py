"""
User Data API Routes

Export, deletion and anonymous-to-user migration of user-scoped values.
"""
from fastapi import APIRouter
import logging

from database import database
from services.user_storage import (
    delete_user_data,
    export_user_data,
    migrate_anonymous_data,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/user-data", tags=["user-data"])


def _store():
    return database.get_store()


@router.get("/{user_id}")
def export_data(user_id: str):
    """All of a user's values keyed by their unscoped names."""
    return {"user_id": user_id, "data": export_user_data(_store(), user_id)}


@router.delete("/{user_id}")
def delete_data(user_id: str):
    deleted = delete_user_data(_store(), user_id)
    logger.info(f"Deleted {deleted} keys for user {user_id}")
    return {"success": True, "deleted": deleted}


@router.post("/{user_id}/migrate")
def migrate_data(user_id: str):
    """Move anonymous values into the user's scope; existing user values win."""
    migrated = migrate_anonymous_data(_store(), user_id)
    return {"success": True, "migrated": migrated}
