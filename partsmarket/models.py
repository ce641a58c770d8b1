from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

# Optional profile fields stored on every user document (null when not supplied)
USER_PROFILE_FIELDS = ("name", "photoURL", "phone", "socialAccount", "facebookURL")


def to_object_id(value: str, kind: str = "") -> ObjectId:
    """Parse a path identifier, raising ValueError for anything that is not a 24-hex ObjectId."""
    message = f"Invalid {kind} ID" if kind else "Invalid ID"
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise ValueError(message)
    try:
        return ObjectId(value)
    except InvalidId as e:
        raise ValueError(message) from e


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        doc["_id"] = str(_id)
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
    return doc


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def toggled_role(role: Optional[str]) -> str:
    return ROLE_USER if role == ROLE_ADMIN else ROLE_ADMIN
