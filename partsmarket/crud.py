import logging
from typing import List, Optional, Tuple

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from . import models, schemas
from .db import ORDERS, PRODUCTS, REVIEWS, USERS
from .utils import sanitize_input

logger = logging.getLogger(__name__)


class ConflictError(Exception):
    """A write collided with a unique index (uid or email already taken)."""


class InsufficientStockError(ValueError):
    def __init__(self, current_stock):
        self.current_stock = current_stock
        super().__init__(f"Insufficient stock. Current stock: {current_stock}")


class CorruptDocumentError(Exception):
    pass


# -------------------- Users --------------------

def find_existing_user(db: Database, uid: str, email: str) -> Optional[dict]:
    return db[USERS].find_one({"$or": [{"email": email}, {"uid": uid}]})


def register_or_login(db: Database, user: schemas.UserUpsert, role: str) -> Tuple[dict, bool]:
    """Return (user document, created). An existing uid or email is treated as a login."""
    existing = find_existing_user(db, user.uid, user.email)
    if existing:
        return existing, False

    doc = {"uid": user.uid, "email": user.email, "role": role}
    for field in models.USER_PROFILE_FIELDS:
        doc[field] = getattr(user, field)
    try:
        db[USERS].insert_one(doc)
    except DuplicateKeyError as e:
        # lost the race against a concurrent registration with the same uid/email
        raise ConflictError("user with this uid or email already exists") from e
    logger.info("Registered user uid=%s role=%s", user.uid, role)
    return doc, True


def list_users(db: Database) -> List[dict]:
    return list(db[USERS].find().sort("_id", 1))


def get_user(db: Database, uid: str) -> Optional[dict]:
    return db[USERS].find_one({"uid": uid})


def toggle_user_role(db: Database, uid: str) -> Optional[str]:
    user = get_user(db, uid)
    if not user:
        return None
    new_role = models.toggled_role(user.get("role"))
    db[USERS].update_one({"_id": user["_id"]}, {"$set": {"role": new_role}})
    logger.info("Toggled role of uid=%s to %s", uid, new_role)
    return new_role


def update_user(db: Database, uid: str, fields: dict) -> Optional[dict]:
    """Merge `fields` into the user. Raises ValueError when nothing would change."""
    user = get_user(db, uid)
    if not user:
        return None
    changes = {k: v for k, v in fields.items() if user.get(k) != v}
    if not changes:
        raise ValueError("No changes were made")
    try:
        return db[USERS].find_one_and_update(
            {"_id": user["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError as e:
        raise ConflictError("email already in use") from e


def make_admin(db: Database, user_id: str) -> bool:
    oid = models.to_object_id(user_id, "user")
    result = db[USERS].update_one({"_id": oid}, {"$set": {"role": models.ROLE_ADMIN}})
    return result.matched_count > 0


def delete_user(db: Database, uid: str) -> bool:
    result = db[USERS].delete_one({"uid": uid})
    if result.deleted_count:
        logger.info("Deleted user uid=%s", uid)
    return result.deleted_count > 0


# -------------------- Products --------------------

def create_product(db: Database, product: schemas.ProductCreate) -> dict:
    doc = product.model_dump()
    db[PRODUCTS].insert_one(doc)
    return doc


def list_products(db: Database) -> List[dict]:
    return list(db[PRODUCTS].find())


def get_product(db: Database, product_id: str) -> Optional[dict]:
    return db[PRODUCTS].find_one({"_id": models.to_object_id(product_id, "product")})


def adjust_stock(db: Database, product_id: str, quantity: int, action: str) -> Optional[dict]:
    """Atomically add or deduct stock and return the updated product, or None if absent.

    A deduct only matches while available_quantity >= quantity, so concurrent
    deducts can never take the stock below zero.
    """
    oid = models.to_object_id(product_id, "product")
    if action not in ("add", "deduct"):
        raise ValueError("Invalid action. Use 'add' or 'deduct'.")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError("Quantity must be a positive number.")

    if action == "add":
        # stock is never negative, so this only matches a numeric quantity
        query = {"_id": oid, "available_quantity": {"$gte": 0}}
        update = {"$inc": {"available_quantity": quantity}}
    else:
        query = {"_id": oid, "available_quantity": {"$gte": quantity}}
        update = {"$inc": {"available_quantity": -quantity}}

    updated = db[PRODUCTS].find_one_and_update(query, update, return_document=ReturnDocument.AFTER)
    if updated is not None:
        logger.info("Stock %s %d on product %s -> %s", action, quantity, product_id, updated["available_quantity"])
        return updated

    current = db[PRODUCTS].find_one({"_id": oid})
    if current is None:
        return None
    stock = current.get("available_quantity")
    if action == "add" or isinstance(stock, bool) or not isinstance(stock, (int, float)):
        raise CorruptDocumentError("Invalid available_quantity in database.")
    raise InsufficientStockError(stock)


def delete_product(db: Database, product_id: str) -> bool:
    result = db[PRODUCTS].delete_one({"_id": models.to_object_id(product_id, "product")})
    return result.deleted_count > 0


# -------------------- Orders --------------------

def create_order(db: Database, order: schemas.OrderCreate) -> dict:
    doc = order.model_dump()
    doc["orderTime"] = models.utcnow_iso()
    db[ORDERS].insert_one(doc)
    return doc


def list_orders(db: Database, customer_email: Optional[str] = None) -> List[dict]:
    query = {"customerEmail": customer_email} if customer_email else {}
    return list(db[ORDERS].find(query))


def get_order(db: Database, order_id: str) -> Optional[dict]:
    return db[ORDERS].find_one({"_id": models.to_object_id(order_id, "order")})


def update_order_status(db: Database, order_id: str, status: str) -> bool:
    result = db[ORDERS].update_one({"_id": models.to_object_id(order_id, "order")}, {"$set": {"status": status}})
    return result.matched_count > 0


def delete_order(db: Database, order_id: str) -> bool:
    result = db[ORDERS].delete_one({"_id": models.to_object_id(order_id, "order")})
    return result.deleted_count > 0


# -------------------- Reviews --------------------

def create_review(db: Database, review: schemas.ReviewCreate) -> dict:
    doc = review.model_dump()
    doc["name"] = sanitize_input(review.name)
    doc["review"] = sanitize_input(review.review)
    if not doc["name"] or not doc["review"]:
        raise ValueError("name and review must contain text")
    doc["createdAt"] = models.utcnow_iso()
    db[REVIEWS].insert_one(doc)
    return doc


def list_reviews(db: Database) -> List[dict]:
    return list(db[REVIEWS].find({}))
