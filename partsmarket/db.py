import logging

from fastapi import Request
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

USERS = "users"
PRODUCTS = "products"
ORDERS = "orders"
REVIEWS = "reviews"


def create_client(url: str) -> MongoClient:
    # Single client per process; pymongo pools connections internally
    return MongoClient(url, tz_aware=True)


def ensure_indexes(db: Database):
    """Create the unique user indexes that close the registration race."""
    db[USERS].create_index([("uid", ASCENDING)], unique=True, name="uid_unique")
    db[USERS].create_index([("email", ASCENDING)], unique=True, name="email_unique")


def init_db(client: MongoClient, database_name: str) -> Database:
    db = client[database_name]
    ensure_indexes(db)
    logger.info("Connected to MongoDB database %s", database_name)
    return db


def close_db(client: MongoClient):
    client.close()
    logger.info("MongoDB client closed")


# Dependency to get the shared database handle per request

def get_db(request: Request) -> Database:
    return request.app.state.db
