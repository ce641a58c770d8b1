"""
Ensure unique user indexes
- Removes users whose uid or email repeats an older document (oldest _id wins)
- Creates the unique uid/email indexes the API relies on

Databases written before the indexes existed can hold duplicate registrations,
in which case index creation fails until they are cleaned up.

Usage:
  python -m migration.ensure_user_indexes --url mongodb://localhost:27017 --db SumonMoto [--dry-run]
"""
import argparse
import logging
from typing import List

from pymongo.database import Database

from partsmarket import config
from partsmarket.db import USERS, create_client, ensure_indexes

logger = logging.getLogger(__name__)


def find_duplicate_users(db: Database) -> List:
    missing = db[USERS].count_documents({"$or": [{"uid": None}, {"email": None}]})
    if missing:
        raise RuntimeError(f"{missing} users lack a uid or email; fix them before indexing")

    seen_uids, seen_emails = set(), set()
    duplicates = []
    for user in db[USERS].find({}, {"uid": 1, "email": 1}).sort("_id", 1):
        if user["uid"] in seen_uids or user["email"] in seen_emails:
            duplicates.append(user["_id"])
            continue
        seen_uids.add(user["uid"])
        seen_emails.add(user["email"])
    return duplicates


def migrate(db: Database, dry_run: bool = False) -> List:
    duplicates = find_duplicate_users(db)
    if dry_run:
        logger.info("Dry run: %d duplicate users would be removed", len(duplicates))
        return duplicates
    if duplicates:
        db[USERS].delete_many({"_id": {"$in": duplicates}})
        logger.info("Removed %d duplicate users", len(duplicates))
    ensure_indexes(db)
    return duplicates


def main():
    settings = config.get_settings()
    parser = argparse.ArgumentParser()
    parser.add_argument("--url", default=settings.mongodb_url, help="MongoDB connection string")
    parser.add_argument("--db", default=settings.database_name, help="Database name")
    parser.add_argument("--dry-run", action="store_true", help="Report duplicates without changing anything")
    args = parser.parse_args()
    config.configure_logging()
    client = create_client(args.url)
    try:
        removed = migrate(client[args.db], dry_run=args.dry_run)
    finally:
        client.close()
    for _id in removed:
        print(_id)

if __name__ == "__main__":
    main()
