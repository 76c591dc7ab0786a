"""
MongoDB Connection Utility

MongoDB stores uploaded files (résumés) in GridFS. Relational data lives in
PostgreSQL; a résumé row only keeps the GridFS file key and its download URL.
"""
import logging

import gridfs
from pymongo import MongoClient
from pymongo.database import Database

from jobpilot.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None

RESUME_BUCKET = "resumes"


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the file storage database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def get_resume_bucket() -> gridfs.GridFSBucket:
    return gridfs.GridFSBucket(get_mongo_db(), bucket_name=RESUME_BUCKET)


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


def init_mongo_indexes():
    """
    Create indexes for file lookups by owner.
    Call this once during app startup.
    """
    db = get_mongo_db()
    db[f"{RESUME_BUCKET}.files"].create_index("metadata.user_id")
    logger.info("MongoDB indexes created successfully")
