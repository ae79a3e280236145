import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from breachwatch.base.exception import DatabaseConnectionError
from breachwatch.handlers.env_handler import env

logger = logging.getLogger(__name__)

mongo_uri = env.mongo["uri"]
db_name = env.mongo["db"]

class MongoClient:
    def __init__(self, uri: str = mongo_uri):
        self.client = AsyncIOMotorClient(uri)

    async def ping(self) -> AsyncIOMotorDatabase:
        """Ping the subscriber database and return it if no exceptions."""
        db = self.client.get_database(db_name)
        try:
            ping_response = await db.command("ping")
        except Exception as e:
            raise DatabaseConnectionError(details=str(e))
        if int(ping_response["ok"]) != 1:
            raise DatabaseConnectionError(message=f"Problem connecting to cluster: {db_name}")
        logger.info("Database [%s] connected successfully", db_name)
        return db

    async def close(self):
        """Close MongoDB client"""
        self.client.close()
        logger.info("MongoDB client closed")
