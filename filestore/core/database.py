import logging

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient
from filestore.core.config import settings
from filestore.services.storage import BlobStore
import certifi

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    db = None

    def connect(self):
        if settings.MONGO_TLS:
            self.client = AsyncIOMotorClient(settings.MONGO_URI, tlsCAFile=certifi.where())
        else:
            self.client = AsyncIOMotorClient(settings.MONGO_URI)
        self.db = self.client[settings.MONGO_DB_NAME]
        logger.info("Connected to MongoDB database %s", settings.MONGO_DB_NAME)

    def close(self):
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("Disconnected from MongoDB")

db = Database()

async def get_store(request: Request) -> BlobStore:
    return request.app.state.store
