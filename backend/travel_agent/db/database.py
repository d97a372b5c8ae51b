"""
MongoDB access for saved itineraries.

The Motor client is created on first use so the app can boot (and serve
generation under best-effort persistence) without a reachable database.
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.server_api import ServerApi

from travel_agent.core.config import DATABASE_NAME, MONGODB_TIMEOUT_MS, MONGODB_URI

ITINERARIES = "itineraries"

ITINERARY_INDEXES = [
    IndexModel([("userId", ASCENDING)], name="owner"),
    IndexModel([("createdAt", DESCENDING)], name="created_desc"),
    IndexModel([("userId", ASCENDING), ("createdAt", DESCENDING)], name="owner_created_desc"),
]

_client: AsyncIOMotorClient | None = None


def get_database() -> AsyncIOMotorDatabase:
    """Raises ValueError when MONGODB_URI is not configured."""
    global _client

    if _client is None:
        if not MONGODB_URI:
            raise ValueError("MONGODB_URI environment variable is not set")
        _client = AsyncIOMotorClient(
            MONGODB_URI,
            server_api=ServerApi("1"),
            serverSelectionTimeoutMS=MONGODB_TIMEOUT_MS,
        )
        print(f"✅ MongoDB client ready for database: {DATABASE_NAME}")

    return _client[DATABASE_NAME]


def get_itineraries_collection() -> AsyncIOMotorCollection:
    return get_database()[ITINERARIES]


async def init_indexes() -> None:
    try:
        names = await get_itineraries_collection().create_indexes(ITINERARY_INDEXES)
        print(f"✅ Itinerary indexes ensured: {', '.join(names)}")
    except Exception as e:
        print(f"⚠️  Index creation warning: {e}")


async def test_connection() -> bool:
    try:
        await get_database().command("ping")
    except Exception as e:
        print(f"❌ MongoDB unreachable, itineraries will not be saved: {e}")
        return False
    print("✅ MongoDB ping ok")
    return True


async def close_database_connection() -> None:
    global _client

    if _client is not None:
        _client.close()
        _client = None
        print("🔌 Closed MongoDB connection")
