from streamctl.schemas.init import init_beanie_odm
from streamctl.shared.storage.mongo import get_mongo_client

STREAMCTL_MONGO_LABEL = "default"


async def init_schema():
    mongo_client = get_mongo_client(STREAMCTL_MONGO_LABEL)
    db = mongo_client.get_default_database()
    await init_beanie_odm(db)


if __name__ == "__main__":
    import asyncio

    asyncio.run(init_schema())
