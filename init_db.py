"""Create the meeting, link, participant and membership tables"""
import asyncio

from agm_backend.database import database_url, init_models


async def init():
    await init_models()
    print(f"Database tables created at {database_url}")


if __name__ == "__main__":
    asyncio.run(init())
