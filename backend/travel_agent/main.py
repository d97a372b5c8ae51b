from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from travel_agent.core.config import (
    API_PREFIX,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    ENVIRONMENT,
    PERSISTENCE_POLICY,
    SERVER_HOST,
    SERVER_PORT,
)
from travel_agent.core.errors import register_exception_handlers
from travel_agent.db.database import close_database_connection, init_indexes, test_connection
from travel_agent.router.generate import router as generate_router
from travel_agent.router.itinerary import router as itinerary_router
from travel_agent.router.stops import router as stops_router
from travel_agent.router.system import router as system_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    print(f"🚀 Starting {APP_NAME} v{APP_VERSION} ({ENVIRONMENT}, persistence={PERSISTENCE_POLICY})")
    # Indexes only when MongoDB answers; generation keeps working without it
    if await test_connection():
        await init_indexes()
    yield
    print(f"🛑 Shutting down {APP_NAME}...")
    await close_database_connection()


app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(system_router)
for router in (generate_router, itinerary_router, stops_router):
    app.include_router(router, prefix=API_PREFIX)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
