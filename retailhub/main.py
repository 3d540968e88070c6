import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from retailhub.api.routes.auth import router as auth_router
from retailhub.api.routes.catalog import router as catalog_router
from retailhub.api.routes.platform import router as platform_router
from retailhub.api.routes.public import router as public_router
from retailhub.api.routes.tenants import router as tenants_router
from retailhub.core.config import settings
from retailhub.db.database import Base, SessionLocal, engine
from retailhub.db.tenant_connections import tenant_connections
from retailhub.services.maintenance import run_maintenance


async def _maintenance_worker() -> None:
    while True:
        db = SessionLocal()
        try:
            result = run_maintenance(db, tenant_connections)
            if any(result.values()):
                print(f"[maintenance] {result}")
        except Exception as exc:
            print(f"[maintenance] error: {exc}")
        finally:
            db.close()
        await asyncio.sleep(max(60, settings.maintenance_interval_minutes * 60))


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.auto_create_schema:
        Base.metadata.create_all(bind=engine)
    task: asyncio.Task | None = None
    if settings.maintenance_enabled:
        task = asyncio.create_task(_maintenance_worker())
    try:
        yield
    finally:
        if task:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        tenant_connections.dispose_all()

app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router)
app.include_router(tenants_router)
app.include_router(platform_router)
app.include_router(catalog_router)
app.include_router(public_router)


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok", "tenant_pools": len(tenant_connections.keys())}
