from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from groupledger.core.config import settings
from groupledger.core.database import Base, engine
from groupledger.core.errors import register_error_handlers
from groupledger.core.logging import configure_logging
from groupledger.models.group import Group  # noqa: F401
from groupledger.models.member import GroupMember  # noqa: F401
from groupledger.models.invite import GroupInvite  # noqa: F401
from groupledger.models.transaction import Transaction  # noqa: F401
from groupledger.models.split import TransactionSplit  # noqa: F401
from groupledger.models.profile import UserProfile  # noqa: F401

from groupledger.api.routes.groups import router as groups_router
from groupledger.api.routes.invites import router as invites_router
from groupledger.api.routes.transactions import router as transactions_router
from groupledger.api.routes.stats import router as stats_router
from groupledger.api.routes.profiles import router as profiles_router

from groupledger.realtime.broadcaster import Broadcaster
from groupledger.realtime.sse import router as sse_router
from groupledger.realtime.ws import router as ws_router


configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Group Ledger API", version="0.1.0", lifespan=lifespan)

# one registry of connected observers per process
app.state.broadcaster = Broadcaster()

# CORS first
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
)

register_error_handlers(app)

# Routers after
app.include_router(groups_router)
app.include_router(invites_router)
app.include_router(transactions_router)
app.include_router(stats_router)
app.include_router(profiles_router)

app.include_router(ws_router)
app.include_router(sse_router)


@app.get("/")
def root():
    return {"status": "ok", "message": "Group Ledger API running"}


@app.get("/health")
def health():
    return {"ok": True, "observers": len(app.state.broadcaster)}
