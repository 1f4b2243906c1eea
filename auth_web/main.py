"""
Auth web service: FastAPI app that owns one IdentityProviderAdapter.
The adapter is built at startup (discovery is fatal); DISABLE_IDP=disable skips it.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from auth_web.routes import router as auth_router
from idp_adapter.adapter import IdentityProviderAdapter
from idp_adapter.config import DISABLE_IDP, load_adapter_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the adapter unless disabled or already provided (tests set app.state.adapter)."""
    adapter = getattr(app.state, "adapter", None)
    owned = None
    if adapter is None and not DISABLE_IDP:
        config = load_adapter_config()
        owned = IdentityProviderAdapter(config, logger=logging.getLogger("idp_adapter"))
        app.state.adapter = owned
    elif adapter is None:
        logger.info("Identity provider disabled (DISABLE_IDP=disable)")
        app.state.adapter = None
    try:
        yield
    finally:
        if owned is not None:
            owned.close()
            app.state.adapter = None


app = FastAPI(title="Auth Web", version="0.1.0", lifespan=lifespan)
app.include_router(auth_router, tags=["auth"])


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "auth_web", "idp": getattr(app.state, "adapter", None) is not None}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "auth_web.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
