import time
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings
from database import connect
from errors import register_exception_handlers
from logger import configure_logging, set_request_id
from routes import router

settings = get_settings()
logger = configure_logging(settings.ENV, settings.LOG_LEVEL)


# ---------- Lifecycle ----------

@asynccontextmanager
async def lifespan(app: FastAPI):
    # A failed connection aborts startup: the server never serves without storage.
    app.state.storage = connect(settings.MONGODB_URI, settings.MONGODB_NAME)
    logger.info("blog api ready", extra={"operation": "startup"})
    try:
        yield
    finally:
        app.state.storage.close()


app = FastAPI(title="Blog API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag the request with a correlation id and log one access line."""
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    set_request_id(rid)
    start = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    logger.info(
        "%s %s %s",
        request.method,
        request.url.path,
        response.status_code,
        extra={
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
        },
    )
    return response


register_exception_handlers(app)
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
