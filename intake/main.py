from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from intake.api.routes import router
from intake.api.admin_routes import router as admin_router
from intake.callback.client import SinkClient
from intake.core import messages as m
from intake.core.errors import OutcomeKind
from intake.observability.logging import log
from intake.settings import settings

app = FastAPI(title="Conversational Intake API")

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/health/sink")
async def health_sink():
    ok = await run_in_threadpool(SinkClient().health_check)
    return {"status": "ok" if ok else "degraded", "sink": ok}


# ---------------------------------------------------------------------------
# Last-resort boundary: the transport always gets a 200 with a usable prompt.
# ---------------------------------------------------------------------------
@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    log(event="unhandled_exception", path=str(request.url.path), errorType=type(exc).__name__, error=str(exc)[:500])
    return JSONResponse(
        status_code=200,
        content={
            "status": "error",
            "outcome": OutcomeKind.INTERNAL_FAULT.value,
            "prompts": [{"text": m.INTERNAL_FAULT, "choices": None}],
        },
    )
