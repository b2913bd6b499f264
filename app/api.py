import logging
from contextlib import asynccontextmanager

import psycopg
from fastapi import FastAPI, Request
from dotenv import load_dotenv

from app.layout import error_page
from app.routes import account, admin, applications, auth, dashboard, files, jobs, messages
from app.routes import notifications, profile, public, reports, settings, verification
from core.database import init_db
from core.errors import MarketplaceError, friendly_error

# Ensure .env values are loaded even if uvicorn is launched without `dotenv run`.
# Use override=True so editing `.env` (and restarting uvicorn) reliably takes effect even if
# older values exist in the environment from a previous shell/session.
load_dotenv(override=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(lifespan=lifespan)


app.include_router(public.router)
app.include_router(auth.router)
app.include_router(account.router)
app.include_router(dashboard.router)
app.include_router(profile.router)
app.include_router(jobs.router)
app.include_router(applications.router)
app.include_router(messages.router)
app.include_router(notifications.router)
app.include_router(settings.router)
app.include_router(verification.router)
app.include_router(reports.router)
app.include_router(files.router)
app.include_router(admin.router)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return error_page("Something went wrong", friendly_error(exc), status_code=exc.status_code)


@app.exception_handler(psycopg.IntegrityError)
async def integrity_error_handler(request: Request, exc: psycopg.IntegrityError):
    # Races the stores did not pre-check (double submits and the like)
    return error_page("Request conflict", friendly_error(exc), status_code=409)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault(
        "Content-Security-Policy",
        "default-src 'self'; img-src 'self' data:; style-src 'self' 'unsafe-inline'; script-src 'self' 'unsafe-inline'; "
        "font-src 'self' data:; connect-src 'self';",
    )
    return response
