import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import FastAPI, Body, Depends, Form, Header, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from breachwatch.base.exception import BreachLookupError, BreachWatchError
from breachwatch.base.models import Breach, RequestContext, SignupRequest
from breachwatch.clients.fxa_client import FxaClient, new_fxa_client
from breachwatch.clients.hibp_client import HibpClient, new_hibp_client
from breachwatch.clients.mongo_client import MongoClient
from breachwatch.handlers.env_handler import env, TEMPLATES_DIR
from breachwatch.repositories.subscriber_repository import SubscriberRepository
from breachwatch.services.email_service import EmailService, new_email_service
from breachwatch.services.subscriber_service import SubscriberService, new_subscriber_service
from breachwatch.utils.str import get_random_rate_limit_warning

logging.basicConfig(level=env.state["log_level"])
logger = logging.getLogger(__name__)

CLIENT_LOCAL = env.state["client_local"]
CLIENT_PROD = env.state["client_prod"]
ALLOW_HEADERS = env.auth["allow_headers"]
SUBSCRIBERS_COLLECTION = "subscribers"

@lru_cache
def get_email_service() -> EmailService:
    return new_email_service()

@lru_cache
def get_fxa_client() -> FxaClient:
    return new_fxa_client()

@lru_cache
def get_hibp_client() -> HibpClient:
    return new_hibp_client()

def get_subscriber_repository(request: Request) -> SubscriberRepository:
    return SubscriberRepository(request.app.state.db[SUBSCRIBERS_COLLECTION])

def get_breach_catalog(request: Request) -> list[Breach]:
    return getattr(request.app.state, "breaches", [])

def get_request_context(
    accept_language: Optional[str] = Header(None),
    breaches: list[Breach] = Depends(get_breach_catalog),
) -> RequestContext:
    return RequestContext(locale=accept_language, breaches=breaches)

def get_subscriber_service(
    repository: SubscriberRepository = Depends(get_subscriber_repository),
    email_service: EmailService = Depends(get_email_service),
    fxa_client: FxaClient = Depends(get_fxa_client),
    hibp_client: HibpClient = Depends(get_hibp_client),
) -> SubscriberService:
    return new_subscriber_service(repository, email_service, fxa_client, hibp_client)

@asynccontextmanager
async def lifespan(app: FastAPI):
    mongo_client = MongoClient()
    app.state.db = await mongo_client.ping()
    await SubscriberRepository(app.state.db[SUBSCRIBERS_COLLECTION]).ensure_indexes()
    try:
        app.state.breaches = await get_hibp_client().fetch_all_breaches()
    except BreachLookupError as e:
        logger.warning("Starting without a breach catalog: %s", e)
        app.state.breaches = []
    yield
    await mongo_client.close()


app = FastAPI(title="Breach Watch", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[CLIENT_LOCAL, CLIENT_PROD],
    allow_headers=ALLOW_HEADERS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
)

# Rate limiting configuration
limiter = Limiter(key_func=get_remote_address, enabled=env.limits["enabled"])
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

templates = Jinja2Templates(directory=TEMPLATES_DIR)

def wants_html(request: Request) -> bool:
    return "text/html" in (request.headers.get("accept") or "")

@app.exception_handler(BreachWatchError)
async def breach_watch_exception_handler(request: Request, exc: BreachWatchError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    if wants_html(request):
        return templates.TemplateResponse(
            request=request,
            name="error.html",
            context={"code": exc.code, "message": exc.message},
            status_code=exc.status_code,
        )
    return JSONResponse(
        content={"error": exc.code, "message": exc.message},
        status_code=exc.status_code,
    )

@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        content={"error": "error-rate-limit", "message": get_random_rate_limit_warning()},
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    )

@app.get("/")
@limiter.limit("10/minute")
async def root_endpoint(request: Request):
    return JSONResponse(content={
        "ping": "pong",
        "message": "Breach Watch server pinged successfully :)"
    })

@app.post("/user/add")
@limiter.limit("5/minute")
async def add_subscriber(
    request: Request,
    signup: Optional[SignupRequest] = Body(None),
    ctx: RequestContext = Depends(get_request_context),
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    """
    Sign up an email address for breach alerts and send the verification link.
    The response never echoes subscriber data back.
    """
    signup = signup or SignupRequest()
    await subscriber_service.add(signup.email, ctx, fx_newsletter=signup.additional_emails)
    return JSONResponse(content={
        "title": "Check your inbox",
        "message": "If the address is valid you'll get a link to confirm it.",
    })

@app.get("/user/verify", response_class=HTMLResponse)
@limiter.limit("10/minute")
async def verify_subscriber(
    request: Request,
    token: Optional[str] = None,
    ctx: RequestContext = Depends(get_request_context),
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    subscriber = await subscriber_service.verify(token, ctx)
    return templates.TemplateResponse(
        request=request,
        name="confirmation.html",
        context={"email": subscriber.email},
    )

@app.get("/user/unsubscribe", response_class=HTMLResponse)
@limiter.limit("10/minute")
async def get_unsubscribe(
    request: Request,
    token: Optional[str] = None,
    hash: Optional[str] = None,
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    """Read-only confirmation page; the form on it does the actual unsubscribe."""
    await subscriber_service.get_unsubscribe(token, hash)
    return templates.TemplateResponse(
        request=request,
        name="unsubscribe.html",
        context={"token": token, "hash": hash},
    )

@app.post("/user/unsubscribe")
@limiter.limit("5/minute")
async def post_unsubscribe(
    request: Request,
    token: Optional[str] = Form(None),
    emailHash: Optional[str] = Form(None),
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    await subscriber_service.post_unsubscribe(token, emailHash)
    return RedirectResponse(url="/user/unsubscribe/complete", status_code=status.HTTP_302_FOUND)

@app.get("/user/unsubscribe/complete", response_class=HTMLResponse)
async def unsubscribe_complete(request: Request):
    return templates.TemplateResponse(request=request, name="unsubscribe_complete.html")
