"""
FastAPI server for bird dataset queries.

All routes are mounted under the configured path prefix. Responses use a
uniform success/error envelope; every response carries security headers and
CORS headers, and requests under the prefix are rate limited per client.
"""

import json
import logging
import math
import time
from contextlib import asynccontextmanager
from typing import Any, Callable

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bird_db import __version__
from bird_db.api.models import (
    CustomQueryRequest,
    ErrorResponse,
    HealthStatus,
    RawQueryRequest,
    SuccessResponse,
)
from bird_db.api.params import parse_bool, parse_int, require
from bird_db.api.ratelimit import SlidingWindowRateLimiter
from bird_db.config import Config, get_config
from bird_db.errors import (
    BirdDBError,
    EvaluatorError,
    InternalError,
    NotFoundError,
    PayloadTooLargeError,
    QueryTimeoutError,
    RateLimitError,
    ValidationError,
)
from bird_db.log_setup import configure_logging
from bird_db.query import BirdQueryEngine, QueryRunner, paginate
from bird_db.records import TAXONOMY_LEVELS
from bird_db.storage import DatasetStore

logger = logging.getLogger(__name__)

# Equivalent of helmet's default header set
SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; base-uri 'self'; font-src 'self' https: data:; "
        "form-action 'self'; frame-ancestors 'self'; img-src 'self' data:; "
        "object-src 'none'; script-src 'self'; script-src-attr 'none'; "
        "style-src 'self' https: 'unsafe-inline'; upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}

SERVICE_NAME = "Bird Data JSONata Query API"

PAGE_FIELDS = ("page", "limit")

ENDPOINTS = {
    "stats": "GET /api/stats",
    "search": "GET /api/search?q=term&exact=false",
    "taxonomy": "GET /api/taxonomy/:level/:value",
    "conservation": "GET /api/conservation/:category",
    "range": "GET /api/range?region=name",
    "extinct": "GET /api/extinct",
    "authority": "GET /api/authority?name=authority",
    "random": "GET /api/random?count=10",
    "bird": "GET /api/bird/:scientificName",
    "unique": "GET /api/unique/:field",
    "group": "GET /api/group/:field",
    "customQuery": "POST /api/custom",
    "rawQuery": "POST /api/query",
}

ENDPOINT_DOCS = [
    {
        "path": "/stats",
        "method": "GET",
        "description": "Get comprehensive dataset statistics",
        "parameters": "None",
        "example": "/api/stats",
    },
    {
        "path": "/search",
        "method": "GET",
        "description": "Search birds by scientific or common name",
        "parameters": "q (required), exact (optional, default: false), page, limit",
        "example": "/api/search?q=eagle&exact=false&page=1&limit=10",
    },
    {
        "path": "/taxonomy/:level/:value",
        "method": "GET",
        "description": "Get birds by taxonomic classification",
        "parameters": f"level ({'|'.join(TAXONOMY_LEVELS)}), value, page, limit",
        "example": "/api/taxonomy/Order/Strigiformes",
    },
    {
        "path": "/conservation/:category",
        "method": "GET",
        "description": "Get birds by IUCN Red List category",
        "parameters": "category (CR|EN|VU|EX|etc.), page, limit",
        "example": "/api/conservation/CR",
    },
    {
        "path": "/range",
        "method": "GET",
        "description": "Get birds by geographic range",
        "parameters": "region (required), page, limit",
        "example": "/api/range?region=Madagascar",
    },
    {
        "path": "/extinct",
        "method": "GET",
        "description": "Get all extinct or possibly extinct species",
        "parameters": "page, limit",
        "example": "/api/extinct",
    },
    {
        "path": "/authority",
        "method": "GET",
        "description": "Get birds described by specific authority",
        "parameters": "name (required), page, limit",
        "example": "/api/authority?name=Linnaeus",
    },
    {
        "path": "/random",
        "method": "GET",
        "description": "Get random sample of birds",
        "parameters": "count (optional, default: 10, max: 100)",
        "example": "/api/random?count=5",
    },
    {
        "path": "/bird/:scientificName",
        "method": "GET",
        "description": "Get detailed report for specific bird",
        "parameters": "scientificName (required)",
        "example": "/api/bird/Aquila chrysaetos",
    },
    {
        "path": "/unique/:field",
        "method": "GET",
        "description": "List distinct non-empty values of a field",
        "parameters": "field, page, limit (default: 100)",
        "example": "/api/unique/Family",
    },
    {
        "path": "/group/:field",
        "method": "GET",
        "description": "Record and species counts per distinct value of a field",
        "parameters": "field, page, limit",
        "example": "/api/group/Order",
    },
    {
        "path": "/custom",
        "method": "POST",
        "description": "Custom query with multiple filters",
        "body": '{ "filters": { "Field": "value" }, "page": 1, "limit": 50 }',
        "example": "POST /api/custom",
    },
    {
        "path": "/query",
        "method": "POST",
        "description": "Execute raw JSONata query",
        "body": '{ "query": "JSONata expression", "page": 1, "limit": 50 }',
        "example": "POST /api/query",
    },
]


def format_response(data: Any, message: str = "Success", pagination=None) -> JSONResponse:
    """Wrap ``data`` in the success envelope."""
    body = SuccessResponse(message=message, data=data, pagination=pagination)
    return JSONResponse(content=body.to_content())


def format_error(message: str, status_code: int = 500, details: Any = None, headers=None) -> JSONResponse:
    """Wrap an error in the error envelope."""
    body = ErrorResponse(error=message, status_code=status_code, details=details)
    return JSONResponse(status_code=status_code, content=body.to_content(), headers=headers)


def client_address(request: Request, trusted_proxies: list[str]) -> str:
    """Return the client address, honouring X-Forwarded-For only from trusted proxies."""
    direct_ip = request.client.host if request.client else "unknown"
    if direct_ip not in trusted_proxies:
        return direct_ip
    forwarded = request.headers.get("X-Forwarded-For", "")
    # X-Forwarded-For: client, proxy1, proxy2 (leftmost is the real client)
    real_ip = forwarded.split(",")[0].strip()
    return real_ip or direct_ip


# Dependencies


def get_engine(request: Request) -> BirdQueryEngine:
    return request.app.state.engine


def get_runner(request: Request) -> QueryRunner:
    return request.app.state.runner


def get_app_config(request: Request) -> Config:
    return request.app.state.config


async def run_query(
    runner: QueryRunner,
    failure: str,
    func: Callable[..., Any],
    *args,
    client_errors: bool = False,
) -> Any:
    """
    Run an engine call and relabel its failures for the response.

    Evaluator failures become 500 (or 400 when ``client_errors`` is set, for
    caller-supplied expressions) with the engine message in ``details``.
    Validation errors pass through untouched.
    """
    try:
        return await runner.run(func, *args)
    except QueryTimeoutError as e:
        status = 400 if client_errors else e.status_code
        raise QueryTimeoutError(failure, details=e.details, status_code=status) from e
    except EvaluatorError as e:
        logger.error(f"{failure}: {e.details}")
        status = 400 if client_errors else 500
        raise EvaluatorError(failure, details=e.details, status_code=status) from e
    except NotFoundError as e:
        raise NotFoundError(failure, details=e.details or e.message) from e


async def read_body(request: Request, model: type[BaseModel], missing: str) -> Any:
    """
    Read and validate a JSON request body.

    Raises:
        PayloadTooLargeError: If the body exceeds the configured size limit.
        ValidationError: If the body is not JSON or does not match ``model``.
    """
    max_bytes = request.app.state.config.server.max_body_bytes
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLargeError(
            "Request body too large", details=f"Limit is {max_bytes} bytes"
        )
    raw = await request.body()
    if len(raw) > max_bytes:
        raise PayloadTooLargeError(
            "Request body too large", details=f"Limit is {max_bytes} bytes"
        )

    try:
        payload = json.loads(raw) if raw else None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body must be valid JSON", details=str(e)) from e

    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        errors = e.errors()
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
            for err in errors
        ]
        page_fields = [
            err["loc"][0] for err in errors if err["loc"] and err["loc"][0] in PAGE_FIELDS
        ]
        # Blame page/limit only when the required field itself is fine
        if len(page_fields) == len(errors):
            raise ValidationError(
                f'Parameter "{page_fields[0]}" must be an integer', details=problems
            ) from e
        raise ValidationError(missing, details=problems) from e


def page_args(config: Config, page, limit, default_limit: int | None = None) -> tuple[int, int]:
    """Parse page/limit with the configured defaults and cap."""
    query_config = config.query
    return (
        parse_int("page", page, default=1),
        parse_int(
            "limit",
            limit,
            default=default_limit or query_config.default_page_size,
            maximum=query_config.max_page_size,
        ),
    )


def paged_response(results: list, page: int, limit: int, message: str) -> JSONResponse:
    paged = paginate(results, page, limit)
    return format_response(paged.results, message, paged.pagination)


router = APIRouter()


@router.get("/")
async def root():
    """Service descriptor and endpoint map."""
    return {
        "name": SERVICE_NAME,
        "version": __version__,
        "description": "RESTful API for querying comprehensive bird data using JSONata",
        "endpoints": ENDPOINTS,
        "documentation": "/api/docs",
        "healthCheck": "/api/health",
    }


@router.get("/api/health")
async def health(request: Request):
    """Liveness, uptime and engine readiness."""
    engine = getattr(request.app.state, "engine", None)
    status = HealthStatus(
        status="healthy",
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        engine_ready=engine is not None and engine.ready,
    )
    return format_response(status.model_dump(by_alias=True), "Service is healthy")


@router.get("/api/docs")
async def docs(request: Request, config: Config = Depends(get_app_config)):
    """Static endpoint documentation."""
    host = request.headers.get("host", request.url.netloc)
    return {
        "name": "Bird Data Query API Documentation",
        "version": __version__,
        "baseUrl": f"{request.url.scheme}://{host}{config.server.path_prefix}/api",
        "endpoints": ENDPOINT_DOCS,
    }


@router.get("/api/stats")
async def stats(
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
):
    """Dataset statistics."""
    result = await run_query(runner, "Failed to get dataset statistics", engine.dataset_stats)
    return format_response(result, "Dataset statistics retrieved successfully")


@router.get("/api/search")
async def search(
    q: str | None = None,
    exact: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Search birds by scientific or common name."""
    term = require("q", q)
    page_no, page_size = page_args(config, page, limit)

    results = await run_query(
        runner, "Search failed", engine.search_by_name, term, parse_bool(exact)
    )
    return paged_response(
        results, page_no, page_size, f'Found {len(results)} birds matching "{term}"'
    )


@router.get("/api/taxonomy/{level}/{value}")
async def taxonomy(
    level: str,
    value: str,
    page: str | None = None,
    limit: str | None = None,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Birds at one taxonomic level/value."""
    page_no, page_size = page_args(config, page, limit)

    results = await run_query(
        runner, "Taxonomy query failed", engine.by_taxonomy, level, value
    )
    return paged_response(
        results, page_no, page_size, f"Found {len(results)} records for {level}: {value}"
    )


@router.get("/api/conservation/{category}")
async def conservation(
    category: str,
    page: str | None = None,
    limit: str | None = None,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Birds in an IUCN Red List category."""
    page_no, page_size = page_args(config, page, limit)

    results = await run_query(
        runner, "Conservation query failed", engine.by_iucn_category, category
    )
    return paged_response(
        results,
        page_no,
        page_size,
        f"Found {len(results)} species with IUCN status: {category}",
    )


@router.get("/api/range")
async def geographic_range(
    region: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Birds whose range description mentions ``region``."""
    region = require("region", region)
    page_no, page_size = page_args(config, page, limit)

    results = await run_query(runner, "Range query failed", engine.by_range, region)
    return paged_response(
        results, page_no, page_size, f"Found {len(results)} birds in region: {region}"
    )


@router.get("/api/extinct")
async def extinct(
    page: str | None = None,
    limit: str | None = None,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Extinct or possibly extinct species."""
    page_no, page_size = page_args(config, page, limit)

    results = await run_query(
        runner, "Extinct species query failed", engine.extinct_species
    )
    return paged_response(
        results,
        page_no,
        page_size,
        f"Found {len(results)} extinct or possibly extinct species",
    )


@router.get("/api/authority")
async def authority(
    name: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Birds described by an authority."""
    name = require("name", name)
    page_no, page_size = page_args(config, page, limit)

    results = await run_query(
        runner, "Authority query failed", engine.by_authority, name
    )
    return paged_response(
        results, page_no, page_size, f"Found {len(results)} birds described by: {name}"
    )


@router.get("/api/random")
async def random_sample(
    count: str | None = None,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Random sample of birds (unpaginated)."""
    sample_size = parse_int(
        "count",
        count,
        default=config.query.random_default_count,
        minimum=0,
        maximum=config.query.random_max_count,
    )

    results = await run_query(
        runner, "Random sample failed", engine.random_sample, sample_size
    )
    return format_response(results, f"Retrieved {len(results)} random birds")


@router.get("/api/bird/{scientific_name:path}")
async def bird_report(
    scientific_name: str,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
):
    """Detailed report for one bird, by exact scientific name."""
    report = await run_query(
        runner, "Bird report failed", engine.bird_report, scientific_name
    )
    return format_response(report, f"Retrieved detailed report for: {scientific_name}")


@router.post("/api/custom")
async def custom_query(
    request: Request,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Conjunction of per-field filters from the request body."""
    body = await read_body(
        request, CustomQueryRequest, 'Request body must contain "filters" object'
    )
    page_no, page_size = page_args(config, body.page, body.limit)

    results = await run_query(
        runner, "Custom query failed", engine.custom_query, body.filters
    )
    return paged_response(
        results, page_no, page_size, f"Custom query returned {len(results)} results"
    )


@router.post("/api/query")
async def raw_query(
    request: Request,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Execute a caller-supplied JSONata expression; lists are paginated."""
    body = await read_body(
        request, RawQueryRequest, 'Request body must contain "query" string'
    )
    page_no, page_size = page_args(config, body.page, body.limit)

    results = await run_query(
        runner, "JSONata query failed", engine.execute, body.query, client_errors=True
    )
    if isinstance(results, list):
        return paged_response(
            results, page_no, page_size, f"JSONata query returned {len(results)} results"
        )
    return format_response(results, "JSONata query executed successfully")


@router.get("/api/unique/{field}")
async def unique_values(
    field: str,
    page: str | None = None,
    limit: str | None = None,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Distinct non-empty values of a field."""
    page_no, page_size = page_args(
        config, page, limit, default_limit=config.query.unique_page_size
    )

    results = await run_query(
        runner, "Unique values query failed", engine.unique_values, field
    )
    return paged_response(
        results,
        page_no,
        page_size,
        f"Found {len(results)} unique values for field: {field}",
    )


@router.get("/api/group/{field}")
async def group_by(
    field: str,
    page: str | None = None,
    limit: str | None = None,
    engine: BirdQueryEngine = Depends(get_engine),
    runner: QueryRunner = Depends(get_runner),
    config: Config = Depends(get_app_config),
):
    """Record and species counts per distinct value of a field."""
    page_no, page_size = page_args(config, page, limit)

    results = await run_query(runner, "Group query failed", engine.group_by, field)
    return paged_response(
        results, page_no, page_size, f"Found {len(results)} groups for field: {field}"
    )


def create_app(
    config: Config | None = None,
    store: DatasetStore | None = None,
    engine: BirdQueryEngine | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Service configuration (default: read from the environment)
        store: Pre-loaded dataset; when omitted the dataset file from
            ``config.storage.data_file`` is loaded at startup
        engine: Pre-built engine (overrides ``store``)

    Returns:
        Configured FastAPI application instance.
    """
    config = config or Config()
    prefix = config.server.path_prefix.rstrip("/")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load the dataset before serving; LoadError aborts startup."""
        query_engine = engine
        if query_engine is None:
            dataset = store
            if dataset is None:
                logger.info("Starting up: loading dataset...")
                dataset = DatasetStore(config.storage.data_file)
                dataset.load()
            query_engine = BirdQueryEngine(
                dataset, related_limit=config.query.related_family_limit
            )
        runner = QueryRunner(
            timeout_seconds=config.query.timeout_seconds,
            max_workers=config.query.max_workers,
        )
        app.state.engine = query_engine
        app.state.runner = runner
        logger.info(f"Bird query engine ready ({len(query_engine.store)} records)")

        yield

        logger.info("Shutting down...")
        runner.shutdown()

    app = FastAPI(
        title=SERVICE_NAME,
        description="Query a bird taxonomy dataset with JSONata",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.started_at = time.monotonic()

    limiter = SlidingWindowRateLimiter(
        max_requests=config.rate_limit_max,
        window_seconds=config.rate_limit.window_seconds,
        max_tracked_clients=config.rate_limit.max_tracked_clients,
    )
    app.state.rate_limiter = limiter
    retry_after = f"{math.ceil(config.rate_limit.window_seconds / 60)} minutes"

    @app.middleware("http")
    async def log_and_rate_limit(request: Request, call_next):
        """Enforce per-client rate limits, log each request, and contain crashes."""
        start = time.monotonic()
        client_ip = client_address(request, config.server.trusted_proxies)
        path = request.url.path

        if path == prefix or path.startswith(prefix + "/"):
            wait = limiter.hit(client_ip)
            if wait is not None:
                error = RateLimitError(
                    "Too many requests, please try again later.",
                    details={"retryAfter": retry_after},
                )
                return format_error(
                    error.message,
                    error.status_code,
                    error.details,
                    headers={"Retry-After": str(math.ceil(wait))},
                )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Unhandled error on {request.method} {path}")
            error = InternalError("Internal server error")
            response = format_error(error.message, error.status_code)

        duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            f"{request.method} {path} {response.status_code} {duration_ms:.1f}ms - {client_ip}",
            extra={
                "method": request.method,
                "path": path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 1),
                "client_ip": client_ip,
            },
        )
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BirdDBError)
    async def bird_db_error_handler(request: Request, exc: BirdDBError):
        if exc.status_code >= 500:
            logger.error(f"{exc.message}: {exc.details}")
        else:
            logger.warning(f"{exc.message}: {exc.details}")
        return format_error(exc.message, exc.status_code, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return format_error(
                "Endpoint not found", 404, f"{request.method} {request.url.path}"
            )
        return format_error(str(exc.detail), exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = [err.get("msg", "invalid value") for err in exc.errors()]
        return format_error("Invalid request", 400, problems)

    app.include_router(router, prefix=prefix)

    return app


def app_factory() -> FastAPI:
    """Entry point for ``uvicorn --factory bird_db.api.server:app_factory``."""
    config = get_config()
    configure_logging(config)
    return create_app(config)
