import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app_logger import get_logger
from calendar_repository import CalendarRepository
from calendar_router import calendar_router
from database import CALENDAR_TABLES, Database, check_connection, describe_connection_error
from errors import CalendarError, StoreError, ValidationError
from settings import API_NAME, API_VERSION, Settings, load_settings
from storage import JsonStorage

logger = get_logger(__name__)

ENDPOINTS = [
    'GET /',
    'GET /api/health',
    'POST /api/init',
    'GET /api/events?school={wlhs|wvhs}',
    'POST /api/events',
    'PUT /api/events/:id',
    'DELETE /api/events/:id',
    'GET /api/materials?school={wlhs|wvhs}',
    'POST /api/materials',
    'PUT /api/materials/:id',
    'DELETE /api/materials/:id',
    'GET /api/day-schedules',
    'POST /api/day-schedules',
    'GET /api/day-types',
    'POST /api/day-types',
    'GET /api/date-configs',
    'POST /api/date-configs',
    'DELETE /api/admin/clear-all',
]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _make_database(settings: Settings, url: str) -> Database:
    return Database(
        url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        timeout=settings.pool_timeout,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        repo: CalendarRepository = app.state.repository
        if repo.database is not None:
            await repo.database.open()
        logger.info('%s v%s starting (%s)', API_NAME, API_VERSION, settings.environment)
        logger.info('Database: %s', 'configured' if repo.use_db else f'local storage at {settings.storage_path}')
        try:
            yield
        finally:
            if repo.database is not None:
                await repo.database.close()

    app = FastAPI(title=API_NAME, version=API_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.repository = CalendarRepository(
        database=_make_database(settings, settings.database_url) if settings.database_url else None,
        storage=None if settings.database_url else JsonStorage(settings.storage_path),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type', 'Authorization', 'Accept'],
    )

    app.include_router(calendar_router)

    # one /api/init at a time, so a pool is never built twice
    init_lock = asyncio.Lock()

    @app.exception_handler(CalendarError)
    async def calendar_error_handler(request: Request, exc: CalendarError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error('%s %s failed: %s', request.method, request.url.path, exc.to_content())
        content = exc.to_content()
        content['timestamp'] = _timestamp()
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [str(err['loc'][-1]) for err in exc.errors() if err.get('loc')]
        return await calendar_error_handler(request, ValidationError('Invalid request', fields))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    'error': 'Endpoint not found',
                    'path': request.url.path,
                    'method': request.method,
                    'timestamp': _timestamp(),
                    'availableEndpoints': ENDPOINTS,
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={'error': exc.detail, 'timestamp': _timestamp()},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception('Unhandled error on %s %s', request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                'error': 'Internal server error',
                'message': str(exc) if not settings.is_production else 'Something went wrong',
                'timestamp': _timestamp(),
            },
        )

    @app.get('/')
    def root() -> Dict[str, Any]:
        return {
            'name': API_NAME,
            'version': API_VERSION,
            'status': 'running',
            'environment': settings.environment,
            'timestamp': _timestamp(),
            'endpoints': ENDPOINTS,
            'features': [
                'Password-protected materials',
                'Multi-school support (WLHS/WVHS)',
                'A/B day scheduling',
                'Per-date colors, day types and access days',
                'Event management',
                'Grade-level materials (9-12)',
            ],
        }

    @app.get('/api/health')
    async def health(request: Request) -> JSONResponse:
        repo: CalendarRepository = request.app.state.repository
        if repo.database is None:
            status = 'healthy' if repo.storage is not None else 'unhealthy'
            return JSONResponse(
                status_code=200 if repo.storage is not None else 500,
                content={
                    'status': status,
                    'connected': False,
                    'storage': 'local',
                    'environment': settings.environment,
                    'apiVersion': API_VERSION,
                    'timestamp': _timestamp(),
                },
            )
        try:
            info = await repo.database.health()
        except StoreError as exc:
            return JSONResponse(
                status_code=500,
                content={
                    'status': 'unhealthy',
                    'error': 'Database connection failed',
                    'connected': False,
                    'details': exc.details or exc.message,
                    'environment': settings.environment,
                    'timestamp': _timestamp(),
                },
            )
        info['timestamp'] = info['timestamp'].isoformat()
        return JSONResponse(
            content={
                'status': 'healthy',
                'message': 'Database connected and ready',
                'connected': True,
                'database': info,
                'environment': settings.environment,
                'apiVersion': API_VERSION,
            },
        )

    @app.post('/api/init')
    async def init_database(request: Request, payload: Optional[Dict[str, Any]] = Body(default=None)):
        repo: CalendarRepository = request.app.state.repository
        db_url = settings.database_url or (payload or {}).get('dbUrl')
        if not db_url:
            raise ValidationError(
                'Database URL is required. Set DATABASE_URL environment variable or provide in request.',
                ['dbUrl'],
            )

        logger.info('Initializing database connection...')
        try:
            async with init_lock:
                await check_connection(db_url, settings.pool_timeout)
                if repo.database is None:
                    database = _make_database(settings, db_url)
                    await database.open()
                    repo.database = database
                else:
                    await repo.database.reinitialize(db_url)
                applied = await repo.database.bootstrap()
        except StoreError as exc:
            logger.error('Database initialization failed: %s', exc.details or exc.message)
            return JSONResponse(
                status_code=500,
                content={
                    'success': False,
                    **describe_connection_error(exc),
                    'hasEnvVar': bool(settings.database_url),
                    'timestamp': _timestamp(),
                },
            )
        logger.info('Database schema initialized (%s)', ', '.join(applied))
        return {
            'success': True,
            'message': 'Database initialized successfully',
            'tables': list(CALENDAR_TABLES),
            'migrations': applied,
            'environment': settings.environment,
            'timestamp': _timestamp(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=app.state.settings.port, reload=not app.state.settings.is_production)
