from aiohttp import web

from ..services import SessionService
from .routes import create_routes, error_middleware

MAX_UPLOAD_BYTES = 50 * 1024 * 1024


def create_app(service: SessionService) -> web.Application:
    app = web.Application(middlewares=[error_middleware], client_max_size=MAX_UPLOAD_BYTES)
    app.add_routes(create_routes(service))
    return app
