"""FastAPI app for the header inspection views.

Endpoints:
  GET /external                     - plain outbound call, HTML view
  GET /external-custom-headers      - outbound call with duplicated tracing headers, HTML view
  GET /api/external                 - JSON form of /external
  GET /api/external-custom-headers  - JSON form of /external-custom-headers
  GET /status                       - service info

View handlers are plain ``def`` so each invocation runs to completion on
its own worker thread.  Every request gets a ``Transaction`` (continuing
an inbound ``traceparent`` if present) that is active while the outbound
call is made.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from jinja2 import Environment, FileSystemLoader

from src.shared.trace import Transaction
from src.shared.utils import setup_logging
from src.web.controller import DtHeadersController, Model

logger = setup_logging("web.server")

_HERE = Path(__file__).resolve().parent
_TEMPLATES_DIR = _HERE / "templates"


def create_app(controller: DtHeadersController, tracing: dict | None = None) -> FastAPI:
    """Create the FastAPI application serving the inspection views.

    *tracing* carries the account identity used for new transactions
    (``account_id``, ``app_id``, ``trusted_account_key``).
    """
    tracing = tracing or {}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        controller.client.close()
        logger.info("Outbound client closed")

    app = FastAPI(title="dtheaders", lifespan=lifespan)

    jinja_env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=True,
    )

    def _start_transaction(request: Request) -> Transaction:
        return Transaction.from_inbound_headers(
            request.headers,
            account_id=str(tracing.get("account_id", "")),
            app_id=str(tracing.get("app_id", "")),
            trusted_account_key=str(tracing.get("trusted_account_key", "")),
        )

    def _render(view: str, model: Model) -> HTMLResponse:
        template = jinja_env.get_template(f"{view}.html")
        return HTMLResponse(template.render(**model.attributes))

    @app.exception_handler(httpx.HTTPError)
    async def outbound_error(request: Request, exc: httpx.HTTPError) -> JSONResponse:
        logger.error(f"Outbound call for {request.url.path} failed: {exc!r}")
        return JSONResponse(
            status_code=502,
            content={"detail": f"Outbound request failed: {exc}"},
        )

    @app.get("/external", response_class=HTMLResponse)
    def external(request: Request) -> HTMLResponse:
        model = Model()
        with _start_transaction(request).activate():
            view = controller.external(model)
        return _render(view, model)

    @app.get("/external-custom-headers", response_class=HTMLResponse)
    def external_custom_headers(request: Request) -> HTMLResponse:
        model = Model()
        with _start_transaction(request).activate() as txn:
            view = controller.external_custom_headers(model, txn)
        return _render(view, model)

    @app.get("/api/external")
    def api_external(request: Request) -> dict:
        with _start_transaction(request).activate():
            record = controller.fetch_external()
        return record.to_json()

    @app.get("/api/external-custom-headers")
    def api_external_custom_headers(request: Request) -> dict:
        with _start_transaction(request).activate() as txn:
            record = controller.fetch_external_custom_headers(txn)
        return record.to_json()

    @app.get("/status")
    def status() -> dict:
        return {
            "service": "dtheaders",
            "external_url": controller.url,
            "instrumented": controller.client.instrument,
        }

    return app
