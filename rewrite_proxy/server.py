import logging
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import httpx
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from rewrite_proxy.proxy.handler import RewriteProxy
from rewrite_proxy.proxy.route import AbsoluteFormTargetMiddleware, router
from rewrite_proxy.proxy.upstream import ProxySettings, build_upstream_client
from rewrite_proxy.rules.models import Config
from rewrite_proxy.vars import METRICS_PATH, OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")

app_info = Info("rewrite_proxy_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})


BODY_CHUNK_EVENT = "http.response.body"


def is_body_chunk_span(span: ReadableSpan) -> bool:
    return bool(span.attributes) and (
        span.attributes.get("asgi.event.type") == BODY_CHUNK_EVENT
    )


class FilteringSpanExporter(SpanExporter):
    """Drops the per-chunk ASGI spans a streamed passthrough body produces."""

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [span for span in spans if not is_body_chunk_span(span)]
        if not kept:
            return SpanExportResult.SUCCESS
        return self.exporter.export(kept)

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing() -> None:
    """Install the tracer provider; spans are exported only when OTLP_ENDPOINT is set."""
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        return
    tracer_provider = TracerProvider(
        resource=Resource.create({"service.name": SERVICE_NAME})
    )
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=((OTLP_HEADERS).split(",") if OTLP_HEADERS else None),
        )
        tracer_provider.add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )
    trace.set_tracer_provider(tracer_provider)


def create_app(
    config: Config,
    settings: Optional[ProxySettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the proxy application around an already loaded rule set.

    The upstream client is created in the lifespan unless one is given, in
    which case the caller owns it.
    """
    settings = settings or ProxySettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        upstream_client = client or build_upstream_client(settings)
        app.state.proxy = RewriteProxy(config, upstream_client, settings)
        logger.info(
            f"[Server] Proxy ready with {len(config.modifications)} modifications"
            + (f", upstream {settings.upstream_url}" if settings.upstream_url else "")
        )
        try:
            yield
        finally:
            if client is None:
                await upstream_client.aclose()

    app = FastAPI(lifespan=lifespan)

    instrumentator = Instrumentator().instrument(app)
    if METRICS_PATH:
        instrumentator.expose(app, endpoint=METRICS_PATH)
        logger.info(f"[Server] Exposing metrics on {METRICS_PATH}")

    configure_tracing()
    FastAPIInstrumentor.instrument_app(app, excluded_urls=METRICS_PATH)

    app.include_router(router)
    app.add_middleware(AbsoluteFormTargetMiddleware)
    return app
