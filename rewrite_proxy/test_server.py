from unittest.mock import Mock

from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from rewrite_proxy.server import FilteringSpanExporter


def span_with(attributes):
    span = Mock()
    span.attributes = attributes
    return span


class TestFilteringSpanExporter:
    def setup_method(self):
        self.inner = Mock(spec=SpanExporter)
        self.inner.export.return_value = SpanExportResult.SUCCESS
        self.exporter = FilteringSpanExporter(self.inner)

    def test_body_chunk_spans_are_dropped(self):
        request_span = span_with({"proxy.target_url": "http://shop.test/"})
        chunk_span = span_with({"asgi.event.type": "http.response.body"})

        result = self.exporter.export([request_span, chunk_span, chunk_span])

        assert result == SpanExportResult.SUCCESS
        self.inner.export.assert_called_once_with([request_span])

    def test_spans_without_attributes_are_kept(self):
        span = span_with(None)

        self.exporter.export([span])

        self.inner.export.assert_called_once_with([span])

    def test_nothing_left_is_not_exported(self):
        result = self.exporter.export([span_with({"asgi.event.type": "http.response.body"})])

        assert result == SpanExportResult.SUCCESS
        self.inner.export.assert_not_called()

    def test_lifecycle_is_delegated(self):
        self.exporter.shutdown()
        self.exporter.force_flush(1000)

        self.inner.shutdown.assert_called_once_with()
        self.inner.force_flush.assert_called_once_with(1000)
