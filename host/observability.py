import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

logger = logging.getLogger(__name__)


def setup_tracing() -> None:
    """
    Initializes OpenTelemetry tracing with an OTLP exporter.

    Spans created through get_tracer() before this is called are no-ops.
    """
    trace_provider = TracerProvider()
    trace_exporter = OTLPSpanExporter()
    trace_provider.add_span_processor(BatchSpanProcessor(trace_exporter))
    trace.set_tracer_provider(trace_provider)

    logger.info("OpenTelemetry tracing initialized with OTLPSpanExporter.")


def get_tracer(name: str) -> trace.Tracer:
    """
    Returns a tracer with the specified name.
    """
    return trace.get_tracer(name)
