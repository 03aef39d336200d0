from opentelemetry import trace

TRACER_NAME = "identity_client"


def get_tracer(name: str = TRACER_NAME) -> trace.Tracer:
    """
    Get an OpenTelemetry tracer for client spans

    Only the OpenTelemetry API is used here. Spans are no-ops until the
    embedding application installs a tracer provider.
    """
    from identity_client import __version__

    return trace.get_tracer(name, __version__)
