from rest_framework.views import exception_handler


def api_exception_handler(exc, context):
    """Default DRF handling plus the machine readable error ``code``."""

    response = exception_handler(exc, context)
    if response is None:
        return None

    code = getattr(exc, "kind", None) or getattr(exc, "default_code", None)
    if isinstance(response.data, dict) and code:
        response.data.setdefault("code", code)
        field_errors = getattr(exc, "field_errors", None)
        if field_errors:
            response.data.setdefault("errors", field_errors)
    return response
