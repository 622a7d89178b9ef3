# common/middleware.py
from django.conf import settings
from django.http import HttpResponse
from django.utils.cache import patch_vary_headers


def _allowed_origin(request):
    origin = request.headers.get("Origin")
    if not origin:
        return None
    allowed = getattr(settings, "FRONTEND_URL", "") or ""
    if settings.DEBUG or origin == allowed.rstrip("/"):
        return origin
    return None


class CorsMiddleware:
    """
    Answers CORS preflight for the dashboard frontend and decorates every
    response so downloads expose their Content-Disposition.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        origin = _allowed_origin(request)

        if request.method == "OPTIONS" and request.headers.get("Access-Control-Request-Method"):
            response = HttpResponse(status=200)
            if origin:
                response["Access-Control-Allow-Origin"] = origin
                response["Access-Control-Allow-Credentials"] = "true"
            response["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
            response["Access-Control-Max-Age"] = "86400"
            return response

        response = self.get_response(request)

        if origin:
            response["Access-Control-Allow-Origin"] = origin
            response["Access-Control-Allow-Credentials"] = "true"
            response["Access-Control-Expose-Headers"] = "Content-Disposition"
            patch_vary_headers(response, ("Origin",))
        return response
