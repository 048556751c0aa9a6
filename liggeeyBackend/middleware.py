"""Request middleware for the Liggeey backend."""

from __future__ import annotations

from typing import Callable


class BearerTokenCSRFExemptMiddleware:
    """Exempt bearer-token API calls from Django's CSRF check.

    Mobile and SPA clients authenticate with ``Authorization: Bearer <jwt>``
    and never send the session cookie, so ``CsrfViewMiddleware`` has nothing
    to protect on those requests. Cookie-authenticated requests (the Django
    admin, browsable API) still go through the normal CSRF check.

    Must be placed before ``django.middleware.csrf.CsrfViewMiddleware``.
    """

    header_prefix = "bearer "

    def __init__(self, get_response: Callable):
        self.get_response = get_response

    def __call__(self, request):
        if self.is_bearer_request(request):
            request._dont_enforce_csrf_checks = True  # type: ignore[attr-defined]
            request.META.setdefault("CSRF_SKIP_REASON", "jwt-bearer")
        return self.get_response(request)

    @classmethod
    def is_bearer_request(cls, request) -> bool:
        authorization = request.META.get("HTTP_AUTHORIZATION", "")
        return authorization.lower().startswith(cls.header_prefix)
