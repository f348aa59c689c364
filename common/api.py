# common/api.py

"""
API ERROR NORMALIZATION

Shape (all storefront endpoints):
    {"error": {"code": "...", "message": "...", ...}}

StorefrontAPIView renders every failure in that shape:
- StorefrontError subclasses       -> their own code/status/payload
- DRF serializer ValidationError   -> VALIDATION_ERROR (400) with per-field detail
- NotAuthenticated / AuthFailed    -> AUTH_REQUIRED (401)
- Http404 / DRF NotFound           -> NOT_FOUND (404)
- Throttled and other APIExceptions keep DRF's status, wrapped in the same shape
- anything else                    -> logged with traceback, INTERNAL_ERROR (500)
"""

from __future__ import annotations

import logging

from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from common.exceptions import InternalError, StorefrontError

logger = logging.getLogger(__name__)


def error_response(*, code: str, message: str, http_status: int, **extra):
    body = {"code": code, "message": message}
    body.update(extra)
    return Response({"error": body}, status=http_status)


def storefront_error_response(exc: StorefrontError):
    return Response({"error": exc.as_payload()}, status=exc.http_status)


def internal_error_response(exc: Exception, *, context: str):
    logger.exception("Unhandled storefront error", extra={"context": context})
    err = InternalError()
    return Response({"error": err.as_payload()}, status=err.http_status)


class StorefrontErrorMixin:
    """
    Storefront error rendering for any DRF view or viewset. Views raise; this renders.
    """

    def handle_exception(self, exc):
        if isinstance(exc, StorefrontError):
            if exc.http_status >= 500:
                logger.error("Storefront request failed", extra={"code": exc.code})
            return storefront_error_response(exc)

        if isinstance(exc, drf_exceptions.ValidationError):
            return error_response(
                code="VALIDATION_ERROR",
                message="Please check your input and try again",
                http_status=status.HTTP_400_BAD_REQUEST,
                fields=exc.detail,
            )

        if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
            response = error_response(
                code="AUTH_REQUIRED",
                message=str(exc.detail),
                http_status=status.HTTP_401_UNAUTHORIZED,
            )
            auth_header = self.get_authenticate_header(self.request)
            if auth_header:
                response["WWW-Authenticate"] = auth_header
            return response

        if isinstance(exc, (Http404, drf_exceptions.NotFound)):
            return error_response(
                code="NOT_FOUND",
                message="Not found",
                http_status=status.HTTP_404_NOT_FOUND,
            )

        if isinstance(exc, drf_exceptions.APIException):
            response = super().handle_exception(exc)
            response.data = {
                "error": {
                    "code": str(exc.get_codes()).upper() if isinstance(exc.get_codes(), str) else "ERROR",
                    "message": str(exc.detail),
                }
            }
            return response

        return internal_error_response(exc, context=f"{self.__class__.__name__}.{self.request.method}")


class StorefrontAPIView(StorefrontErrorMixin, APIView):
    pass
