# carts/views/api.py

"""
CART API VIEWS

Purpose:
- Cart lifecycle for anonymous and authenticated visitors
- Add/update/remove lines (server-owned pricing)
- Apply/remove coupon
- Merge the anonymous cart into the user's cart after login

Anonymous identity transport:
- HTTP-only cookie CART_TOKEN_COOKIE_NAME (max-age = retention window)
- Fallback header CART_TOKEN_HEADER for non-browser clients
- Newly issued tokens are also echoed in the response header
"""

from __future__ import annotations

from django.conf import settings
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import serializers, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from carts.serializers import CartSerializer
from carts.services import cart_service
from carts.services.identity import CartContext, resolve_cart
from carts.services.merge import merge_anonymous_cart
from catalog.units import SellableUnit
from common.api import StorefrontAPIView
from common.throttling import CartWriteThrottle

# =====================================================
# SWAGGER INPUT SERIALIZERS
# =====================================================


class AddCartLineInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    variant_id = serializers.UUIDField(required=False, allow_null=True)
    quantity = serializers.IntegerField()


class UpdateCartLineInputSerializer(serializers.Serializer):
    quantity = serializers.IntegerField()


class ApplyCouponInputSerializer(serializers.Serializer):
    code = serializers.CharField(required=False, allow_blank=True, max_length=64)
    action = serializers.ChoiceField(choices=["apply", "remove"], required=False, default="apply")

    def validate(self, attrs):
        if attrs.get("action") == "apply" and not (attrs.get("code") or "").strip():
            raise serializers.ValidationError({"code": "Coupon code is required"})
        return attrs


# =====================================================
# TOKEN TRANSPORT
# =====================================================


def _cookie_name() -> str:
    return getattr(settings, "CART_TOKEN_COOKIE_NAME", "cart_token")


def _header_name() -> str:
    return getattr(settings, "CART_TOKEN_HEADER", "x-cart-token")


def _cookie_samesite() -> str:
    return getattr(settings, "CART_TOKEN_COOKIE_SAMESITE", "Lax")


def request_cart_token(request) -> str | None:
    token = request.COOKIES.get(_cookie_name())
    if not token:
        token = request.headers.get(_header_name())
    return (token or "").strip() or None


def _attach_token(response: Response, ctx: CartContext) -> Response:
    if ctx.is_authenticated or not ctx.token:
        return response

    response.set_cookie(
        _cookie_name(),
        ctx.token,
        max_age=int(getattr(settings, "CART_RETENTION_DAYS", 30)) * 24 * 60 * 60,
        httponly=True,
        samesite=_cookie_samesite(),
        secure=bool(getattr(settings, "CART_TOKEN_COOKIE_SECURE", False)),
    )
    if ctx.token_issued:
        response[_header_name()] = ctx.token
    return response


# =====================================================
# BASE
# =====================================================


class CartAPIView(StorefrontAPIView):
    permission_classes = [AllowAny]

    def get_throttles(self):
        if self.request.method in ("GET", "HEAD", "OPTIONS"):
            return super().get_throttles()
        return [CartWriteThrottle()]

    def cart_context(self, request) -> CartContext:
        self.resolved_cart = resolve_cart(request.user, request_cart_token(request))
        return self.resolved_cart

    def handle_exception(self, exc):
        # A freshly issued token is handed back on errors too.
        response = super().handle_exception(exc)
        ctx = getattr(self, "resolved_cart", None)
        if ctx is not None and ctx.token_issued:
            _attach_token(response, ctx)
        return response

    def cart_response(self, request, ctx: CartContext, *, http_status=status.HTTP_200_OK, extra=None):
        ctx.cart.refresh_from_db()
        data = CartSerializer(ctx.cart, context={"user": request.user}).data
        if extra:
            data.update(extra)
        return _attach_token(Response(data, status=http_status), ctx)


# =====================================================
# CART API VIEWS
# =====================================================


class CartView(CartAPIView):
    """
    GET:  resolve (or lazily create) the caller's cart
    POST: add a line (quantities add up if the unit is already in the cart)
    """

    serializer_class = CartSerializer

    @extend_schema(
        responses={200: CartSerializer},
        description="Get the current cart (creates an anonymous cart + token if needed)",
        tags=["Cart"],
    )
    def get(self, request):
        ctx = self.cart_context(request)
        return self.cart_response(request, ctx)

    @extend_schema(
        request=AddCartLineInputSerializer,
        responses={
            201: CartSerializer,
            400: OpenApiResponse(description="VALIDATION_ERROR"),
            404: OpenApiResponse(description="NOT_FOUND (unknown product/variant)"),
        },
        description="Add a product (or variant) to the cart. Price is captured server-side.",
        tags=["Cart"],
    )
    def post(self, request):
        s = AddCartLineInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        ctx = self.cart_context(request)
        unit = SellableUnit.of(data["product_id"], data.get("variant_id"))
        cart_service.add_line(ctx.cart, unit, data["quantity"])

        return self.cart_response(request, ctx, http_status=status.HTTP_201_CREATED)


class CartLineView(CartAPIView):
    serializer_class = CartSerializer

    @extend_schema(
        request=UpdateCartLineInputSerializer,
        responses={200: CartSerializer, 404: OpenApiResponse(description="NOT_FOUND")},
        description="Set a line's quantity",
        tags=["Cart"],
    )
    def put(self, request, line_id):
        s = UpdateCartLineInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        ctx = self.cart_context(request)
        cart_service.update_quantity(ctx.cart, line_id, s.validated_data["quantity"])
        return self.cart_response(request, ctx)

    @extend_schema(
        responses={200: CartSerializer, 404: OpenApiResponse(description="NOT_FOUND")},
        description="Remove a line",
        tags=["Cart"],
    )
    def delete(self, request, line_id):
        ctx = self.cart_context(request)
        cart_service.remove_line(ctx.cart, line_id)
        return self.cart_response(request, ctx)


class RefreshLinePriceView(CartAPIView):
    serializer_class = CartSerializer

    @extend_schema(
        request=None,
        responses={200: CartSerializer, 404: OpenApiResponse(description="NOT_FOUND")},
        description="Re-capture the current catalog price for a line (accept a price change)",
        tags=["Cart"],
    )
    def post(self, request, line_id):
        ctx = self.cart_context(request)
        cart_service.refresh_line_price(ctx.cart, line_id)
        return self.cart_response(request, ctx)


class ApplyCouponView(CartAPIView):
    serializer_class = CartSerializer

    @extend_schema(
        request=ApplyCouponInputSerializer,
        responses={200: CartSerializer, 400: OpenApiResponse(description="INVALID_COUPON")},
        description='Apply a coupon ({"code": "..."}) or remove it ({"action": "remove"})',
        tags=["Cart"],
    )
    def post(self, request):
        s = ApplyCouponInputSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        ctx = self.cart_context(request)
        if data["action"] == "remove":
            cart_service.remove_coupon(ctx.cart)
        else:
            cart_service.apply_coupon(ctx.cart, data["code"], user=request.user)

        return self.cart_response(request, ctx)


class MergeCartView(StorefrontAPIView):
    """
    Called once after login. Reads the anonymous token from cookie/header,
    folds its lines into the user's cart and clears the cookie.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = CartSerializer

    @extend_schema(
        request=None,
        responses={200: CartSerializer, 401: OpenApiResponse(description="AUTH_REQUIRED")},
        description="Merge the anonymous cart (cart_token cookie or x-cart-token header) into the user's cart",
        tags=["Cart"],
    )
    def post(self, request):
        result = merge_anonymous_cart(request_cart_token(request), request.user)

        data = CartSerializer(result.cart, context={"user": request.user}).data
        data.update({"merged": result.merged, "merged_line_count": result.merged_line_count})

        response = Response(data, status=status.HTTP_200_OK)
        if result.merged or request.COOKIES.get(_cookie_name()):
            response.delete_cookie(_cookie_name(), samesite=_cookie_samesite())
        return response
