"""
Storefront Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("cart", views.cart_view),
    path("cart/lines", views.cart_lines_view),
    path("cart/lines/<int:line_id>", views.cart_line_update_view),
    path("cart/lines/<int:line_id>/remove", views.cart_line_remove_view),
    path("cart/clear", views.cart_clear_view),
    path("checkout", views.checkout_view),
    path("checkout/quote", views.checkout_quote_view),
    path("checkout/cart", views.checkout_cart_view),
    path("orders/release-abandoned", views.orders_release_abandoned_view),
    path("orders/<uuid:order_id>", views.order_detail_view),
    path("orders/<uuid:order_id>/cancel-request", views.order_cancel_request_view),
    path("orders/<uuid:order_id>/cancel-approve", views.order_cancel_approve_view),
    path("orders/<uuid:order_id>/cancel-reject", views.order_cancel_reject_view),
    path("orders/<uuid:order_id>/refund", views.order_refund_view),
    path("orders/<uuid:order_id>/reject", views.order_reject_view),
    path("orders/<uuid:order_id>/cash-paid", views.order_cash_paid_view),
    path("payments/start", views.payment_start_view),
    path("payments/methods", views.payment_methods_view),
    path("payments/webhook/<str:provider_code>", views.payment_webhook_view),
]
