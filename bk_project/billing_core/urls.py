from django.urls import path, re_path

from . import views

FAMILY = r"(?P<family>sales-orders|purchase-orders|sales|purchases)"
ORDER_FAMILY = r"(?P<family>sales-orders|purchase-orders)"

urlpatterns = [
    path("payments", views.payment_list, name="payment-list"),
    path("payments/pay-in", views.pay_in, name="payment-pay-in"),
    path("payments/pay-out", views.pay_out, name="payment-pay-out"),
    path("payments/<int:pk>/cancel", views.payment_cancel,
         name="payment-cancel"),

    re_path(rf"^{FAMILY}$", views.document_collection,
            name="document-collection"),
    re_path(rf"^{FAMILY}/(?P<pk>\d+)$", views.document_detail,
            name="document-detail"),
    re_path(rf"^{FAMILY}/(?P<pk>\d+)/status$", views.document_status,
            name="document-status"),
    re_path(rf"^{FAMILY}/(?P<pk>\d+)/payments$", views.document_payments,
            name="document-payments"),
    re_path(rf"^{ORDER_FAMILY}/(?P<pk>\d+)/convert-to-invoice$",
            views.document_convert, name="document-convert"),
]
