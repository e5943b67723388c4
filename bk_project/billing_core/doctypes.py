"""
Document types, number prefixes and status machines.

Kept free of model imports so the calculators and the numbering service can
use it without touching the ORM.
"""

SALES = "sales"
PURCHASE = "purchase"

QUOTATION = "quotation"
SALES_ORDER = "sales_order"
PROFORMA_INVOICE = "proforma_invoice"
SALES_INVOICE = "sales_invoice"
PURCHASE_QUOTATION = "purchase_quotation"
PURCHASE_ORDER = "purchase_order"
PROFORMA_PURCHASE = "proforma_purchase"
PURCHASE_INVOICE = "purchase_invoice"

DOC_TYPE_CHOICES = [
    (QUOTATION, "Quotation"),
    (SALES_ORDER, "Sales order"),
    (PROFORMA_INVOICE, "Proforma invoice"),
    (SALES_INVOICE, "Sales invoice"),
    (PURCHASE_QUOTATION, "Purchase quotation"),
    (PURCHASE_ORDER, "Purchase order"),
    (PROFORMA_PURCHASE, "Proforma purchase"),
    (PURCHASE_INVOICE, "Purchase invoice"),
]

# Number prefixes: SO-20250917-0001
DOC_PREFIXES = {
    QUOTATION: "QUO",
    SALES_ORDER: "SO",
    PROFORMA_INVOICE: "PI",
    SALES_INVOICE: "INV",
    PURCHASE_QUOTATION: "PQU",
    PURCHASE_ORDER: "PO",
    PROFORMA_PURCHASE: "PPO",
    PURCHASE_INVOICE: "PINV",
}

PAYMENT_PREFIXES = {
    "payment_in": "PAY-IN",
    "payment_out": "PAY-OUT",
}

SALES_ORDER_TYPES = (QUOTATION, SALES_ORDER, PROFORMA_INVOICE)
PURCHASE_ORDER_TYPES = (PURCHASE_QUOTATION, PURCHASE_ORDER, PROFORMA_PURCHASE)
ORDER_TYPES = SALES_ORDER_TYPES + PURCHASE_ORDER_TYPES
INVOICE_TYPES = (SALES_INVOICE, PURCHASE_INVOICE)

# URL-level families -> doc types they cover
FAMILIES = {
    "sales-orders": SALES_ORDER_TYPES,
    "purchase-orders": PURCHASE_ORDER_TYPES,
    "sales": (SALES_INVOICE,),
    "purchases": (PURCHASE_INVOICE,),
}

# default doc type when a create request does not name one
FAMILY_DEFAULT_TYPE = {
    "sales-orders": SALES_ORDER,
    "purchase-orders": PURCHASE_ORDER,
    "sales": SALES_INVOICE,
    "purchases": PURCHASE_INVOICE,
}

STATUS_CHOICES = [
    ("draft", "Draft"),
    ("sent", "Sent"),
    ("accepted", "Accepted"),
    ("rejected", "Rejected"),
    ("expired", "Expired"),
    ("confirmed", "Confirmed"),
    ("ordered", "Ordered"),
    ("partially_received", "Partially received"),
    ("received", "Received"),
    ("converted", "Converted"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
]

""" Allowed next states per document family.
    Conversion sets "converted"/"completed" directly, never through here. """
SALES_ORDER_TRANSITIONS = {
    "draft": ["sent", "accepted", "rejected", "expired", "cancelled"],
    "sent": ["accepted", "rejected", "expired", "cancelled"],
    "accepted": ["cancelled"],
    "rejected": ["draft"],
    "expired": ["draft"],
    "converted": ["cancelled"],
    "cancelled": [],
}

PURCHASE_ORDER_TRANSITIONS = {
    "draft": ["sent", "confirmed", "cancelled"],
    "sent": ["confirmed", "cancelled"],
    "confirmed": ["partially_received", "received", "cancelled"],
    "partially_received": ["received", "cancelled"],
    "received": ["completed"],
    "completed": ["cancelled"],
    "cancelled": [],
}

SALES_INVOICE_TRANSITIONS = {
    "draft": ["completed", "cancelled"],
    "completed": ["cancelled"],
    "cancelled": [],
}

PURCHASE_INVOICE_TRANSITIONS = {
    "draft": ["ordered", "received", "completed", "cancelled"],
    "ordered": ["received", "cancelled"],
    "received": ["completed", "cancelled"],
    "completed": ["cancelled"],
    "cancelled": [],
}


def direction_of(doc_type):
    if doc_type in SALES_ORDER_TYPES or doc_type == SALES_INVOICE:
        return SALES
    if doc_type in PURCHASE_ORDER_TYPES or doc_type == PURCHASE_INVOICE:
        return PURCHASE
    raise ValueError(f"Unknown document type: {doc_type}")


def invoice_type_for(doc_type):
    return SALES_INVOICE if direction_of(doc_type) == SALES else PURCHASE_INVOICE


def transitions_for(doc_type):
    if doc_type in SALES_ORDER_TYPES:
        return SALES_ORDER_TRANSITIONS
    if doc_type in PURCHASE_ORDER_TYPES:
        return PURCHASE_ORDER_TRANSITIONS
    if doc_type == SALES_INVOICE:
        return SALES_INVOICE_TRANSITIONS
    return PURCHASE_INVOICE_TRANSITIONS


def initial_status(doc_type):
    # orders start as drafts, invoices are issued straight away
    return "completed" if doc_type in INVOICE_TYPES else "draft"


def converted_status(doc_type):
    return "converted" if direction_of(doc_type) == SALES else "completed"
