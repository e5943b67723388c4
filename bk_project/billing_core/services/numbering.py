"""
Human-readable document and payment numbers.

    {PREFIX}-{YYYYMMDD}-{sequence}         SO-20250917-0001
    PAY-IN-{YYYYMMDD}-{sequence}-{random}  PAY-IN-20250917-0001-42

The sequence comes from a DocumentSequence row that is locked and
incremented inside a transaction, so concurrent requests for the same
(company, prefix, day) always get different values.
"""
import logging
import random
import threading
import time

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from .. import doctypes
from ..models import Document, DocumentSequence, Payment

logger = logging.getLogger(__name__)


def _setting(name, default):
    return getattr(settings, "BILLING", {}).get(name, default)


def _day_stamp(day):
    return day.strftime("%Y%m%d")


def _parse_sequence(number, stem):
    """Trailing sequence of `number` if it was issued under `stem`."""
    if not number or not number.startswith(stem + "-"):
        return None
    segment = number[len(stem) + 1:].split("-")[0]
    return int(segment) if segment.isdigit() else None


def _highest_issued(model, field, company, stem):
    """Largest sequence already used under `stem` (documents imported or
    numbered before the counter row existed)."""
    numbers = model.objects.filter(
        company=company, **{f"{field}__startswith": stem + "-"}
    ).values_list(field, flat=True)
    parsed = [_parse_sequence(n, stem) for n in numbers]
    return max([p for p in parsed if p is not None], default=0)


def next_sequence(company, prefix, day, model, field):
    """Atomically take the next sequence value for (company, prefix, day)."""
    stem = f"{prefix}-{_day_stamp(day)}"
    with transaction.atomic():
        counter, created = DocumentSequence.objects.select_for_update().get_or_create(
            company=company, prefix=prefix, day=day,
            defaults={"last_value": 0},
        )
        if created:
            counter.last_value = _highest_issued(model, field, company, stem)
        counter.last_value += 1
        counter.save(update_fields=["last_value"])
        return counter.last_value


_fallback_lock = threading.Lock()
_last_fallback = 0


def _fallback_number(prefix):
    """{PREFIX}-{epoch ms}; never the same millisecond twice in a process."""
    global _last_fallback
    with _fallback_lock:
        stamp = max(int(time.time() * 1000), _last_fallback + 1)
        _last_fallback = stamp
    return f"{prefix}-{stamp}"


def _issue(company, prefix, day, model, field, compose):
    """Take a sequence, compose the number, bump once on a collision.

    Any database failure falls back to a timestamp number instead of
    failing the caller.
    """
    try:
        # savepoint: a failure here must not poison the caller's transaction
        with transaction.atomic():
            sequence = next_sequence(company, prefix, day, model, field)
            number = compose(sequence)
            if model.objects.filter(company=company, **{field: number}).exists():
                sequence = next_sequence(company, prefix, day, model, field)
                number = compose(sequence)
            return number
    except DatabaseError:
        logger.warning(
            "Sequence lookup failed for %s (company=%s); using timestamp number",
            prefix, company.pk, exc_info=True,
        )
        return _fallback_number(prefix)


def generate_document_number(company, doc_type, day=None):
    """Next number for `doc_type`, unique within (company, type, day)."""
    try:
        prefix = doctypes.DOC_PREFIXES[doc_type]
    except KeyError:
        raise ValueError(f"Unknown document type: {doc_type}")
    day = day or timezone.localdate()
    pad = _setting("DOCUMENT_NUMBER_PAD", 4)

    def compose(sequence):
        return f"{prefix}-{_day_stamp(day)}-{sequence:0{pad}d}"

    return _issue(company, prefix, day, Document, "number", compose)


def generate_payment_number(company, payment_type, day=None):
    """Daily sequence plus a short random suffix."""
    try:
        prefix = doctypes.PAYMENT_PREFIXES[payment_type]
    except KeyError:
        raise ValueError(f"Unknown payment type: {payment_type}")
    day = day or timezone.localdate()
    pad = _setting("DOCUMENT_NUMBER_PAD", 4)
    digits = _setting("PAYMENT_NUMBER_SUFFIX_DIGITS", 2)

    def compose(sequence):
        suffix = random.randint(0, 10 ** digits - 1)
        return (f"{prefix}-{_day_stamp(day)}-{sequence:0{pad}d}"
                f"-{suffix:0{digits}d}")

    return _issue(company, prefix, day, Payment, "payment_number", compose)
