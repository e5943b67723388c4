import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def recompute_party_balances(company_id):
    """Rebuild every party balance of a company from its payment ledger."""
    # import lazily to avoid circular imports at module import time
    from .models import Party
    from .services.payments import recompute_party_balance

    party_ids = Party.objects.filter(company_id=company_id).values_list(
        "pk", flat=True)
    updated = 0
    for party_id in party_ids:
        recompute_party_balance(party_id)
        updated += 1
    return updated


@shared_task
def mark_overdue_documents(company_id=None):
    """Daily sweep: unpaid documents past their due date become overdue."""
    from .models import Company
    from .services.payments import mark_overdue

    company = Company.objects.get(pk=company_id) if company_id else None
    count = mark_overdue(company=company)
    if count:
        logger.info("Marked %s document(s) overdue (company=%s)",
                    count, company_id or "all")
    return count
