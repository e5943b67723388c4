from django.contrib.auth.models import UserManager
from django.db import models


# -----------------------------------------
# Tenant scoping for every company-owned model
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):
        return self.filter(company=company)

    def active(self, company):
        return self.filter(company=company, is_active=True)
    # Party.objects.active(ctx.company)


class TenantManager(models.Manager):
    def get_queryset(self):
        return TenantQuerySet(self.model, using=self._db)

    def for_company(self, company):
        return self.get_queryset().for_company(company)

    def active(self, company):
        return self.get_queryset().active(company)


class TenantUserManager(UserManager):
    """Default Django user manager plus a company filter on memberships."""

    def for_company(self, company):
        return self.get_queryset().filter(
            memberships__company=company, memberships__is_active=True
        )


class DocumentQuerySet(TenantQuerySet):
    def of_types(self, doc_types):
        return self.filter(doc_type__in=doc_types)

    def open_balance(self):
        # anything that still expects money
        return self.filter(pending_amount__gt=0).exclude(status="cancelled")


class DocumentManager(TenantManager):
    def get_queryset(self):
        return DocumentQuerySet(self.model, using=self._db)

    def of_types(self, doc_types):
        return self.get_queryset().of_types(doc_types)
