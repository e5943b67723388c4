from io import StringIO

import pytest
from django.core.management import call_command

from billing_core.models import (Company, Document, Item, Party, Payment,
                                 User)


@pytest.mark.django_db
def test_seed_demo_is_idempotent():
    for _ in range(2):
        call_command("seed_demo", company="Acme Traders", stdout=StringIO())

    company = Company.objects.get(name="Acme Traders")
    assert company.slug == "acme-traders"
    assert company.owner == User.objects.get(username="demo")
    assert Party.objects.for_company(company).count() == 2
    assert Item.objects.for_company(company).count() == 3

    order = Document.objects.for_company(company).get()
    assert order.doc_type == "sales_order"
    assert order.paid_amount == order.advance_amount
    assert Payment.objects.for_company(company).count() == 1


@pytest.mark.django_db
def test_service_items_carry_no_stock():
    call_command("create_demo_tenant", stdout=StringIO())
    service = Item.objects.get(item_code="SRV-INST")
    assert service.is_service
    assert service.current_stock == 0
    assert Item.objects.get(item_code="BOLT-M8").current_stock == 500
