from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import Document, Party, Payment, PaymentAllocation

"""Parties carry ledger history: deactivate them instead."""


@receiver(pre_delete, sender=Party)
def prevent_delete_party(sender, instance, **kwargs):
    raise ValidationError(
        f"Party {instance.name} cannot be deleted; set is_active=False.")


"""Block document deletion once money was allocated to it."""


@receiver(pre_delete, sender=Document)
def prevent_delete_document_with_payments(sender, instance, **kwargs):
    if PaymentAllocation.objects.filter(document=instance).exists():
        raise ValidationError("Cannot delete a document with payments.")


"""Completed payments are cancelled, never deleted."""


@receiver(pre_delete, sender=Payment)
def prevent_delete_completed_payment(sender, instance, **kwargs):
    if instance.status == "completed":
        raise ValidationError(
            f"Cancel payment {instance.payment_number} instead of deleting it.")
