from django.db import models

from .company import Company


class DocumentSequence(models.Model):
    """Counter row per (company, prefix, day).

    Numbers are taken by locking this row and incrementing it, so two
    requests for the same day can never read the same value.
    """
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    prefix = models.CharField(max_length=16)
    day = models.DateField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "prefix", "day"],
                name="uq_sequence_company_prefix_day",
            ),
        ]

    def __str__(self):
        return f"{self.prefix} {self.day:%Y%m%d} @ {self.last_value}"
