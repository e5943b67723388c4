from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.test import TestCase

from billing_core.exceptions import PartyResolutionConflict
from billing_core.models import Party
from billing_core.phones import normalize_phone, phone_variants
from billing_core.services.parties import resolve_party

from .helpers import make_party, make_tenant


def test_normalize_phone_national_form():
    assert normalize_phone("+91 98765-43210") == "9876543210"
    assert normalize_phone("098765 43210") == "9876543210"
    assert normalize_phone("(987) 654-3210") == "9876543210"
    assert normalize_phone(None) == ""


def test_phone_variants_cover_stored_forms():
    variants = phone_variants("+91 98765-43210")
    assert variants[0] == "+91 98765-43210"
    assert "+919876543210" in variants
    assert "919876543210" in variants
    assert "9876543210" in variants
    # no repeats
    assert len(variants) == len(set(variants))
    assert phone_variants("  ") == []


class ResolvePartyTests(TestCase):
    def setUp(self):
        self.company, self.user, self.ctx = make_tenant()
        self.ravi = make_party(self.company, "Ravi Kumar", "9876543210")

    def test_explicit_id_wins(self):
        party = resolve_party(self.ctx, party_id=self.ravi.pk,
                              name="Somebody Else", phone="9000000000")
        self.assertEqual(party.pk, self.ravi.pk)
        self.assertEqual(party.name, "Ravi Kumar")

    def test_foreign_or_malformed_id_falls_through(self):
        other_company, _, _ = make_tenant("other-co")
        stranger = make_party(other_company, "Stranger", "9123456789")

        party = resolve_party(self.ctx, party_id=stranger.pk,
                              phone="9876543210")
        self.assertEqual(party.pk, self.ravi.pk)

        party = resolve_party(self.ctx, party_id="not-an-id",
                              phone="9876543210")
        self.assertEqual(party.pk, self.ravi.pk)

    def test_phone_match_in_any_form_updates_name(self):
        for raw in ("+91 98765-43210", "098765 43210", "919876543210"):
            party = resolve_party(self.ctx, name="Ravi K", phone=raw)
            self.assertEqual(party.pk, self.ravi.pk)

        self.ravi.refresh_from_db()
        self.assertEqual(self.ravi.name, "Ravi K")
        self.assertEqual(Party.objects.for_company(self.company).count(), 1)

    def test_name_match_is_case_insensitive_and_backfills_phone(self):
        anita = make_party(self.company, "Anita Traders", "")

        party = resolve_party(self.ctx, name="anita traders",
                              phone="+91 90000 00001")
        self.assertEqual(party.pk, anita.pk)

        anita.refresh_from_db()
        self.assertEqual(anita.phone_number, "9000000001")
        self.assertEqual(anita.name, "Anita Traders")

    def test_name_match_keeps_existing_phone(self):
        party = resolve_party(self.ctx, name="RAVI KUMAR", phone="9111111111")
        # phone differs and the stored one is kept
        self.assertEqual(party.pk, self.ravi.pk)
        self.ravi.refresh_from_db()
        self.assertEqual(self.ravi.phone_number, "9876543210")

    def test_creates_new_party_for_role(self):
        party = resolve_party(self.ctx, name="Gupta Wholesale",
                              phone="9123456780", role="supplier")

        self.assertEqual(party.party_type, "supplier")
        self.assertEqual(party.current_balance, Decimal("0.00"))
        self.assertEqual(party.company, self.company)
        self.assertEqual(party.created_by, self.user)

    def test_existing_customer_becomes_both_when_bought_from(self):
        party = resolve_party(self.ctx, phone="9876543210", role="supplier")
        self.assertEqual(party.pk, self.ravi.pk)
        self.assertEqual(party.party_type, "both")
        self.assertTrue(party.is_supplier and party.is_customer)

    def test_inactive_parties_are_not_matched(self):
        self.ravi.is_active = False
        self.ravi.save()

        party = resolve_party(self.ctx, name="Ravi Kumar", phone="9876543210")
        self.assertNotEqual(party.pk, self.ravi.pk)

    def test_name_is_required_to_create(self):
        with self.assertRaises(ValidationError):
            resolve_party(self.ctx, phone="9555555555")

    def test_create_race_recovers_concurrent_row(self):
        with mock.patch("billing_core.services.parties.find_by_phone",
                        side_effect=[None, self.ravi]), \
                mock.patch.object(Party.objects, "create",
                                  side_effect=IntegrityError("duplicate")):
            party = resolve_party(self.ctx, name="Ravi New",
                                  phone="9876543210")

        self.assertEqual(party.pk, self.ravi.pk)

    def test_create_race_without_recovery_reports_what_was_tried(self):
        with mock.patch.object(Party.objects, "create",
                               side_effect=IntegrityError("duplicate")):
            with self.assertRaises(PartyResolutionConflict) as ctx:
                resolve_party(self.ctx, name="Ghost", phone="9222222222")

        self.assertEqual(ctx.exception.tried["name"], "Ghost")
        self.assertIn("9222222222", ctx.exception.tried["phone_variants"])

    def test_unknown_role(self):
        with self.assertRaises(ValueError):
            resolve_party(self.ctx, name="X", role="employee")
