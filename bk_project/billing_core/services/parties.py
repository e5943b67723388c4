import logging

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from ..exceptions import PartyResolutionConflict
from ..models import Party
from ..phones import normalize_phone, phone_variants

logger = logging.getLogger(__name__)

# role asked for by the call site -> party_type used on create
ROLE_PARTY_TYPE = {
    "customer": "customer",
    "supplier": "supplier",
}


# ----------------------------
# Party lookups
# ----------------------------
def find_by_phone(company, phone):
    variants = phone_variants(phone)
    if not variants:
        return None
    return (Party.objects.active(company)
            .filter(phone_number__in=variants)
            .order_by("id")
            .first())


def find_by_name(company, name):
    name = (name or "").strip()
    if not name:
        return None
    return (Party.objects.active(company)
            .filter(name__iexact=name)
            .order_by("id")
            .first())


def _find_by_id(company, party_id):
    if party_id in (None, ""):
        return None
    try:
        return Party.objects.active(company).get(pk=party_id)
    except (Party.DoesNotExist, ValueError, ValidationError):
        # malformed or foreign ids fall through to phone/name matching
        return None


def _search(company, name, phone):
    return find_by_phone(company, phone) or find_by_name(company, name)


def _ensure_role(party, role, fields):
    # a customer we now buy from (or the reverse) plays both roles
    if not party.plays(role):
        party.party_type = "both"
        fields.append("party_type")


# ----------------------------
# Find-or-create
# ----------------------------
def resolve_party(ctx, *, name=None, phone=None, party_id=None,
                  role="customer", email="", gst_number=""):
    """
    Find or create the party a document or payment refers to.
    Workflow, first hit wins:
        1. An explicit id from the same company.
        2. A phone match, in any stored form. A different name on the
           request replaces the stored one.
        3. A case-insensitive exact name match. The phone is filled in if
           the stored party has none.
        4. A new party of the role's type with a zero balance.
    A create that collides with a concurrent one re-runs steps 2-3 and
    returns what it finds.
    """
    if role not in ROLE_PARTY_TYPE:
        raise ValueError(f"Unknown party role: {role}")
    company = ctx.company
    name = (name or "").strip()
    phone = (phone or "").strip()

    party = _find_by_id(company, party_id)
    if party is not None:
        fields = []
        _ensure_role(party, role, fields)
        if fields:
            party.save(update_fields=fields)
        return party

    party = find_by_phone(company, phone)
    if party is not None:
        fields = []
        if name and name != party.name:
            party.name = name
            fields.append("name")
        _ensure_role(party, role, fields)
        if fields:
            party.save(update_fields=fields + ["updated_at"])
        return party

    party = find_by_name(company, name)
    if party is not None:
        fields = []
        if phone and not party.phone_number:
            party.phone_number = phone
            fields.append("phone_number")
        _ensure_role(party, role, fields)
        if fields:
            party.save(update_fields=fields + ["updated_at"])
        return party

    if not name:
        raise ValidationError({"name": "Party name is required"})

    tried = {"party_id": party_id, "name": name, "phone": phone,
             "phone_variants": phone_variants(phone)}
    try:
        with transaction.atomic():
            return Party.objects.create(
                company=company,
                party_type=ROLE_PARTY_TYPE[role],
                name=name,
                phone_number=phone,
                email=email or "",
                gst_number=gst_number or "",
                created_by=ctx.actor,
            )
    except IntegrityError:
        logger.info("Party create raced for company=%s phone=%s; re-searching",
                    company.pk, normalize_phone(phone))
        party = _search(company, name, phone)
        if party is None:
            raise PartyResolutionConflict(
                "Could not create or find the party", tried=tried)
        return party
    except ValidationError:
        # full_clean saw the unique phone first
        party = _search(company, name, phone)
        if party is None:
            raise
        return party
