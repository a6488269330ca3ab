"""
Company field catalogue.

Names the request fields that are diffed on edit, the fields the quality
scorer recommends values for, their display labels, and the sentinels the
master builder understands in a field-selection map.
"""

# Field-level diffs (create-from-golden, update) cover exactly these.
TRACKED_FIELDS: tuple[str, ...] = (
    "first_name",
    "first_name_ar",
    "tax",
    "customer_type",
    "company_owner",
    "building_number",
    "street",
    "country",
    "city",
    "contact_name",
    "email_address",
    "mobile_number",
    "job_title",
    "landline",
    "preferred_language",
    "sales_org",
    "distribution_channel",
    "division",
)

FIELD_DISPLAY_NAMES: dict[str, str] = {
    "first_name": "Company Name",
    "first_name_ar": "Company Name (Arabic)",
    "tax": "Tax Number",
    "customer_type": "Customer Type",
    "company_owner": "Company Owner",
    "building_number": "Building Number",
    "street": "Street",
    "country": "Country",
    "city": "City",
    "contact_name": "Contact Name",
    "email_address": "Email Address",
    "mobile_number": "Mobile Number",
    "job_title": "Job Title",
    "landline": "Landline",
    "preferred_language": "Preferred Language",
    "sales_org": "Sales Organization",
    "distribution_channel": "Distribution Channel",
    "division": "Division",
}

# Order in which recommendations are reported.
RECOMMENDATION_FIELDS: tuple[str, ...] = (
    "first_name",
    "first_name_ar",
    "tax",
    "customer_type",
    "company_owner",
    "country",
    "city",
    "street",
    "building_number",
    "contact_name",
    "email_address",
    "mobile_number",
    "job_title",
    "sales_org",
    "distribution_channel",
    "division",
)

CONTACT_FIELDS: tuple[str, ...] = (
    "name",
    "job_title",
    "email",
    "mobile",
    "landline",
    "preferred_language",
)

CONTACT_CHANGE_PREFIX = "Contact: "
DOCUMENT_CHANGE_PREFIX = "Document: "


def display_name(field: str) -> str:
    return FIELD_DISPLAY_NAMES.get(field, field)


def is_manual_id(value: str | None, manual_prefix: str) -> bool:
    """Client-side placeholder ids (``MANUAL_...``) never address a record."""
    return bool(value) and value.startswith(manual_prefix)
