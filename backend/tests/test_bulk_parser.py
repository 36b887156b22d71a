# backend/tests/test_bulk_parser.py

import pytest

from guest_invite.services.bulk_parser import (
    BulkDefaults,
    BulkFormat,
    detect_bulk_format,
    is_valid_email,
    is_valid_redirect_url,
    parse_boolean,
    parse_bulk,
    parse_manual_bulk,
    parse_template_csv,
    sanitize_name,
)

REDIRECT = "https://myapplications.microsoft.com"

TEMPLATE_HEADER = (
    "version:v1.0\n"
    "Email address to invite [inviteeEmail] Required,"
    "Redirection url [inviteRedirectURL] Required,"
    "Send invitation message (true or false) [sendEmail],"
    "Customized invitation message [customizedMessageBody]\n"
)


@pytest.fixture
def defaults() -> BulkDefaults:
    return BulkDefaults(redirect_url=REDIRECT, send_email=True, custom_message="Welcome", reset_redemption=False)


# ---------- field helpers ----------

@pytest.mark.parametrize(
    "value,expected",
    [
        ("a@b.co", True),
        ("first.last+tag@contoso.com", True),
        ("no-at-sign.com", False),
        ("a@b", False),
        ("a b@c.com", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_email(value, expected):
    assert is_valid_email(value) is expected


@pytest.mark.parametrize(
    "value,expected",
    [
        ("https://contoso.com/welcome", True),
        ("http://localhost:5173", True),
        ("http://127.0.0.1:8000/x", True),
        ("http://contoso.com", False),
        ("ftp://contoso.com", False),
        ("https://contoso.com:8443/start", True),
        ("https://contoso.com:99999", False),
        ("https://contoso.com:abc/", False),
        ("not a url", False),
        ("", False),
    ],
)
def test_is_valid_redirect_url(value, expected):
    assert is_valid_redirect_url(value) is expected


def test_sanitize_name_collapses_whitespace_and_truncates():
    assert sanitize_name("  Mary   Ann \t Lee ") == "Mary Ann Lee"
    assert sanitize_name("x" * 50, 40) == "x" * 40


def test_parse_boolean_only_accepts_true_false_words():
    assert parse_boolean(" TRUE ") is True
    assert parse_boolean("false", fallback=True) is False
    assert parse_boolean("yes", fallback=False) is False
    assert parse_boolean("", fallback=True) is True
    assert parse_boolean(None, fallback=False) is False


# ---------- manual rows ----------

def test_manual_rows_apply_defaults_and_normalize(defaults):
    text = "  Ann@Contoso.COM , Ann , Lee \n\nbob@fabrikam.com\n"
    result = parse_manual_bulk(text, defaults)

    assert result.format == BulkFormat.MANUAL
    assert result.errors == []
    assert [e.email for e in result.entries] == ["ann@contoso.com", "bob@fabrikam.com"]

    ann = result.entries[0]
    assert ann.first_name == "Ann"
    assert ann.last_name == "Lee"
    assert ann.display_name == "Ann Lee"
    assert ann.redirect_url == REDIRECT
    assert ann.send_email is True
    assert ann.custom_message == "Welcome"
    assert ann.reset_redemption is False

    assert result.entries[1].display_name == ""


def test_manual_bad_email_reports_physical_line_and_continues(defaults):
    text = "good@contoso.com\n\nnot-an-email, X\nother@contoso.com"
    result = parse_manual_bulk(text, defaults)

    assert [e.email for e in result.entries] == ["good@contoso.com", "other@contoso.com"]
    assert result.error_messages == ["Line 3: invalid email"]


def test_manual_names_are_capped(defaults):
    result = parse_manual_bulk(f"a@b.co,{'F' * 60},{'L' * 60}", defaults)
    entry = result.entries[0]
    assert len(entry.first_name) == 40
    assert len(entry.last_name) == 40


# ---------- Entra template ----------

def test_template_rows_parse_with_optional_columns(defaults):
    text = (
        TEMPLATE_HEADER
        + "Example: guest@contoso.com,Example: https://myapps.microsoft.com,true,Hello\n"
        + "guest@fabrikam.com,https://fabrikam.com/start,false,Hi there\n"
        + "other@fabrikam.com,https://fabrikam.com/start,,\n"
    )
    result = parse_template_csv(text, defaults)

    assert result.format == BulkFormat.TEMPLATE
    assert result.errors == []
    assert [e.email for e in result.entries] == ["guest@fabrikam.com", "other@fabrikam.com"]

    first, second = result.entries
    assert first.send_email is False
    assert first.custom_message == "Hi there"
    assert first.redirect_url == "https://fabrikam.com/start"
    assert first.display_name == ""

    # blank sendEmail falls back to the default; the message is never defaulted
    assert second.send_email is True
    assert second.custom_message == ""


def test_template_row_errors_are_per_row(defaults):
    text = (
        TEMPLATE_HEADER
        + "bad-email,https://fabrikam.com,true,\n"
        + "ok@fabrikam.com,http://fabrikam.com,true,\n"
        + ",https://fabrikam.com,true,\n"
        + "fine@fabrikam.com,https://fabrikam.com,true,\n"
    )
    result = parse_template_csv(text, defaults)

    assert [e.email for e in result.entries] == ["fine@fabrikam.com"]
    assert result.error_messages == [
        "Line 3: invalid inviteeEmail",
        "Line 4: invalid inviteRedirectURL",
    ]


def test_template_with_bom_and_crlf(defaults):
    text = "\ufeff" + TEMPLATE_HEADER.replace("\n", "\r\n") + "guest@fabrikam.com,https://fabrikam.com,true,\r\n"
    result = parse_template_csv(text, defaults)
    assert [e.email for e in result.entries] == ["guest@fabrikam.com"]


def test_template_without_header_row_is_rejected():
    result = parse_template_csv("version:v1.0\n")
    assert result.entries == []
    assert result.error_messages == ["CSV is invalid. Expected version row and header row."]


def test_template_missing_required_columns_is_rejected():
    text = "version:v1.0\n[inviteeEmail],[sendEmail]\nguest@fabrikam.com,true\n"
    result = parse_template_csv(text)
    assert result.entries == []
    assert result.error_messages == [
        "CSV missing required columns: [inviteeEmail] and/or [inviteRedirectURL]."
    ]


# ---------- detection ----------

def test_detect_format():
    assert detect_bulk_format(TEMPLATE_HEADER) == BulkFormat.TEMPLATE
    assert detect_bulk_format("something\n[inviteeEmail],[inviteRedirectURL]\n") == BulkFormat.TEMPLATE
    assert detect_bulk_format("a@b.co, Ann, Lee\nc@d.co") == BulkFormat.MANUAL
    assert detect_bulk_format("a@b.co, Ann, Lee\nb@f.co, Bob, Smith [Ext]") == BulkFormat.MANUAL
    assert detect_bulk_format("") == BulkFormat.MANUAL


def test_parse_bulk_dispatches_on_detected_format(defaults):
    manual = parse_bulk("a@b.co, Ann", defaults)
    template = parse_bulk(TEMPLATE_HEADER + "g@f.co,https://f.co,true,\n", defaults)
    assert manual.format == BulkFormat.MANUAL
    assert template.format == BulkFormat.TEMPLATE

    forced = parse_bulk("a@b.co, Ann", defaults, BulkFormat.TEMPLATE)
    assert forced.format == BulkFormat.TEMPLATE
    assert forced.entries == []


def test_bracketed_name_in_manual_rows_is_not_a_template(defaults):
    result = parse_bulk("ann@contoso.com, Ann, Lee\nbob@fabrikam.com, Bob, Smith [Ext]\n", defaults)

    assert result.format == BulkFormat.MANUAL
    assert result.errors == []
    assert [e.email for e in result.entries] == ["ann@contoso.com", "bob@fabrikam.com"]
    assert result.entries[1].last_name == "Smith [Ext]"
