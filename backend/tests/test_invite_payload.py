# backend/tests/test_invite_payload.py

from guest_invite.services.bulk_parser import InviteEntry
from guest_invite.services.invite_payload import build_invite_payload


def test_full_entry_maps_every_field():
    entry = InviteEntry(
        email="guest@fabrikam.com",
        redirect_url="https://fabrikam.com",
        first_name="Ann",
        last_name="Lee",
        display_name="Ann Lee",
        send_email=False,
        custom_message="Hello",
        reset_redemption=True,
    )
    assert build_invite_payload(entry) == {
        "email": "guest@fabrikam.com",
        "displayName": "Ann Lee",
        "firstName": "Ann",
        "lastName": "Lee",
        "inviteRedirectUrl": "https://fabrikam.com",
        "inviteRedirectURL": "https://fabrikam.com",
        "sendEmail": False,
        "customizedMessageBody": "Hello",
        "resetRedemption": True,
    }


def test_empty_optionals_are_omitted():
    body = build_invite_payload(InviteEntry(email="g@f.co", redirect_url=""))
    assert body == {"email": "g@f.co", "displayName": ""}
