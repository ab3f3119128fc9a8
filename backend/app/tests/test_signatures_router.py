"""HTTP tests for POST /petitions/{id}/signatures and GET /petitions/{id}."""

from unittest.mock import patch

import pytest

from app.models import Member, ReferenceTypeEnum, SentEmail, Signature
from app.security import MEMBER_SCOPE, derive_token


SIGNATURE_FIELDS = {"name": "Bob", "email": "bob@my.com"}
REFERRING_URL = "http://petitionator.com/456?other_stuff=etc"


def sign_petition(client, petition_id, **params):
    body = {"signature": SIGNATURE_FIELDS, "referring_url": REFERRING_URL, **params}
    return client.post(
        f"/petitions/{petition_id}/signatures",
        json=body,
        headers={"User-Agent": "Rails Testing"},
        follow_redirects=False,
    )


def sign_without_name_or_email(client, petition_id):
    return client.post(f"/petitions/{petition_id}/signatures", follow_redirects=False)


def test_signing_stores_signature_and_redirects(client, test_db_session, petition):
    response = sign_petition(client, petition.id)

    assert response.status_code == 303
    assert response.headers["location"] == f"/petitions/{petition.id}"

    signature = test_db_session.query(Signature).one()
    assert signature.name == "Bob"
    assert signature.email == "bob@my.com"
    assert signature.ip_address == "testclient"
    assert signature.user_agent == "Rails Testing"
    assert signature.created_member is True


def test_signing_sends_one_confirmation_email(client, petition, mail_transport):
    sign_petition(client, petition.id)

    assert len(mail_transport.deliveries) == 1
    email = mail_transport.deliveries[-1]
    assert email["to"] == [SIGNATURE_FIELDS["email"]]
    assert petition.title in email["subject"]


def test_signing_sets_member_cookie(client, test_db_session, petition, token_secret):
    response = sign_petition(client, petition.id)

    member = test_db_session.query(Member).filter(Member.email == "bob@my.com").one()
    assert response.cookies.get("member_id") == derive_token(MEMBER_SCOPE, member.id, token_secret)


def test_blank_submission_redirects_without_cookie(client, test_db_session, petition, mail_transport):
    response = sign_without_name_or_email(client, petition.id)

    assert response.status_code == 303
    assert response.headers["location"] == f"/petitions/{petition.id}"
    assert response.cookies.get("member_id") is None
    assert test_db_session.query(Signature).count() == 0
    assert test_db_session.query(Member).count() == 0
    assert mail_transport.deliveries == []


def test_unknown_petition_returns_404(client, test_db_session):
    response = sign_petition(client, 12345)

    assert response.status_code == 404
    assert response.json() == {"detail": "Petition not found"}
    assert test_db_session.query(Member).count() == 0


def test_email_error_is_shown_as_notice(client, test_db_session, petition, mail_transport):
    mail_transport.error = RuntimeError("bang!")

    response = sign_petition(client, petition.id)
    assert response.status_code == 303
    assert test_db_session.query(Signature).count() == 1

    page = client.get(f"/petitions/{petition.id}")
    assert page.status_code == 200
    assert page.json()["notice"] == "bang!"

    # Notice is shown once
    assert client.get(f"/petitions/{petition.id}").json()["notice"] is None


def test_renderer_failure_is_also_a_notice(client, test_db_session, petition):
    with patch(
        "app.services.notification_service._build_confirmation_email",
        side_effect=RuntimeError("template exploded"),
    ):
        sign_petition(client, petition.id)

    assert test_db_session.query(Signature).count() == 1
    assert client.get(f"/petitions/{petition.id}").json()["notice"] == "template exploded"


def test_petition_page_recognises_member_cookie(client, petition):
    sign_petition(client, petition.id)

    body = client.get(f"/petitions/{petition.id}").json()

    assert body["title"] == petition.title
    assert body["signature_count"] == 1
    assert body["member"] == {"name": "Bob", "email": "bob@my.com"}


def test_unknown_petition_page_returns_404(client):
    assert client.get("/petitions/404").status_code == 404


def test_emailed_link_signature(client, test_db_session, petition, token_service, make_member, make_sent_email):
    member = make_member(name="Bob", email="bob@my.com")
    sent_email = make_sent_email(member=member, petition=petition)

    sign_petition(client, petition.id, email_hash=token_service.sent_emails.encode(sent_email.id))

    signature = test_db_session.query(Signature).one()
    assert signature.reference_type == ReferenceTypeEnum.email
    assert signature.referring_url is None
    assert signature.referrer_id == member.id
    assert signature.created_member is False
    assert test_db_session.get(SentEmail, sent_email.id).signature_id == signature.id


@pytest.mark.parametrize(
    "param, reference_type",
    [
        ("fb_like_hash", ReferenceTypeEnum.facebook_like),
        ("fb_share_link_ref", ReferenceTypeEnum.facebook_popup),
        ("forwarded_notification_hash", ReferenceTypeEnum.forwarded_notification),
        ("twitter_hash", ReferenceTypeEnum.twitter),
    ],
)
def test_member_token_referrals(client, test_db_session, petition, token_service, make_member, param, reference_type):
    referrer = make_member(name="referer", email="referer@referring.com")

    sign_petition(client, petition.id, **{param: token_service.members.encode(referrer.id)})

    signature = test_db_session.query(Signature).one()
    assert signature.reference_type == reference_type
    assert signature.referring_url == REFERRING_URL
    assert signature.referrer_id == referrer.id


def test_facebook_action_referral(client, test_db_session, petition, make_member, make_share):
    sharer = make_member()
    make_share(sharer, action_id="abcd1234")

    sign_petition(client, petition.id, fb_action_id="abcd1234")

    signature = test_db_session.query(Signature).one()
    assert signature.reference_type == ReferenceTypeEnum.facebook_share
    assert signature.referring_url == REFERRING_URL
    assert signature.referrer_id == sharer.id


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_form_post_signature(client, test_db_session, petition, token_service, make_member):
    referrer = make_member(name="referer", email="referer@referring.com")

    response = client.post(
        f"/petitions/{petition.id}/signatures",
        data={
            "signature[name]": "Bob",
            "signature[email]": "bob@my.com",
            "referring_url": REFERRING_URL,
            "twitter_hash": token_service.members.encode(referrer.id),
        },
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.cookies.get("member_id") is not None
    signature = test_db_session.query(Signature).one()
    assert signature.name == "Bob"
    assert signature.reference_type == ReferenceTypeEnum.twitter
    assert signature.referrer_id == referrer.id


def test_malformed_json_body_is_rejected(client, test_db_session, petition):
    response = client.post(
        f"/petitions/{petition.id}/signatures",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
        follow_redirects=False,
    )

    assert response.status_code == 422
    assert test_db_session.query(Signature).count() == 0
