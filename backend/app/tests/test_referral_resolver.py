"""Tests for referral channel selection and referrer lookup."""

import pytest

from app.models import ReferenceTypeEnum
from app.services.referral_resolver import ReferralParams, ReferralResolver


REFERRING_URL = "http://petitionator.com/456?other_stuff=etc"


@pytest.fixture
def resolver(test_db_session, token_service):
    return ReferralResolver(test_db_session, token_service)


@pytest.mark.parametrize(
    "param, reference_type, experiment_option",
    [
        ("fb_like_hash", ReferenceTypeEnum.facebook_like, "facebook_like"),
        ("fb_share_link_ref", ReferenceTypeEnum.facebook_popup, "facebook_popup"),
        ("forwarded_notification_hash", ReferenceTypeEnum.forwarded_notification, None),
        ("twitter_hash", ReferenceTypeEnum.twitter, None),
    ],
)
def test_member_token_channels(resolver, token_service, make_member, param, reference_type, experiment_option):
    member = make_member()
    params = ReferralParams(**{param: token_service.members.encode(member.id)})

    resolution = resolver.resolve(params, REFERRING_URL)

    assert resolution.reference_type == reference_type
    assert resolution.referrer.id == member.id
    assert resolution.referring_url == REFERRING_URL
    assert resolution.experiment_option == experiment_option
    assert resolution.sent_email is None


def test_facebook_action_channel_credits_share_owner(resolver, make_member, make_share):
    member = make_member()
    share = make_share(member, action_id="abcd1234")

    resolution = resolver.resolve(ReferralParams(fb_action_id=share.action_id), REFERRING_URL)

    assert resolution.reference_type == ReferenceTypeEnum.facebook_share
    assert resolution.referrer.id == member.id
    assert resolution.referring_url == REFERRING_URL
    assert resolution.experiment_option == "facebook_share"


def test_email_channel_drops_referring_url_and_credits_email_owner(resolver, token_service, make_member, make_sent_email):
    member = make_member(name="Bob", email="bob@my.com")
    sent_email = make_sent_email(member=member)

    params = ReferralParams(email_hash=token_service.sent_emails.encode(sent_email.id))
    resolution = resolver.resolve(params, REFERRING_URL)

    assert resolution.reference_type == ReferenceTypeEnum.email
    assert resolution.referring_url is None
    assert resolution.referrer.id == member.id
    assert resolution.sent_email.id == sent_email.id
    assert resolution.experiment_option is None


def test_email_channel_without_owner_has_no_referrer(resolver, token_service, make_sent_email):
    sent_email = make_sent_email()

    params = ReferralParams(email_hash=token_service.sent_emails.encode(sent_email.id))
    resolution = resolver.resolve(params, REFERRING_URL)

    assert resolution.reference_type == ReferenceTypeEnum.email
    assert resolution.referrer is None
    assert resolution.sent_email.id == sent_email.id


def test_no_referral_parameter_keeps_url_and_classifies_nothing(resolver):
    resolution = resolver.resolve(ReferralParams(), "http://x/?a=1")

    assert resolution.reference_type is None
    assert resolution.referrer is None
    assert resolution.referring_url == "http://x/?a=1"
    assert resolution.experiment_option is None


def test_unresolvable_token_still_classifies(resolver, make_member):
    make_member()

    resolution = resolver.resolve(ReferralParams(twitter_hash="deadbeef" * 4), REFERRING_URL)

    assert resolution.reference_type == ReferenceTypeEnum.twitter
    assert resolution.referrer is None
    assert resolution.referring_url == REFERRING_URL


def test_unknown_facebook_action_still_classifies(resolver):
    resolution = resolver.resolve(ReferralParams(fb_action_id="missing"), REFERRING_URL)

    assert resolution.reference_type == ReferenceTypeEnum.facebook_share
    assert resolution.referrer is None
    assert resolution.experiment_option == "facebook_share"


def test_email_hash_takes_precedence_over_member_channels(resolver, token_service, make_member, make_sent_email):
    sharer = make_member()
    sent_email = make_sent_email()

    params = ReferralParams(
        email_hash=token_service.sent_emails.encode(sent_email.id),
        twitter_hash=token_service.members.encode(sharer.id),
        fb_like_hash=token_service.members.encode(sharer.id),
    )
    resolution = resolver.resolve(params, REFERRING_URL)

    assert resolution.reference_type == ReferenceTypeEnum.email
    assert resolution.referrer is None
    assert resolution.referring_url is None


def test_blank_parameter_is_ignored(resolver, token_service, make_member):
    member = make_member()

    params = ReferralParams(fb_like_hash="  ", twitter_hash=token_service.members.encode(member.id))
    resolution = resolver.resolve(params, REFERRING_URL)

    assert resolution.reference_type == ReferenceTypeEnum.twitter
    assert resolution.referrer.id == member.id
