from breachwatch.base.models import Subscriber, VerificationToken
from breachwatch.repositories.subscriber_repository import SubscriberRepository
from breachwatch.utils.str import get_sha1
from conftest import TEST_DATA, run


def test_ensure_indexes_makes_email_hash_and_token_unique(collection):
    run(SubscriberRepository(collection).ensure_indexes())

    assert ("sha1", True) in collection.indexes
    assert ("verification_token", True) in collection.indexes


def test_find_by_email_ignores_case(repository):
    subscriber = run(repository.find_by_email("UnverifiedEmail@TEST.com"))

    assert subscriber.verification_token == TEST_DATA["unverifiedemail"].verification_token


def test_find_by_token_returns_none_for_unknown_or_empty_token(repository):
    assert run(repository.find_by_token(VerificationToken("nope"))) is None
    assert run(repository.find_by_token("")) is None
    assert run(repository.find_by_token(None)) is None


def test_upsert_keeps_created_at_of_existing_record(repository, collection):
    account = TEST_DATA["firefoxaccount"]
    replacement = Subscriber(email=account.email, signup_language="fr")

    stored = run(repository.upsert(replacement))

    assert stored.created_at.year == 2019
    assert stored.signup_language == "fr"
    assert len([doc for doc in collection.documents if doc["sha1"] == get_sha1(account.email)]) == 1


def test_mark_verified_is_a_compare_and_set(repository):
    token = TEST_DATA["unverifiedemail"].verification_token

    first = run(repository.mark_verified(token))
    second = run(repository.mark_verified(token))

    assert first.verified is True
    assert second is None


def test_reset_verified_only_undoes_a_verified_record(repository):
    token = TEST_DATA["unverifiedemail"].verification_token

    assert run(repository.reset_verified(token)) is None
    run(repository.mark_verified(token))
    assert run(repository.reset_verified(token)).verified is False


def test_delete_requires_token_and_hash_to_match(repository):
    subscriber = run(repository.find_by_token(TEST_DATA["verifiedemail"].verification_token))
    forged = subscriber.model_copy(update={"sha1": get_sha1("someone@else.com")})

    assert run(repository.delete(forged)) is False
    assert run(repository.delete(subscriber)) is True
    assert run(repository.find_by_token(subscriber.verification_token)) is None


def test_upsert_pending_refreshes_only_unverified_records(repository):
    pending = TEST_DATA["unverifiedemail"]
    verified = TEST_DATA["verifiedemail"]

    refreshed = run(repository.upsert_pending(Subscriber(email=pending.email, signup_language="fr")))
    refused = run(repository.upsert_pending(Subscriber(email=verified.email, signup_language="fr")))

    assert refreshed.signup_language == "fr"
    assert refreshed.verification_token != pending.verification_token
    assert refused is None
    stored = run(repository.find_by_email(verified.email))
    assert stored.verified is True
    assert stored.verification_token == verified.verification_token


def test_upsert_pending_inserts_new_address(repository, collection):
    before = len(collection.documents)

    stored = run(repository.upsert_pending(Subscriber(email="fresh@test.com", signup_language="en")))

    assert stored.verified is False
    assert stored.created_at is not None
    assert len(collection.documents) == before + 1
