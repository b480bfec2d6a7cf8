import pytest
from bson import ObjectId

import ledger
from errors import Conflict, InsufficientCredits, NotFound, ValidationError


def balance(db, sid):
    return db["users"].find_one({"sid": sid})["credits"]


def post(db, sid, target=5):
    doc, _ = ledger.create_questionnaire(db, sid, "Sleep habits survey", "https://forms.example/abc", target)
    return doc


def test_create_debits_three_credits(db, make_user):
    make_user("s1", credits=5)

    doc, remaining = ledger.create_questionnaire(db, "s1", "Survey", "https://forms.example/x", 10)

    assert remaining == 2
    assert balance(db, "s1") == 2
    assert doc["status"] == "open"
    assert doc["currentResponses"] == 0
    assert db["questionnaires"].count_documents({"creatorSid": "s1"}) == 1


def test_create_with_insufficient_credits_changes_nothing(db, make_user):
    make_user("s1", credits=2)

    with pytest.raises(InsufficientCredits):
        ledger.create_questionnaire(db, "s1", "Survey", "https://forms.example/x", 10)

    assert balance(db, "s1") == 2
    assert db["questionnaires"].count_documents({}) == 0


def test_create_for_unknown_user(db):
    with pytest.raises(NotFound):
        ledger.create_questionnaire(db, "ghost", "Survey", "https://forms.example/x", 10)


def test_create_validates_before_debiting(db, make_user):
    make_user("s1", credits=3)
    with pytest.raises(ValidationError):
        ledger.create_questionnaire(db, "s1", "  ", "https://forms.example/x", 10)
    with pytest.raises(ValidationError):
        ledger.create_questionnaire(db, "s1", "Survey", "https://forms.example/x", 0)
    assert balance(db, "s1") == 3


def test_fill_credits_filler_and_counts_response(db, make_user):
    make_user("owner", credits=3)
    make_user("filler", credits=0)
    q = post(db, "owner")

    updated, credits = ledger.fill_questionnaire(db, q["_id"], "filler")

    assert credits == 1
    assert updated["currentResponses"] == 1
    assert balance(db, "filler") == 1


def test_second_fill_by_same_user_is_rejected(db, make_user):
    make_user("owner", credits=3)
    make_user("filler", credits=0)
    q = post(db, "owner")
    ledger.fill_questionnaire(db, q["_id"], "filler")

    with pytest.raises(Conflict):
        ledger.fill_questionnaire(db, q["_id"], "filler")

    assert balance(db, "filler") == 1
    assert db["questionnaires"].find_one({"_id": q["_id"]})["currentResponses"] == 1


def test_questionnaire_closes_at_target(db, make_user):
    make_user("owner", credits=3)
    make_user("f1", credits=0)
    make_user("f2", credits=0)
    q = post(db, "owner", target=1)

    updated, _ = ledger.fill_questionnaire(db, q["_id"], "f1")
    assert updated["status"] == "closed"

    with pytest.raises(Conflict):
        ledger.fill_questionnaire(db, q["_id"], "f2")
    assert balance(db, "f2") == 0


def test_fill_unknown_questionnaire(db, make_user):
    make_user("filler")
    with pytest.raises(NotFound):
        ledger.fill_questionnaire(db, ObjectId(), "filler")


def test_grant_credits(db, make_user):
    make_user("s1", credits=1)
    user = ledger.grant_credits(db, "s1", 4)
    assert user["credits"] == 5


@pytest.mark.parametrize("amount", [0, -2, 1.5, "3", True, None])
def test_grant_rejects_non_positive_or_non_integer(db, make_user, amount):
    make_user("s1", credits=1)
    with pytest.raises(ValidationError):
        ledger.grant_credits(db, "s1", amount)
    assert balance(db, "s1") == 1


def test_grant_to_admin_or_missing_user(db):
    with pytest.raises(ValidationError):
        ledger.grant_credits(db, "admin001", 5)
    with pytest.raises(NotFound):
        ledger.grant_credits(db, "nobody", 5)


def test_balance_after_mixed_operations(db, make_user):
    make_user("me", credits=3)
    for i in range(4):
        make_user(f"other{i}", credits=3)
    others = [post(db, f"other{i}") for i in range(4)]

    for q in others:
        ledger.fill_questionnaire(db, q["_id"], "me")
    ledger.grant_credits(db, "me", 2)
    ledger.grant_credits(db, "me", 1)
    post(db, "me")
    post(db, "me")

    # initial + fills + grants - 3 * creations
    assert balance(db, "me") == 3 + 4 + 3 - 3 * 2


def test_fillable_excludes_own_and_filled(db, make_user):
    make_user("me", credits=3)
    make_user("a", credits=6)
    mine = post(db, "me")
    first = post(db, "a")
    second = post(db, "a")
    ledger.fill_questionnaire(db, first["_id"], "me")

    ids = [q["_id"] for q in ledger.list_fillable(db, "me")]

    assert ids == [second["_id"]]
    assert mine["_id"] not in ids


def test_delete_only_by_creator(db, make_user):
    make_user("owner", credits=3)
    make_user("other")
    q = post(db, "owner")

    with pytest.raises(NotFound):
        ledger.delete_questionnaire(db, q["_id"], "other")
    ledger.delete_questionnaire(db, q["_id"], "owner")

    assert db["questionnaires"].count_documents({}) == 0
    assert balance(db, "owner") == 0


def test_stats(db, make_user):
    make_user("owner", credits=3)
    make_user("filler", credits=0)
    q = post(db, "owner")
    ledger.fill_questionnaire(db, q["_id"], "filler")

    stats = ledger.questionnaire_stats(db, db["users"].find_one({"sid": "owner"}))

    assert stats["personal"] == {
        "credits": 0,
        "created": 1,
        "filled": 0,
        "responsesReceived": 1,
        "questionnairesCreated": 1,
        "availableToFill": 0,
    }
    assert stats["global"] == {"total": 1, "open": 1, "fills": 1}


def test_stats_counts_questionnaires_available_to_fill(db, make_user):
    make_user("owner", credits=6)
    make_user("reader", credits=0)
    first = post(db, "owner")
    post(db, "owner")
    ledger.fill_questionnaire(db, first["_id"], "reader")

    stats = ledger.questionnaire_stats(db, db["users"].find_one({"sid": "reader"}))

    assert stats["personal"]["availableToFill"] == 1
    assert stats["personal"]["questionnairesCreated"] == 0
    assert stats["personal"]["filled"] == 1
