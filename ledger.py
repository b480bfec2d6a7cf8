"""
Credit ledger for the questionnaire exchange.

Balances only move through three operations: posting a questionnaire (-3),
filling someone else's (+1) and an admin grant (+amount). Every debit is a
single conditional update on the user document, so a balance can never go
below zero even under concurrent requests.
"""
import logging
from typing import Any, Dict, List, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import now
from errors import Conflict, InsufficientCredits, NotFound, ServerError, ValidationError
from schemas import Questionnaire, QuestionnaireFill

logger = logging.getLogger(__name__)

QUESTIONNAIRE_COST = 3
FILL_REWARD = 1


def debit(db: Database, sid: str, amount: int) -> Dict[str, Any]:
    user = db["users"].find_one_and_update(
        {"sid": sid, "credits": {"$gte": amount}},
        {"$inc": {"credits": -amount}, "$set": {"updatedAt": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if user is None:
        if db["users"].count_documents({"sid": sid}, limit=1) == 0:
            raise NotFound("User not found")
        raise InsufficientCredits(f"Insufficient credits: {amount} required")
    logger.info("Debited %d credits from %s (balance %d)", amount, sid, user["credits"])
    return user


def credit(db: Database, sid: str, amount: int, query: Dict[str, Any] = None) -> Dict[str, Any]:
    user = db["users"].find_one_and_update(
        {"sid": sid, **(query or {})},
        {"$inc": {"credits": amount}, "$set": {"updatedAt": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if user is None:
        raise NotFound("User not found")
    logger.info("Credited %d credits to %s (balance %d)", amount, sid, user["credits"])
    return user


def create_questionnaire(
    db: Database, sid: str, description: str, link: str, target_responses: int
) -> Tuple[Dict[str, Any], int]:
    """Charge the creator and post the questionnaire.

    Returns the stored questionnaire and the creator's remaining balance. If the
    insert fails after the debit went through, the credits are refunded before
    the error is raised.
    """
    if not description or not description.strip():
        raise ValidationError("Description is required")
    if not link or not link.strip():
        raise ValidationError("Link is required")
    if target_responses < 1:
        raise ValidationError("Target responses must be at least 1")

    doc = Questionnaire(
        creatorSid=sid,
        description=description.strip(),
        link=link.strip(),
        targetResponses=target_responses,
    ).model_dump()

    user = debit(db, sid, QUESTIONNAIRE_COST)
    try:
        result = db["questionnaires"].insert_one(doc)
    except PyMongoError:
        logger.exception("Questionnaire insert failed for %s, refunding", sid)
        credit(db, sid, QUESTIONNAIRE_COST)
        raise ServerError("Failed to create questionnaire")
    doc["_id"] = result.inserted_id
    return doc, user["credits"]


def fill_questionnaire(db: Database, questionnaire_id: ObjectId, sid: str) -> Tuple[Dict[str, Any], int]:
    """Record one fill by `sid`, bump the response counter and reward the filler."""
    questionnaire = db["questionnaires"].find_one({"_id": questionnaire_id})
    if not questionnaire:
        raise NotFound("Questionnaire not found")
    target = questionnaire["targetResponses"]
    if questionnaire.get("status") == "closed" or questionnaire.get("currentResponses", 0) >= target:
        raise Conflict("Questionnaire is closed")

    fill = QuestionnaireFill(questionnaireId=questionnaire_id, sid=sid).model_dump()
    try:
        db["questionnaire_fills"].insert_one(fill)
    except DuplicateKeyError:
        raise Conflict("You have already filled this questionnaire")

    updated = db["questionnaires"].find_one_and_update(
        {"_id": questionnaire_id, "currentResponses": {"$lt": target}},
        {"$inc": {"currentResponses": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        db["questionnaire_fills"].delete_one({"questionnaireId": questionnaire_id, "sid": sid})
        raise Conflict("Questionnaire is closed")
    if updated["currentResponses"] >= target:
        db["questionnaires"].update_one({"_id": questionnaire_id}, {"$set": {"status": "closed"}})
        updated["status"] = "closed"

    user = credit(db, sid, FILL_REWARD)
    return updated, user["credits"]


def grant_credits(db: Database, sid: str, amount: Any) -> Dict[str, Any]:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be a positive integer")
    user = db["users"].find_one({"sid": sid})
    if not user:
        raise NotFound("User not found")
    if user.get("role") == "admin":
        raise ValidationError("Cannot grant credits to an admin account")
    return credit(db, sid, amount, {"role": {"$ne": "admin"}})


def delete_questionnaire(db: Database, questionnaire_id: ObjectId, sid: str) -> None:
    # no refund: the posting fee is spent once the questionnaire went live
    result = db["questionnaires"].delete_one({"_id": questionnaire_id, "creatorSid": sid})
    if result.deleted_count == 0:
        raise NotFound("Questionnaire not found or not authorized")
    db["questionnaire_fills"].delete_many({"questionnaireId": questionnaire_id})


def list_fillable(db: Database, sid: str) -> List[Dict[str, Any]]:
    filled = [f["questionnaireId"] for f in db["questionnaire_fills"].find({"sid": sid})]
    query = {"status": "open", "creatorSid": {"$ne": sid}, "_id": {"$nin": filled}}
    return list(db["questionnaires"].find(query).sort("createdAt", DESCENDING))


def list_own(db: Database, sid: str) -> List[Dict[str, Any]]:
    return list(db["questionnaires"].find({"creatorSid": sid}).sort("createdAt", DESCENDING))


def questionnaire_stats(db: Database, user: Dict[str, Any]) -> Dict[str, Any]:
    sid = user["sid"]
    mine = list(db["questionnaires"].find({"creatorSid": sid}))
    return {
        "personal": {
            "credits": user.get("credits", 0),
            "created": len(mine),
            "filled": db["questionnaire_fills"].count_documents({"sid": sid}),
            "responsesReceived": sum(q.get("currentResponses", 0) for q in mine),
            "questionnairesCreated": len(mine),
            "availableToFill": len(list_fillable(db, sid)),
        },
        "global": {
            "total": db["questionnaires"].count_documents({}),
            "open": db["questionnaires"].count_documents({"status": "open"}),
            "fills": db["questionnaire_fills"].count_documents({}),
        },
    }
