import logging
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from errors import PersistenceError
from models import db_models
from models.schemas import ConversationOut, ConversationSummary, PromptOut

logger = logging.getLogger(__name__)


def get_conversation(db: Session, conv_id: str):
    return db.query(db_models.ConversationDB).filter(db_models.ConversationDB.id == conv_id).first()


def get_conversation_with_prompts(db: Session, conv_id: str):
    return (
        db.query(db_models.ConversationDB)
        .options(selectinload(db_models.ConversationDB.prompts))
        .filter(db_models.ConversationDB.id == conv_id)
        .first()
    )


def create_conversation(db: Session):
    db_conv = db_models.ConversationDB()
    db.add(db_conv)
    db.commit()
    db.refresh(db_conv)
    return db_conv


def create_prompt(db: Session, conv_id: str, prompt: str, model: str):
    db_conv = get_conversation(db, conv_id)
    if db_conv is None:
        return None
    now = db_models.utcnow()
    last_seq = (
        db.query(func.max(db_models.PromptDB.seq))
        .filter(db_models.PromptDB.conversation_id == conv_id)
        .scalar()
    )
    db_prompt = db_models.PromptDB(
        conversation_id=conv_id, prompt=prompt, model=model, created_at=now,
        seq=0 if last_seq is None else last_seq + 1,
    )
    db.add(db_prompt)
    db_conv.updated_at = now
    db.commit()
    db.refresh(db_prompt)
    return db_prompt


def update_prompt_response(db: Session, prompt_id: str, response: str):
    db_prompt = db.query(db_models.PromptDB).filter(db_models.PromptDB.id == prompt_id).first()
    if db_prompt:
        db_prompt.response = response
        db.commit()
        db.refresh(db_prompt)
    return db_prompt


def delete_conversation(db: Session, conv_id: str):
    db_conv = get_conversation(db, conv_id)
    if db_conv:
        db.delete(db_conv)
        db.commit()
        return True
    return False


class ConversationStore:
    """
    Persistence gateway used by the routers and relays.

    Each operation runs in its own short-lived session and hands back a
    detached pydantic snapshot, so callers never keep an ORM row alive
    across an await.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _run(self, operation: str, fn):
        db = self._session_factory()
        try:
            return fn(db)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Persistence failure during %s", operation)
            raise PersistenceError(f"Could not {operation}", error=str(e)) from e
        finally:
            db.close()

    def create_conversation(self) -> ConversationSummary:
        return self._run(
            "create conversation",
            lambda db: ConversationSummary.model_validate(create_conversation(db)),
        )

    def find_conversation(self, conv_id: str) -> Optional[ConversationSummary]:
        def op(db):
            db_conv = get_conversation(db, conv_id)
            return ConversationSummary.model_validate(db_conv) if db_conv else None
        return self._run("find conversation", op)

    def find_conversation_with_prompts(self, conv_id: str) -> Optional[ConversationOut]:
        def op(db):
            db_conv = get_conversation_with_prompts(db, conv_id)
            return ConversationOut.model_validate(db_conv) if db_conv else None
        return self._run("load conversation", op)

    def create_prompt(self, conv_id: str, prompt: str, model: str) -> Optional[PromptOut]:
        def op(db):
            db_prompt = create_prompt(db, conv_id, prompt, model)
            return PromptOut.model_validate(db_prompt) if db_prompt else None
        return self._run("create prompt", op)

    def update_prompt_response(self, prompt_id: str, response: str) -> bool:
        return self._run(
            "update prompt response",
            lambda db: update_prompt_response(db, prompt_id, response) is not None,
        )

    def delete_conversation(self, conv_id: str) -> bool:
        return self._run("delete conversation", lambda db: delete_conversation(db, conv_id))
