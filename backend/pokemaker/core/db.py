import logging

from sqlmodel import Session, SQLModel, create_engine

from pokemaker import crud
from pokemaker.core.config import settings
from pokemaker.models import UserCreate

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))


def init_db(session: Session) -> None:
    SQLModel.metadata.create_all(session.get_bind())

    user = crud.get_user_by_username(session=session, username=settings.FIRST_USER_USERNAME)
    if not user:
        logger.info("Creating first user %s", settings.FIRST_USER_USERNAME)
        crud.create_user(
            session=session,
            user_create=UserCreate(
                username=settings.FIRST_USER_USERNAME,
                password=settings.FIRST_USER_PASSWORD,
                display_name=settings.FIRST_USER_DISPLAY_NAME,
            ),
        )
