from sqlmodel import SQLModel, create_engine, Session

from traffic_chat.core.config import settings

engine = create_engine(
    f"sqlite:///{settings.db_path}",
    echo=settings.debug,
    connect_args={"check_same_thread": False},
)


def init_db() -> None:
    import traffic_chat.models.conversation  # noqa: F401 - ensure models are registered
    import traffic_chat.models.auto_reply  # noqa: F401
    import traffic_chat.models.notification  # noqa: F401
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
