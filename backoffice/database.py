from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from backoffice.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def import_models() -> None:
    # Import all models so Base.metadata knows about them
    import backoffice.models.agent  # noqa: F401
    import backoffice.models.customer  # noqa: F401
    import backoffice.models.order  # noqa: F401
    import backoffice.models.product  # noqa: F401
    import backoffice.models.stock  # noqa: F401
    import backoffice.models.user  # noqa: F401


def init_db(bind=None):
    import_models()
    Base.metadata.create_all(bind=bind or engine)
