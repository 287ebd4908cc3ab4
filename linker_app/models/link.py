from sqlalchemy import Column, Integer, String
from linker_app.database.connection import Base


class Link(Base):
    """
    A short name to destination URL mapping.

    Column names match the table created by earlier deployments so an
    existing database can be reused as is.
    """
    __tablename__ = "Links"

    id = Column("LinkID", Integer, primary_key=True, autoincrement=True)
    # unique=True creates the index used by every redirect lookup
    name = Column("LinkName", String(64), unique=True, nullable=False)
    url = Column("LinkURL", String(1024), nullable=False)
