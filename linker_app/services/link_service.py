from typing import List

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from linker_app.errors import DuplicateNameError, InvalidNameError, LinkerError
from linker_app.logging_config import get_logger
from linker_app.models.link import Link
from linker_app.schemas.link import LinkEntry
from linker_app.services.validation import is_name_valid, normalize_url

logger = get_logger("links")


class LinkService:
    """
    Administrative operations on the Links table.

    Each call uses its own session from the injected factory and is a
    single statement plus commit. Names are validated before the database
    is touched, so an invalid name never mutates state.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def add(self, name: str, url: str) -> LinkEntry:
        """Create a mapping, storing ``url`` as an absolute URL.

        Raises:
            InvalidNameError: the name is empty or has invalid characters
            InvalidURLError: the URL cannot be parsed
            DuplicateNameError: the name is already mapped
        """
        self._check_name(name)
        link = Link(name=name, url=normalize_url(url))
        with self.session_factory() as db:
            db.add(link)
            try:
                db.commit()
            except IntegrityError as err:
                db.rollback()
                raise DuplicateNameError(name) from err
            except SQLAlchemyError as err:
                db.rollback()
                raise LinkerError(f"unable to execute add statement: {err}") from err
            entry = LinkEntry.model_validate(link)
        logger.info("added link %r -> %s", entry.name, entry.url)
        return entry

    def delete(self, name: str) -> bool:
        """
        Remove a mapping by name.

        Deleting a name that does not exist is not an error.

        Returns:
            True if a row was removed
        """
        self._check_name(name)
        with self.session_factory() as db:
            try:
                result = db.execute(delete(Link).where(Link.name == name))
                db.commit()
            except SQLAlchemyError as err:
                db.rollback()
                raise LinkerError(f"unable to execute delete statement: {err}") from err
        removed = result.rowcount > 0
        if removed:
            logger.info("deleted link %r", name)
        return removed

    def list(self) -> List[LinkEntry]:
        """Return every mapping ordered by name"""
        with self.session_factory() as db:
            try:
                links = db.scalars(select(Link).order_by(Link.name)).all()
            except SQLAlchemyError as err:
                raise LinkerError(f"unable to execute query statement: {err}") from err
            return [LinkEntry.model_validate(link) for link in links]

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or not is_name_valid(name):
            raise InvalidNameError(name)


def format_links(entries: List[LinkEntry]) -> str:
    """Render mappings as the two column table printed by ``linker list``."""
    lines = ["Name".ljust(15) + "URL", "=" * 46]
    lines.extend(entry.name.ljust(15) + entry.url for entry in entries)
    return "\n".join(lines) + "\n"
