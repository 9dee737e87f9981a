"""Repository base for the storefront aggregates.

Protean repositories raise protean and SQLAlchemy exceptions. Services work
in the storefront error kinds, so reads and writes are translated here: a
missing aggregate becomes ``NotFound``, a clash on a unique field becomes
``DuplicateRow`` and infrastructure failures become ``UpstreamFailure``.

Every ``add`` runs in its own unit of work. Nothing here spans aggregates.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from protean.core.repository import BaseRepository
from protean.exceptions import ObjectNotFoundError
from protean.exceptions import ValidationError as ProteanValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shared.errors import DuplicateRow, NotFound, UpstreamFailure, ValidationError

# Protean pages queries; listings here are small enough to read whole
MAX_ROWS = 10_000


@contextmanager
def translated_errors(unique_fields: Iterable[str] = ()) -> Iterator[None]:
    try:
        yield
    except ProteanValidationError as exc:
        if any(field in (exc.messages or {}) for field in unique_fields):
            raise DuplicateRow(exc.messages) from exc
        raise ValidationError.from_protean(exc) from exc
    except IntegrityError as exc:
        raise DuplicateRow({"_entity": [str(exc.orig)]}) from exc
    except (SQLAlchemyError, ConnectionError, TimeoutError) as exc:
        raise UpstreamFailure({"store": [f"{type(exc).__name__}: {exc}"]}) from exc


class StorefrontRepository(BaseRepository):
    # Field named in NotFound messages, and the label used in their text
    id_field = "id"
    label = "Record"
    unique_fields: tuple[str, ...] = ()

    def not_found(self, identifier) -> NotFound:
        return NotFound({self.id_field: [f"{self.label} {identifier} does not exist"]})

    def add(self, item):
        with translated_errors(self.unique_fields):
            return super().add(item)

    def get(self, identifier):
        with translated_errors():
            try:
                return super().get(str(identifier))
            except ObjectNotFoundError:
                raise self.not_found(identifier) from None

    def find(self, identifier):
        try:
            return self.get(identifier)
        except NotFound:
            return None

    def query(self, **filters) -> list:
        with translated_errors():
            return self._dao.query.filter(**filters).limit(MAX_ROWS).all().items

    def delete(self, item) -> None:
        with translated_errors():
            self._dao.delete(item)
