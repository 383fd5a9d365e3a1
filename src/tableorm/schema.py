"""
Schema registry.

The Schema holds every declared table of one client and tracks whether
the declared tables have been validated against each other and against
the live database.

Invariants:
    - Registering or unregistering a table invalidates the schema
    - Only one validation runs at a time; callers arriving while a run is
      in flight wait for it and share its outcome
    - A run that overlaps a registration change never marks the schema valid
    - Join plans exist only for a valid schema

Example:
    >>> schema = Schema()
    >>> schema.register(users)
    >>> schema.ensure_valid(validator.validate_all)
    >>> schema.is_valid()
    True
"""
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, TypeVar

from tableorm.parsing import ParsedType, parse_type

if TYPE_CHECKING:
    from tableorm.plan import JoinPlan
    from tableorm.table import Table

__all__ = ['Property', 'Schema', 'ValidationState']

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True, slots=True)
class Property:
    """Declared table property: a name and a type declaration."""
    name: str
    type: str

    @property
    def parsed(self) -> ParsedType:
        return parse_type(self.type)

    @classmethod
    def coerce(cls, value: 'Property | dict[str, str] | tuple[str, str]') -> 'Property':
        """Accept a Property, a ``{'name': ..., 'type': ...}`` dict or a (name, type) pair.
        """
        if isinstance(value, Property):
            return value
        if isinstance(value, dict):
            return cls(name=value['name'], type=value['type'])
        name, type_spec = value
        return cls(name=name, type=type_spec)


class ValidationState(Enum):
    UNVALIDATED = auto()
    VALIDATING = auto()
    VALID = auto()
    INVALID = auto()


class Schema:
    """Registry of declared tables and their validation state.

    Thread-safety:
        - State transitions are guarded by one condition variable
        - Registration is expected during single-threaded startup; the
          table list itself is not locked against concurrent iteration
    """

    def __init__(self) -> None:
        self._tables: list['Table'] = []
        self._state = ValidationState.UNVALIDATED
        self._error: BaseException | None = None
        self._generation = 0
        self._plans: dict[str, 'JoinPlan'] = {}
        self._cond = threading.Condition()

    @property
    def tables(self) -> tuple['Table', ...]:
        return tuple(self._tables)

    @property
    def state(self) -> ValidationState:
        return self._state

    @property
    def last_error(self) -> BaseException | None:
        """Error of the last failed validation run, if the schema is invalid."""
        return self._error

    def __iter__(self):
        return iter(self.tables)

    def __len__(self) -> int:
        return len(self._tables)

    def _invalidate(self) -> None:
        with self._cond:
            self._generation += 1
            if self._state is not ValidationState.VALIDATING:
                self._state = ValidationState.UNVALIDATED
            self._error = None
            self._plans = {}

    def register(self, table: 'Table') -> None:
        """Add a declared table and invalidate the schema.
        """
        self._tables.append(table)
        self._invalidate()
        logger.debug(f'Registered table {table.name}')

    def unregister(self, table: 'Table') -> None:
        """Remove the first table with the same name and invalidate the schema.
        """
        for index, registered in enumerate(self._tables):
            if registered.name == table.name:
                del self._tables[index]
                self._invalidate()
                logger.debug(f'Unregistered table {table.name}')
                return

    def find(self, name: str) -> 'Table | None':
        """Find a registered table by name.
        """
        for table in self._tables:
            if table.name == name:
                return table
        return None

    def is_valid(self) -> bool:
        return self._state is ValidationState.VALID

    def set_valid(self, valid: bool) -> None:
        """Force the validity flag.

        Marking a schema valid this way leaves it without join plans until
        the next validation run.
        """
        with self._cond:
            self._state = ValidationState.VALID if valid else ValidationState.UNVALIDATED
            self._error = None
            self._cond.notify_all()

    def plan_for(self, name: str) -> 'JoinPlan | None':
        return self._plans.get(name)

    def store_plans(self, plans: dict[str, 'JoinPlan']) -> None:
        self._plans = dict(plans)

    def ensure_valid(self, validate: Callable[[], Any]) -> None:
        """Return once the schema is valid, running validate if needed.

        If a run is already in flight the caller waits for it and raises its
        error if it fails. An invalid schema is revalidated on the next call.
        """
        self._run(validate, force=False)

    def revalidate(self, validate: Callable[[], T]) -> T:
        """Run validate as the single in-flight validation and record the outcome.

        Waits for a run already in flight before starting a new one.
        """
        return self._run(validate, force=True)

    def _run(self, validate: Callable[[], T], force: bool) -> T | None:
        with self._cond:
            waited = False
            while True:
                if self._state is ValidationState.VALIDATING:
                    waited = True
                    self._cond.wait()
                    continue
                if not force and self._state is ValidationState.VALID:
                    return None
                if not force and waited and self._state is ValidationState.INVALID:
                    raise self._error
                break
            self._state = ValidationState.VALIDATING
            generation = self._generation

        logger.debug(f'Validating schema with {len(self._tables)} tables')
        try:
            result = validate()
        except BaseException as err:
            with self._cond:
                if generation == self._generation:
                    self._state = ValidationState.INVALID
                    self._error = err
                else:
                    self._state = ValidationState.UNVALIDATED
                    self._plans = {}
                self._cond.notify_all()
            raise

        with self._cond:
            if generation == self._generation:
                self._state = ValidationState.VALID
                self._error = None
            else:
                logger.debug('Schema changed during validation, result discarded')
                self._state = ValidationState.UNVALIDATED
                self._plans = {}
            self._cond.notify_all()
        return result
