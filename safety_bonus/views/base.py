import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..client import ApiError, FleetStore

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    BROWSING = "browsing"
    EDITING = "editing"
    SAVING = "saving"
    DELETING = "deleting"


class FormValidationError(ValueError):
    """Form input rejected before any request is sent."""


def matches(term: str, *fields: Optional[str]) -> bool:
    """Case-insensitive substring match of term against any field."""
    needle = (term or "").strip().lower()
    if not needle:
        return True
    return any(needle in (field or "").lower() for field in fields)


def coerce_int(value: Any, label: str, default: Optional[int] = None) -> Optional[int]:
    """Turn form input into an int; blank input gives default."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise FormValidationError(f"{label} must be a number")


def error_message(exc: Exception) -> str:
    if isinstance(exc, ApiError):
        return exc.message
    if isinstance(exc, ValidationError):
        return "; ".join(err["msg"] for err in exc.errors())
    return str(exc)


class StoreView:
    """A screen bound to the store for as long as it is open.

    Store notifications trigger ``refresh``. Once ``close`` has been called
    notifications and late responses no longer touch the view.
    """

    def __init__(self, store: FleetStore):
        self.store = store
        self.closed = False
        self.alert: Optional[str] = None
        self._unsubscribe = store.subscribe(self._on_store_change)

    def _on_store_change(self):
        if self.closed:
            return
        self.refresh()

    def refresh(self):
        pass

    def dismiss_alert(self):
        self.alert = None

    def close(self):
        self.closed = True
        self._unsubscribe()

    def _fail(self, message: str) -> bool:
        if not self.closed:
            self.alert = message
        return False


class CrudView(StoreView):
    """List, search, create, edit and delete one kind of record.

    Browsing -> Editing -> Saving -> Browsing, with failures returning to
    Editing and putting the message in ``alert``. Deleting is entered by
    ``request_delete`` and committed only by ``confirm_delete``.
    """

    key: str = ""
    required_fields: Tuple[str, ...] = ()
    required_message = "Please fill in all required fields."
    # field -> (label, default when blank)
    numeric_fields: Dict[str, Tuple[str, Optional[int]]] = {}
    delete_prompt = "Permanently delete this record?"

    def __init__(self, store: FleetStore):
        super().__init__(store)
        self.state = ViewState.BROWSING
        self.search = ""
        self.form: Dict[str, Any] = {}
        self.editing = None
        self.pending_delete = None

    # Subclass hooks

    def records(self) -> List:
        raise NotImplementedError

    def search_fields(self, record) -> Tuple[Optional[str], ...]:
        raise NotImplementedError

    def blank_form(self) -> Dict[str, Any]:
        raise NotImplementedError

    def persist(self, data: Dict[str, Any], pk: Optional[int]):
        raise NotImplementedError

    def remove(self, pk: int):
        raise NotImplementedError

    # Browsing

    @property
    def items(self) -> List:
        return [r for r in self.records() if matches(self.search, *self.search_fields(r))]

    def set_search(self, term: str):
        self.search = term

    # Editing

    def open_create(self):
        self.editing = None
        self.form = self.blank_form()
        self.alert = None
        self.state = ViewState.EDITING

    def open_edit(self, record):
        self.editing = record
        fields = self.blank_form().keys()
        self.form = {name: getattr(record, name) for name in fields}
        self.alert = None
        self.state = ViewState.EDITING

    def update_form(self, **values):
        self.form.update(values)

    def cancel(self):
        self.editing = None
        self.form = {}
        self.state = ViewState.BROWSING

    def validate(self) -> Dict[str, Any]:
        data = dict(self.form)
        for name in self.required_fields:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise FormValidationError(self.required_message)
            if isinstance(value, str):
                data[name] = value.strip()
        for name, (label, default) in self.numeric_fields.items():
            data[name] = coerce_int(data.get(name), label, default)
        return data

    def save(self) -> bool:
        if self.state != ViewState.EDITING:
            return False
        try:
            data = self.validate()
        except FormValidationError as exc:
            return self._fail(str(exc))

        self.state = ViewState.SAVING
        pk = getattr(self.editing, self.key) if self.editing is not None else None
        try:
            self.persist(data, pk)
        except (ApiError, ValidationError) as exc:
            logger.warning("Saving %s failed: %s", type(self).__name__, exc)
            if not self.closed:
                self.state = ViewState.EDITING
            return self._fail(error_message(exc))

        if not self.closed:
            self.cancel()
        return True

    # Deleting

    def request_delete(self, record):
        self.pending_delete = record
        self.state = ViewState.DELETING

    def cancel_delete(self):
        self.pending_delete = None
        self.state = ViewState.BROWSING

    def confirm_delete(self) -> bool:
        if self.state != ViewState.DELETING or self.pending_delete is None:
            return False
        pk = getattr(self.pending_delete, self.key)
        try:
            self.remove(pk)
        except ApiError as exc:
            logger.warning("Deleting %s %s failed: %s", self.key, pk, exc)
            self.cancel_delete()
            return self._fail(exc.message)
        self.cancel_delete()
        return True
