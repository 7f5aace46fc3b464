class InspoVaultError(Exception):
    """Base class for library errors."""


class StoreUnreachableError(InspoVaultError):
    """The backing database could not be opened or operated on."""


class StoreWriteError(InspoVaultError):
    """The backing database rejected a statement (constraint, type, ...)."""


class PartialWriteError(InspoVaultError):
    """A best-effort multi-step write finished with some steps failed.

    The item row was persisted; ``failures`` lists ``(step, error)`` pairs for
    every child/tag step that did not make it.
    """

    def __init__(self, item_id, failures):
        self.item_id = item_id
        self.failures = list(failures)
        steps = ", ".join(step for step, _exc in self.failures)
        super().__init__(f"item {item_id} partially written; failed steps: {steps}")


class MalformedImportError(InspoVaultError, ValueError):
    """Import payload is not valid JSON or not an array of item objects."""


class ItemNotFoundError(InspoVaultError, KeyError):
    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"item not found: {item_id}")

    def __str__(self):
        return self.args[0]
