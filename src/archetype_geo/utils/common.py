from abc import ABC, abstractmethod
from collections.abc import Hashable as SupportsHash

type numeric = int | float


class Hashable(ABC):
    """
    Base for immutable value objects compared and hashed by a key tuple.

    Subclasses implement `_key_`; two instances are equal only when they are
    of the same class and their keys are equal.
    """

    @abstractmethod
    def _key_(self) -> SupportsHash:
        raise NotImplementedError

    def __hash__(self) -> int:
        return hash(self._key_())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self._key_() == other._key_()

    def __setattr__(self, name: str, value: object) -> None:
        """Prevent modification after initialization."""
        raise AttributeError(f"'{type(self).__name__}' object attribute '{name}' is read-only")
