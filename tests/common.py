from contextlib import contextmanager
from typing import Iterator

from datebuilder import TzLike, default_tz, set_default_tz


class AlwaysEqual:
    def __eq__(self, other):
        return True


class NeverEqual:
    def __eq__(self, other):
        return False


class AlwaysLarger:
    def __lt__(self, other):
        return False

    def __le__(self, other):
        return False

    def __gt__(self, other):
        return True

    def __ge__(self, other):
        return True


class AlwaysSmaller:
    def __lt__(self, other):
        return True

    def __le__(self, other):
        return True

    def __gt__(self, other):
        return False

    def __ge__(self, other):
        return False


@contextmanager
def configured_tz(tz: TzLike) -> Iterator[None]:
    previous = default_tz()
    set_default_tz(tz)
    try:
        yield
    finally:
        set_default_tz(previous)
