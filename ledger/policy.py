from typing import Iterable

PRIVILEGED_CREDITS = 999999


class PrivilegedAccountPolicy:
    """
    Allow-list of account names whose balance is force-set on every login.

    Names are compared after the same normalization login applies
    (trimmed, lowercased). An empty allow-list disables the override.
    """

    def __init__(self, names: Iterable[str] = (), credits: int = PRIVILEGED_CREDITS):
        self.names = frozenset(n.strip().lower() for n in names if n.strip())
        self.credits = credits

    def is_privileged(self, name: str) -> bool:
        return name in self.names
