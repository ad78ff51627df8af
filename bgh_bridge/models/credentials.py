"""
BGH account credentials.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Credentials:
    """Email/password pair used to log into the BGH cloud."""
    email: str
    password: str = field(repr=False)

    @property
    def key(self) -> tuple:
        """Identity used to share one vendor client per credential set."""
        return (self.email.strip().lower(), self.password)
