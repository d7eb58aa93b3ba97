"""Identity collaborator: who, if anyone, owns the documents being edited."""

from typing import Optional, Protocol


class Identity(Protocol):
    @property
    def user_id(self) -> Optional[str]: ...

    def is_authenticated(self) -> bool: ...


class StaticIdentity:
    """A fixed user, or nobody when user_id is empty."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id or None

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def sign_in(self, user_id: str):
        self._user_id = user_id

    def sign_out(self):
        self._user_id = None
