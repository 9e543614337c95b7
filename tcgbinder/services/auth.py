from dataclasses import dataclass

from tcgbinder.models.failure import NotAuthenticated


@dataclass
class AuthContext:
    """
    The signed-in owner, as supplied by the authentication layer.

    owner_id is None while nobody is signed in.
    """

    owner_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.owner_id)

    def require_owner(self) -> str:
        """
        Return the current owner id.

        Raises:
            NotAuthenticated: If nobody is signed in
        """
        if not self.owner_id:
            raise NotAuthenticated("You need to be signed in to sync your binder.")
        return self.owner_id
