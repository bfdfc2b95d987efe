"""
Command alias resolution.
"""

from collections.abc import Iterable, Mapping

from hyperdrive_cli.exceptions import DuplicateAliasError


class CommandRouter:
    """
    Resolve an invocation token to a canonical command name.

    The alias table is inverted once at construction so lookups are O(1) and a
    clash between two commands is reported immediately.

    Args:
        commands: Canonical command name to its aliases.

    Raises:
        DuplicateAliasError: If an alias is registered under two commands, or
            shadows another command's canonical name.
    """

    def __init__(self, commands: Mapping[str, Iterable[str]]) -> None:
        self._canonical: tuple[str, ...] = tuple(commands)
        self._aliases: dict[str, str] = {}

        names = set(self._canonical)
        for name, aliases in commands.items():
            for alias in aliases:
                if alias == name:
                    continue
                if alias in names:
                    msg = f"Alias '{alias}' of '{name}' shadows another command"
                    raise DuplicateAliasError(msg, alias=alias)
                owner = self._aliases.setdefault(alias, name)
                if owner != name:
                    msg = f"Alias '{alias}' registered for both '{owner}' and '{name}'"
                    raise DuplicateAliasError(msg, alias=alias)

    @property
    def canonical_names(self) -> tuple[str, ...]:
        """Canonical command names in declaration order."""
        return self._canonical

    def aliases_of(self, name: str) -> tuple[str, ...]:
        """Aliases registered for a canonical command."""
        return tuple(alias for alias, owner in self._aliases.items() if owner == name)

    def resolve(self, token: str | None) -> str | None:
        """
        Resolve a token.

        Args:
            token: First positional argument of the invocation.

        Returns:
            The canonical command name, or None if the token matches nothing.
        """
        if token is None:
            return None
        if token in self._canonical:
            return token
        return self._aliases.get(token)
