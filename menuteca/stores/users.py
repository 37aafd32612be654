"""
User store — session identity and language for cross-store lookups.

Other stores read the language synchronously at call time; ownership
checks never use the cached user id and go to the gateway instead.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Protocol

from kungfu import Result, Ok, Error

from menuteca import lift as L
from menuteca.gateway import Gateway, exception_error
from menuteca.localize import DEFAULT_LANGUAGE, Language
from menuteca.stores._types import StoreError, StoreErrors

logger = logging.getLogger(__name__)

type LanguageListener = Callable[[Language], Awaitable[object]]


class Clearable(Protocol):
    def clear_cache(self) -> None: ...


@dataclass(frozen=True, slots=True)
class User:
    id: str | None = None
    language: Language = DEFAULT_LANGUAGE
    email: str | None = None
    username: str | None = None

    @property
    def is_signed_in(self) -> bool:
        return self.id is not None


class UserStore:
    """
    Current user snapshot plus the hooks that keep other stores in step.

    Example:
        users = UserStore(gateway)
        users.register(restaurants)
        users.on_language_change(lambda _: cuisines.refresh_cuisines())

        await users.set_language(Language.CA_ES)   # cuisines re-fetched
        users.logout()                              # every cache cleared
    """

    def __init__(
        self,
        gateway: Gateway,
        *,
        default_language: Language = DEFAULT_LANGUAGE,
    ) -> None:
        self._gateway = gateway
        self._default_language = default_language
        self._user = User(language=default_language)
        self._stores: list[Clearable] = []
        self._listeners: list[LanguageListener] = []

    @property
    def user(self) -> User:
        return self._user

    @property
    def language(self) -> Language:
        return self._user.language

    def register(self, store: Clearable) -> None:
        """Store to clear on logout."""
        self._stores.append(store)

    def on_language_change(self, listener: LanguageListener) -> None:
        self._listeners.append(listener)

    def set_user(self, user: User) -> None:
        self._user = user
        logger.info("User set: %s (%s)", user.id, user.language)

    async def set_language(self, language: Language) -> None:
        if language == self._user.language:
            return
        self._user = replace(self._user, language=language)
        logger.info("Language changed to %s", language)
        for listener in self._listeners:
            await listener(language)

    def logout(self) -> None:
        self._user = User(language=self._default_language)
        for store in self._stores:
            store.clear_cache()
        logger.info("Logged out, %d stores cleared", len(self._stores))

    async def resolve_user_id(self) -> Result[str, StoreError]:
        """
        Ask the gateway who is signed in.

        Any failure to answer counts as not authenticated.
        """
        result = await L.guarded(self._gateway.current_user, on_error=exception_error)
        match result:
            case Ok(user_id) if user_id:
                return Ok(user_id)
            case Ok(_):
                return Error(StoreErrors.not_authenticated())
            case Error(e):
                logger.warning("Could not resolve current user: %s", e)
                return Error(StoreErrors.not_authenticated())


__all__ = ("User", "UserStore", "Clearable", "LanguageListener")
