from __future__ import annotations

from typing import Callable, List, Optional, Protocol

from loguru import logger

from models import AuthorizationStatus, Coordinate

PositionCallback = Callable[[Coordinate, AuthorizationStatus], None]


class PositionSource(Protocol):
    def current(self) -> Optional[Coordinate]: ...

    @property
    def authorization(self) -> AuthorizationStatus: ...

    def subscribe(self, callback: PositionCallback) -> Callable[[], None]: ...


class PositionFeed:
    """In-process position source; updates are pushed in by the host (HTTP layer, tests)."""

    def __init__(self, authorization: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED) -> None:
        self._authorization = authorization
        self._last: Optional[Coordinate] = None
        self._subs: List[PositionCallback] = []

    def current(self) -> Optional[Coordinate]:
        return self._last

    @property
    def authorization(self) -> AuthorizationStatus:
        return self._authorization

    def set_authorization(self, status: AuthorizationStatus) -> None:
        if status != self._authorization:
            logger.info("location authorization {} -> {}", self._authorization.value, status.value)
        self._authorization = status

    def subscribe(self, callback: PositionCallback) -> Callable[[], None]:
        self._subs.append(callback)

        def unsubscribe() -> None:
            if callback in self._subs:
                self._subs.remove(callback)

        return unsubscribe

    def update(self, coordinate: Coordinate, authorization: Optional[AuthorizationStatus] = None) -> bool:
        if authorization is not None:
            self.set_authorization(authorization)
        if not self._authorization.is_authorized:
            logger.warning("position update ignored: authorization={}", self._authorization.value)
            return False
        self._last = coordinate
        for callback in list(self._subs):
            callback(coordinate, self._authorization)
        return True
