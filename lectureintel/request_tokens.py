"""
Request tokens for results that arrive after the caller has moved on.

Every outgoing request takes a token from issue(). When its result comes
back, it may only be applied if is_current(token) is still true; a newer
request (or cancel()) makes all older tokens stale.
"""

from __future__ import annotations


class RequestTokens:
    def __init__(self) -> None:
        self._latest = 0
        self._cancelled_upto = 0

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest and token > self._cancelled_upto

    def cancel(self) -> None:
        self._cancelled_upto = self._latest
