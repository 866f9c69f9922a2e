"""Short display tokens for canonical remote IDs, and placeholder IDs for new items."""

import hashlib

from boardmd.errors import TokenCollisionError, UnresolvedToken
from boardmd.models import RemoteBoard

SHORT_TOKEN_LENGTH = 5
PLACEHOLDER_PREFIX = "NEW_ITEM_"


def short_token_for(canonical_id: str) -> str:
    """First SHORT_TOKEN_LENGTH hex chars of sha256(canonical_id)."""
    return hashlib.sha256(canonical_id.encode()).hexdigest()[:SHORT_TOKEN_LENGTH]


def is_placeholder(canonical_id: str) -> bool:
    return canonical_id.startswith(PLACEHOLDER_PREFIX)


class IdentityMapper:
    """Bidirectional canonical ↔ short-token map for one editing session.

    The placeholder counter belongs to the instance, so two sessions never
    share numbering.
    """

    def __init__(self, canonical_ids: list[str] | None = None) -> None:
        self._to_short: dict[str, str] = {}
        self._to_canonical: dict[str, str] = {}
        self._counter = 0
        for canonical_id in canonical_ids or []:
            self.register(canonical_id)

    @classmethod
    def from_remote(cls, remote: RemoteBoard) -> "IdentityMapper":
        ids = [remote.board.id]
        ids += [label.id for label in remote.labels]
        for board_list in remote.lists:
            ids.append(board_list.id)
            ids += [card.id for card in remote.cards_for(board_list.id)]
        return cls(ids)

    def register(self, canonical_id: str) -> str:
        token = short_token_for(canonical_id)
        existing = self._to_canonical.get(token)
        if existing is not None and existing != canonical_id:
            raise TokenCollisionError(token, existing, canonical_id)
        self._to_canonical[token] = canonical_id
        self._to_short[canonical_id] = token
        return token

    def short_token(self, canonical_id: str) -> str:
        return self._to_short[canonical_id]

    def resolve(self, token: str) -> str:
        """Short token → canonical ID. An empty token mints a fresh placeholder."""
        if not token:
            self._counter += 1
            return f"{PLACEHOLDER_PREFIX}{self._counter}"
        try:
            return self._to_canonical[token]
        except KeyError:
            raise UnresolvedToken(f"unknown short token '{{{token}}}'") from None

    def __contains__(self, canonical_id: object) -> bool:
        return canonical_id in self._to_short

    def __len__(self) -> int:
        return len(self._to_short)
