from enum import Enum
from typing import Iterable, Optional


class Role(str, Enum):
    """Роли доступа к документу, упорядоченные по привилегиям"""
    OWNER = "owner"
    EDITOR = "editor"
    COMMENTER = "commenter"
    VIEWER = "viewer"

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    def __lt__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank >= other.rank

    def allows(self, required: "Role") -> bool:
        """Достаточно ли этой роли для требуемой"""
        return self.rank >= required.rank

    @classmethod
    def highest(cls, roles: Iterable["Role"]) -> Optional["Role"]:
        """Наивысшая роль из набора"""
        best = None
        for role in roles:
            if best is None or role > best:
                best = role
        return best


_ROLE_RANKS = {
    Role.OWNER: 4,
    Role.EDITOR: 3,
    Role.COMMENTER: 2,
    Role.VIEWER: 1,
}


class PermissionState(str, Enum):
    """Жизненный цикл записи о разрешении: absent -> active -> revoked"""
    ACTIVE = "active"
    REVOKED = "revoked"
