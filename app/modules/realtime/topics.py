"""Typed SSE topics. A topic is built from its owner, never from a hand-written string."""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class UserLocationTopic:
    username: str

    @property
    def channel(self) -> str:
        return f"location-update-{self.username}"


@dataclass(frozen=True)
class GroupTopic:
    group_id: str

    @property
    def channel(self) -> str:
        return f"group-{self.group_id}"


@dataclass(frozen=True)
class MembershipTopic:
    user_id: str

    @property
    def channel(self) -> str:
        return f"membership-update-{self.user_id}"


Topic = Union[UserLocationTopic, GroupTopic, MembershipTopic]
