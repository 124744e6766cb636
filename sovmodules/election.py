"""An election module: an admin registers candidates and voters, voters vote once each."""

from __future__ import annotations

import dataclasses
import enum
import json
from dataclasses import dataclass
from operator import attrgetter
from typing import Any, Callable, ClassVar, TypeVar

from .api import CallResponse, Context, Module, ModuleError, QueryResponse
from .codec import register
from .containers import MissingValueError, StateMap, StateValue
from .mocks import MockPublicKey
from .module_info import ModuleInfo, state

_MAX_COUNT = 2**32 - 1

T = TypeVar("T")


def _require(getter: Callable[..., T], *args: Any) -> T:
    try:
        return getter(*args)
    except MissingValueError as exc:
        raise ModuleError(str(exc)) from exc


@register
@dataclass(frozen=True)
class Candidate:
    """A candidate and the number of votes it received."""

    name: str
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "count": self.count}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Candidate:
        return cls(name=data["name"], count=data["count"])


@register
class Voter(enum.Enum):
    """Whether an allowed voter has voted yet."""

    FRESH = "fresh"
    VOTED = "voted"


@register
@dataclass(frozen=True)
class SetCandidates:
    """Set the candidates; admin only, once."""

    names: list[str]


@register
@dataclass(frozen=True)
class AddVoter:
    """Allow a public key to vote; admin only."""

    voter_pub_key: Any


@register
@dataclass(frozen=True)
class Vote:
    """Vote for the candidate at the given index."""

    candidate_index: int


@register
@dataclass(frozen=True)
class ClearElection:
    """Clear the election."""


@register
@dataclass(frozen=True)
class FreezeElection:
    """Freeze the election so results can be read; admin only."""


@register
@dataclass(frozen=True)
class GetResult:
    """Query the winner of a frozen election."""


@dataclass(frozen=True)
class Response:
    """Result of an election query: a winner (possibly none) or an error message."""

    result: Candidate | None = None
    error: str | None = None

    def to_json(self) -> bytes:
        if self.error is not None:
            payload: dict[str, Any] = {"Err": self.error}
        else:
            payload = {"Result": None if self.result is None else self.result.to_dict()}
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes | str) -> Response:
        payload = json.loads(data)
        if "Err" in payload:
            return cls(error=payload["Err"])
        result = payload["Result"]
        return cls(result=None if result is None else Candidate.from_dict(result))


class Election(ModuleInfo, Module):
    """Election state and the calls that change it."""

    public_key_factory: ClassVar[Callable[[str], Any]] = staticmethod(MockPublicKey.from_str)

    admin: StateValue[Any] = state(StateValue)
    is_frozen: StateValue[bool] = state(StateValue)
    candidates: StateValue[list[Candidate]] = state(StateValue)
    allowed_voters: StateMap[Any, Voter] = state(StateMap)

    def genesis(self) -> None:
        """Make the key "admin" the administrator and leave the election open."""
        try:
            admin = type(self).public_key_factory("admin")
        except (ValueError, TypeError) as exc:
            raise ModuleError("Admin initialization failed") from exc
        self.admin.set(admin)
        self.is_frozen.set(False)

    def call(self, message: Any, context: Context) -> CallResponse:
        match message:
            case SetCandidates(names=names):
                return self.set_candidates(names, context)
            case AddVoter(voter_pub_key=voter_pub_key):
                return self.add_voter(voter_pub_key, context)
            case Vote(candidate_index=candidate_index):
                return self.make_vote(candidate_index, context)
            case ClearElection():
                return self._clear()
            case FreezeElection():
                return self.freeze_election(context)
            case _:
                raise TypeError(f"unsupported election call message: {message!r}")

    def query(self, message: Any) -> QueryResponse:
        if isinstance(message, GetResult):
            return QueryResponse(self.results().to_json())
        raise TypeError(f"unsupported election query message: {message!r}")

    def results(self) -> Response:
        """Return the winner of a frozen election; on a tie the later candidate wins."""
        if not self.is_frozen.get():
            return Response(error="Election is not frozen")
        candidates = self.candidates.get() or []
        winner = max(reversed(candidates), key=attrgetter("count"), default=None)
        return Response(result=winner)

    def set_candidates(self, candidate_names: list[str], context: Context) -> CallResponse:
        """Set the candidates; only the admin may, and only once."""
        self._exit_if_frozen()
        self._exit_if_not_admin(context)
        if self.candidates.get() is not None:
            raise ModuleError("Candidate already set.")
        self.candidates.set([Candidate(name) for name in candidate_names])
        return CallResponse()

    def add_voter(self, voter_pub_key: Any, context: Context) -> CallResponse:
        """Allow a voter; only the admin may."""
        self._exit_if_frozen()
        self._exit_if_not_admin(context)
        if self.allowed_voters.get(voter_pub_key) is not None:
            raise ModuleError("Voter already has the right to vote.")
        self.allowed_voters.set(voter_pub_key, Voter.FRESH)
        return CallResponse()

    def make_vote(self, candidate_index: int, context: Context) -> CallResponse:
        """Vote for a candidate; each allowed voter may vote once."""
        self._exit_if_frozen()
        voter = _require(self.allowed_voters.get_or_err, context.sender())
        if voter is Voter.VOTED:
            raise ModuleError("Voter tried voting a second time!")

        self.allowed_voters.set(context.sender(), Voter.VOTED)
        candidates = _require(self.candidates.get_or_err)
        if not 0 <= candidate_index < len(candidates):
            raise ModuleError("Candidate doesn't exist")
        candidate = candidates[candidate_index]
        if candidate.count >= _MAX_COUNT:
            raise ModuleError("Vote count overflow")
        candidates[candidate_index] = dataclasses.replace(candidate, count=candidate.count + 1)
        self.candidates.set(candidates)
        return CallResponse()

    def freeze_election(self, context: Context) -> CallResponse:
        """Freeze the election; only the admin may."""
        self._exit_if_not_admin(context)
        self.is_frozen.set(True)
        return CallResponse()

    def _clear(self) -> CallResponse:
        raise ModuleError("Clearing the election is not supported.")

    def _exit_if_not_admin(self, context: Context) -> None:
        admin = _require(self.admin.get_or_err)
        if admin != context.sender():
            raise ModuleError("Only admin can trigger this action.")

    def _exit_if_frozen(self) -> None:
        if _require(self.is_frozen.get_or_err):
            raise ModuleError("Election is frozen.")