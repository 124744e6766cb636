import pytest

from sovmodules.api import ModuleError
from sovmodules.election import (
    AddVoter,
    Candidate,
    ClearElection,
    Election,
    FreezeElection,
    GetResult,
    Response,
    SetCandidates,
    Vote,
    Voter,
)
from sovmodules.jmt_storage import JmtStorage
from sovmodules.mocks import MockContext, MockPublicKey, ZkMockContext
from sovmodules.zk_storage import ZkStorage

ADMIN = MockPublicKey.from_str("admin")


def _run_election(context_type, storage):
    admin_context = context_type(ADMIN)
    election = Election(storage)
    election.genesis()

    election.call(SetCandidates(["candidate_1", "candidate_2"]), admin_context)

    voters = [MockPublicKey.from_str(f"voter_{n}") for n in (1, 2, 3)]
    for voter in voters:
        election.call(AddVoter(voter), admin_context)

    for voter, index in zip(voters, (0, 1, 1)):
        election.call(Vote(index), context_type(voter))

    election.call(FreezeElection(), admin_context)
    return Response.from_json(election.query(GetResult()).response)


@pytest.fixture
def election():
    module = Election(JmtStorage.temporary())
    module.genesis()
    return module


@pytest.fixture
def admin_context():
    return MockContext(ADMIN)


def test_election_native_and_zk():
    native_storage = JmtStorage.temporary()
    expected = Response(result=Candidate(name="candidate_2", count=2))
    assert _run_election(MockContext, native_storage) == expected

    zk_storage = ZkStorage(native_storage.get_first_reads())
    assert _run_election(ZkMockContext, zk_storage) == expected


def test_response_json_format():
    response = Response(result=Candidate("a", 1))
    assert response.to_json() == b'{"Result":{"name":"a","count":1}}'
    assert Response().to_json() == b'{"Result":null}'
    assert Response(error="boom").to_json() == b'{"Err":"boom"}'


@pytest.mark.parametrize(
    "response",
    [Response(), Response(result=Candidate("x", 7)), Response(error="bad")],
)
def test_response_json_round_trip(response):
    assert Response.from_json(response.to_json()) == response


def test_results_before_freeze_is_error(election):
    assert election.results() == Response(error="Election is not frozen")


def test_results_without_candidates(election, admin_context):
    election.call(FreezeElection(), admin_context)
    assert election.results() == Response(result=None)


def test_tie_returns_later_candidate(election, admin_context):
    election.call(SetCandidates(["a", "b"]), admin_context)
    for name, index in (("v1", 0), ("v2", 1)):
        key = MockPublicKey.from_str(name)
        election.call(AddVoter(key), admin_context)
        election.call(Vote(index), MockContext(key))
    election.call(FreezeElection(), admin_context)
    assert election.results() == Response(result=Candidate("b", 1))


def test_only_admin_sets_candidates(election):
    other = MockContext(MockPublicKey.from_str("someone"))
    with pytest.raises(ModuleError, match="Only admin"):
        election.call(SetCandidates(["a"]), other)
    assert election.candidates.get() is None


def test_candidates_set_only_once(election, admin_context):
    election.set_candidates(["a"], admin_context)
    with pytest.raises(ModuleError, match="Candidate already set."):
        election.set_candidates(["b"], admin_context)
    assert election.candidates.get() == [Candidate("a", 0)]


def test_voter_added_only_once(election, admin_context):
    key = MockPublicKey.from_str("voter")
    election.add_voter(key, admin_context)
    assert election.allowed_voters.get(key) is Voter.FRESH
    with pytest.raises(ModuleError, match="already has the right"):
        election.add_voter(key, admin_context)


def test_double_vote_rejected(election, admin_context):
    key = MockPublicKey.from_str("voter")
    election.call(SetCandidates(["a"]), admin_context)
    election.call(AddVoter(key), admin_context)
    election.call(Vote(0), MockContext(key))
    with pytest.raises(ModuleError, match="second time"):
        election.call(Vote(0), MockContext(key))
    assert election.candidates.get() == [Candidate("a", 1)]


def test_unregistered_voter_rejected(election, admin_context):
    election.call(SetCandidates(["a"]), admin_context)
    with pytest.raises(ModuleError, match="Value not found"):
        election.call(Vote(0), MockContext(MockPublicKey.from_str("stranger")))


@pytest.mark.parametrize("index", [1, -1])
def test_missing_candidate_rejected(election, admin_context, index):
    key = MockPublicKey.from_str("voter")
    election.call(SetCandidates(["a"]), admin_context)
    election.call(AddVoter(key), admin_context)
    with pytest.raises(ModuleError, match="Candidate doesn't exist"):
        election.make_vote(index, MockContext(key))
    assert election.allowed_voters.get(key) is Voter.VOTED


def test_vote_count_overflow(election, admin_context):
    key = MockPublicKey.from_str("voter")
    election.call(AddVoter(key), admin_context)
    election.candidates.set([Candidate("a", 2**32 - 1)])
    with pytest.raises(ModuleError, match="overflow"):
        election.call(Vote(0), MockContext(key))


def test_frozen_election_rejects_changes(election, admin_context):
    election.freeze_election(admin_context)
    with pytest.raises(ModuleError, match="Election is frozen."):
        election.call(SetCandidates(["a"]), admin_context)
    with pytest.raises(ModuleError, match="Election is frozen."):
        election.call(AddVoter(MockPublicKey.from_str("v")), admin_context)


def test_only_admin_freezes(election):
    with pytest.raises(ModuleError, match="Only admin"):
        election.freeze_election(MockContext(MockPublicKey.from_str("v")))
    assert election.is_frozen.get() is False


def test_clear_election_fails(election, admin_context):
    with pytest.raises(ModuleError):
        election.call(ClearElection(), admin_context)


def test_call_before_genesis_fails(admin_context):
    election = Election(JmtStorage.temporary())
    with pytest.raises(ModuleError, match="Value not found"):
        election.call(SetCandidates(["a"]), admin_context)


def test_unsupported_messages(election, admin_context):
    with pytest.raises(TypeError):
        election.call("nonsense", admin_context)
    with pytest.raises(TypeError):
        election.query("nonsense")


def test_genesis_sets_admin(election):
    assert election.admin.get() == ADMIN
    assert election.is_frozen.get() is False