from dataclasses import dataclass

import pytest

from sovmodules.api import CallResponse, Module, ModuleError, QueryResponse
from sovmodules.codec import encode, register
from sovmodules.containers import StateValue
from sovmodules.jmt_storage import JmtStorage
from sovmodules.mocks import MockContext, MockPublicKey
from sovmodules.module_info import ModuleInfo, state
from sovmodules.runtime import CallDispatch, QueryDispatch, Runtime
from sovmodules.runtime import RuntimeError as RuntimeDispatchError


def _check_byte(message):
    if not isinstance(message, int) or not 0 <= message <= 255:
        raise ModuleError(f"not a byte: {message!r}")
    return message


class FirstTestStruct(ModuleInfo, Module):
    state_in_first_struct = state(StateValue)

    def genesis(self):
        self.state_in_first_struct.set(1)

    def call(self, message, context):
        self.state_in_first_struct.set(_check_byte(message))
        return CallResponse()

    def query(self, message):
        return QueryResponse(bytes([self.state_in_first_struct.get()]))


@register
@dataclass(frozen=True)
class TestType:
    pass


class SecondTestStruct(ModuleInfo, Module):
    state_in_second_struct = state(StateValue)

    def genesis(self):
        self.state_in_second_struct.set(2)

    def call(self, message, context):
        self.state_in_second_struct.set(_check_byte(message))
        return CallResponse()

    def query(self, message):
        return QueryResponse(bytes([self.state_in_second_struct.get()]))


@pytest.fixture
def runtime():
    return Runtime(first=FirstTestStruct, second=SecondTestStruct)


@pytest.fixture
def storage():
    return JmtStorage.temporary()


@pytest.fixture
def context():
    return MockContext(MockPublicKey(b""))


def test_modules_keep_declaration_order(runtime):
    assert list(runtime.modules) == ["first", "second"]
    assert runtime.modules["second"] is SecondTestStruct


def test_genesis_then_direct_queries(runtime, storage):
    runtime.genesis(storage)

    first = QueryDispatch("first", FirstTestStruct, ())
    assert first.dispatch_query(storage).response == bytes([1])

    second = QueryDispatch("second", SecondTestStruct, TestType())
    assert second.dispatch_query(storage).response == bytes([2])


def test_dispatch_round_trip(runtime, storage, context):
    runtime.genesis(storage)

    module = runtime.decode_call(runtime.encode_call("first", 11))
    assert module.dispatch_call(storage, context) == CallResponse()

    query = runtime.decode_query(runtime.encode_query("first", ()))
    assert query.dispatch_query(storage).response == bytes([11])

    module = runtime.decode_call(runtime.encode_call("second", 22))
    module.dispatch_call(storage, context)

    query = runtime.decode_query(runtime.encode_query("second", TestType()))
    assert query.dispatch_query(storage).response == bytes([22])


def test_decode_call_restores_message(runtime):
    decoded = runtime.decode_call(runtime.encode_call("second", 7))
    assert decoded == CallDispatch("second", SecondTestStruct, 7)


def test_decode_query_restores_message(runtime):
    decoded = runtime.decode_query(runtime.encode_query("second", TestType()))
    assert decoded == QueryDispatch("second", SecondTestStruct, TestType())


def test_call_does_not_touch_other_module(runtime, storage, context):
    runtime.genesis(storage)
    runtime.decode_call(runtime.encode_call("first", 40)).dispatch_call(storage, context)
    query = runtime.decode_query(runtime.encode_query("second", TestType()))
    assert query.dispatch_query(storage).response == bytes([2])


def test_module_error_propagates(runtime, storage, context):
    runtime.genesis(storage)
    module = runtime.decode_call(runtime.encode_call("first", 300))
    with pytest.raises(ModuleError):
        module.dispatch_call(storage, context)
    query = runtime.decode_query(runtime.encode_query("first", ()))
    assert query.dispatch_query(storage).response == bytes([1])


def test_encode_unknown_module(runtime):
    with pytest.raises(RuntimeDispatchError):
        runtime.encode_call("third", 1)
    with pytest.raises(RuntimeDispatchError):
        runtime.encode_query("third", ())


def test_encode_unencodable_message(runtime):
    with pytest.raises(RuntimeDispatchError):
        runtime.encode_call("first", object())


def test_decode_garbage(runtime):
    with pytest.raises(RuntimeDispatchError):
        runtime.decode_call(b"\xff")
    with pytest.raises(RuntimeDispatchError):
        runtime.decode_query(b"")


def test_decode_plain_value_is_not_a_message(runtime):
    with pytest.raises(RuntimeDispatchError):
        runtime.decode_call(encode(5))


def test_query_bytes_are_not_a_call(runtime):
    data = runtime.encode_query("first", ())
    with pytest.raises(RuntimeDispatchError):
        runtime.decode_call(data)


def test_call_bytes_are_not_a_query(runtime):
    data = runtime.encode_call("first", 3)
    with pytest.raises(RuntimeDispatchError):
        runtime.decode_query(data)


def test_decode_for_module_missing_from_runtime(runtime):
    other = Runtime(second=SecondTestStruct)
    data = runtime.encode_call("first", 1)
    with pytest.raises(RuntimeDispatchError):
        other.decode_call(data)


@pytest.mark.parametrize("bad", [int, "first", FirstTestStruct(JmtStorage.temporary())])
def test_invalid_module_declaration(bad):
    with pytest.raises(RuntimeDispatchError):
        Runtime(first=bad)


def test_empty_runtime_genesis_is_noop(storage):
    empty = Runtime()
    empty.genesis(storage)
    assert storage.get_first_reads() == type(storage.get_first_reads())()