# sovmodules

A small framework for writing the state-transition logic of a rollup as a set
of modules. Each module keeps its state in prefixed containers over a shared
storage. It changes that state in response to call messages and answers query
messages. A runtime joins the modules together. It runs their genesis, encodes
messages addressed to a module, and decodes the bytes back into objects that
dispatch the message to that module.

The package uses only the standard library. The database behind `JmtStorage`
is SQLite.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Parts

- `sovmodules.codec`: `encode(value)` and `decode(data)`. Together they make
  a self-describing binary encoding of `None`, `bool`, `int`, `str`, `bytes`,
  `list`, `tuple`, `dict`, and dataclasses and `Enum`s that have been marked
  with the `register` decorator. Malformed data, trailing bytes and
  unregistered types raise `CodecError`.
- `sovmodules.storage`: `Prefix`, `StorageKey` (`StorageKey.build(prefix, key)`
  joins a prefix to an encoded key), `StorageValue` (`StorageValue.of(value)`
  encodes a value), and the abstract `Storage` interface with `get`, `set`,
  `delete`, `merge` and `finalize`.
- `sovmodules.cache`:
  - `CacheLog` records the first read and the last write of every key.
    `merge_left` folds one log into another. It raises `CacheError` when a
    read conflicts with what is already cached.
  - `FirstReads` holds the value that the first read of each key saw.
  - `StorageInternalCache` reads through to a `ValueReader` the first time a
    key is read.
- `sovmodules.jmt_storage`: `JmtStorage` has a transaction cache, a batch
  cache and a database.
  - `JmtStorage.temporary()` uses an in-memory database.
  - `JmtStorage.with_path(path)` keeps the database in the directory `path`.
  - `merge()` moves the transaction's writes into the batch.
  - `finalize()` writes the batch to the database.
  - `get_first_reads()` returns the first reads of the current transaction.
  - `delete_storage(path)` removes a storage directory or file and ignores
    any failure.
- `sovmodules.zk_storage`: `ZkStorage` answers every read from a
  `FirstReads` record. A key missing from the record raises `CacheError`.
  Its `finalize()` does nothing.
- `sovmodules.containers`: `StateValue` holds a single value and `StateMap`
  maps keys to values. Both live in a storage under their own prefix. `get`
  returns `None` when nothing is stored, and `get_or_err` raises
  `MissingValueError`.
- `sovmodules.api`: the base classes `Module` and `Context`, plus
  `CallResponse` (with `add_event`), `QueryResponse`, `Event`, `ModulePrefix`
  and `ModuleError`.
  - `Module.genesis` does nothing by default.
  - `Module.call` and `Module.query` raise `TypeError` unless a module
    overrides them.
- `sovmodules.module_info`: `ModuleInfo`, together with the field
  declarations `state(...)` and `module(...)`.
  - Building a `ModuleInfo` subclass from a storage creates its containers
    and its nested modules over that one storage.
  - An annotated field that is declared with neither `state(...)` nor
    `module(...)` raises `ModuleInfoError`.
  - `prefix_of(name)` returns the `ModulePrefix` of a state field.
- `sovmodules.runtime`: `Runtime(**modules)` takes named module classes and
  offers `genesis`, `encode_call`, `encode_query`, `decode_call` and
  `decode_query`. The decoded messages are `CallDispatch` and
  `QueryDispatch`, with `dispatch_call(storage, context)` and
  `dispatch_query(storage)`. Unknown module names and bad data raise
  `sovmodules.runtime.RuntimeError`.
- `sovmodules.mocks`: `MockPublicKey` (with `MockPublicKey.from_str`),
  `MockSignature`, and two contexts: `MockContext` for `JmtStorage` and
  `ZkMockContext` for `ZkStorage`.
- `sovmodules.election` and `sovmodules.value_setter`: two example modules.

## Writing a module

```python
from sovmodules.api import CallResponse, Module
from sovmodules.containers import StateValue
from sovmodules.module_info import ModuleInfo, state


class Counter(ModuleInfo, Module):
    count = state(StateValue)

    def genesis(self):
        self.count.set(0)

    def call(self, message, context):
        self.count.set(self.count.get_or_err() + message)
        return CallResponse()
```

Every state field gets the prefix `<module path>/<class name>/<field name>/`.
The module path defaults to the Python module that defines the class, and
`class Counter(ModuleInfo, Module, module_path="...")` sets another one. Two
containers therefore never collide, even when they share one storage.

Message types of your own must be dataclasses or `Enum`s decorated with
`sovmodules.codec.register` so that a runtime can encode them.

## Running modules together

```python
from sovmodules.jmt_storage import JmtStorage
from sovmodules.mocks import MockContext, MockPublicKey
from sovmodules.runtime import Runtime
from sovmodules.value_setter import GetValue, SetValue, ValueResponse, ValueSetter

runtime = Runtime(value_setter=ValueSetter)
storage = JmtStorage.temporary()
runtime.genesis(storage)

admin = MockContext(MockPublicKey.from_str("admin"))
data = runtime.encode_call("value_setter", SetValue(new_value=99))
response = runtime.decode_call(data).dispatch_call(storage, admin)
print(response.events)  # [Event(key='set', value='value_set: 99')]

query = runtime.decode_query(runtime.encode_query("value_setter", GetValue()))
print(ValueResponse.from_json(query.dispatch_query(storage).response))
```

Calls change the state held in the storage's transaction cache. After
`merge()` and `finalize()` the changes are in the database, and a new
`JmtStorage.with_path(...)` on the same path can read them.

## Example modules

- `ValueSetter` holds one number. Its genesis makes the key `"admin"` the
  administrator, and only the administrator may set the number (`SetValue`).
  `GetValue` returns the number as JSON, which `ValueResponse.from_json`
  reads back.
- `Election` works through calls:
  - the administrator sets the candidates (`SetCandidates`), once;
  - the administrator allows voters (`AddVoter`);
  - each allowed voter votes once (`Vote`);
  - the administrator freezes the election (`FreezeElection`).

  `GetResult` returns the candidate with the most votes, and on a tie the
  later candidate wins. Before the election is frozen it returns an error
  message instead, as JSON that `Response.from_json` reads back.
  `ClearElection` is not supported and raises `ModuleError`.

## What it does not do

- The database stores values by the SHA-256 hash of their key, under one
  fixed version. No Merkle tree or state root is computed, and nothing is
  proved.
- Signatures are never checked. `MockSignature` is only a container of bytes.
- There is no command-line program, node or server. The package is a library.