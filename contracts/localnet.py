"""
Local network for the VaultRocket contracts.

Runs the algopy contracts on the `algopy_testing` ledger, with the FHE
coprocessor as the one service outside it, and adds what a bare testing
context leaves to the caller:
- Transactions execute one at a time, in submission order, on a single
  ledger thread
- A transaction that raises leaves no trace: global state, boxes and FHE
  state are rolled back
- `arc4.abi_call` runs the target method as an inner application call, with
  the calling application as sender
- Block time only moves when told to
"""

import base64
import contextlib
import inspect
import logging
import time
import typing
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from unittest import mock

from algopy import ARC4Contract, Account, Application, Bytes, Global, String, UInt64, arc4
from algopy_testing import algopy_testing_context
from algosdk import encoding, logic

from contracts.fhe.lib import use_coprocessor


logger = logging.getLogger(__name__)

DEFAULT_GENESIS_ID = "localnet-v1"
EVENT_SELECTOR_LENGTH = 4

# Plain Python values accepted for each ABI argument type
_NATIVE_ARGUMENTS = {
    String: (str, String),
    UInt64: (int, UInt64),
    Bytes: (bytes, Bytes),
    Account: (str, Account),
    Application: (int, Application),
}


def event_selector(event_type) -> bytes:
    """ARC-28 selector of an event struct."""
    signature = event_type.__name__ + event_type._type_info.arc4_name
    return arc4.arc4_signature(signature).value


@dataclass
class Receipt:
    tx_id: str
    sender: str
    method: str
    timestamp: int
    return_value: typing.Any = None
    logs: list = field(default_factory=list)

    def events(self, event_type) -> list:
        """Decoded `event_type` events logged by the call and its inner calls."""
        selector = event_selector(event_type)
        return [
            event_type.from_bytes(entry[EVENT_SELECTOR_LENGTH:])
            for entry in self.logs
            if entry[:EVENT_SELECTOR_LENGTH] == selector
        ]


class LocalNet:
    """
    Serial, atomic execution of contract calls on a local ledger.

    Args:
        coprocessor: FHE coprocessor serving the contracts on this network
        timestamp: Initial block timestamp (defaults to the wall clock)
        genesis_id: Network identifier checked by clients
    """

    def __init__(self, coprocessor, timestamp: int | None = None, genesis_id: str = DEFAULT_GENESIS_ID):
        self.coprocessor = coprocessor
        self.genesis_id = genesis_id
        self._timestamp = int(time.time()) if timestamp is None else int(timestamp)
        self._apps: dict[str, ARC4Contract] = {}
        self._app_ids: dict[int, ARC4Contract] = {}
        self._observers: list[typing.Callable] = []
        self._inner_logs: list[bytes] = []
        self._context = None
        self._stack = contextlib.ExitStack()
        # One worker: the testing context lives in this thread and calls queue on it
        self._ledger = ThreadPoolExecutor(max_workers=1, thread_name_prefix="localnet")
        self.run(self._open)

    def __enter__(self) -> "LocalNet":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.run(self._stack.close)
        self._ledger.shutdown()

    def run(self, fn: typing.Callable, *args):
        """Run `fn` on the ledger thread and return its result."""
        return self._ledger.submit(fn, *args).result()

    def _open(self) -> None:
        self._context = self._stack.enter_context(algopy_testing_context())
        self._stack.enter_context(use_coprocessor(self.coprocessor))
        self._patch_time()

    # Block time

    @property
    def latest_timestamp(self) -> int:
        return self._timestamp

    def set_timestamp(self, timestamp: int) -> None:
        self._timestamp = int(timestamp)
        self.run(self._patch_time)

    def advance_time(self, seconds: int) -> int:
        self.set_timestamp(self._timestamp + int(seconds))
        return self._timestamp

    def _patch_time(self) -> None:
        self._context.ledger.patch_global_fields(latest_timestamp=UInt64(self._timestamp))

    # Applications

    def deploy(self, contract_cls, *args, sender: str):
        """
        Create an application and run its create method.

        Args:
            contract_cls: ARC4 contract class to instantiate
            *args: Arguments of the contract's `create` method
            sender: Deployer address

        Returns:
            The deployed contract
        """
        _require_address(sender)
        app = self.run(self._deploy, contract_cls, args, sender)
        logger.info("Deployed %s as app %d (%s)", contract_cls.__name__, app.__app_id__, self.address(app))
        return app

    def _deploy(self, contract_cls, args, sender: str):
        with self._context.txn.create_group(active_txn_overrides={"sender": Account(sender)}):
            app = contract_cls()
            app.create(*_arguments(contract_cls, "create", args))
        self._app_ids[app.__app_id__] = app
        self._apps[logic.get_application_address(app.__app_id__)] = app
        return app

    def app(self, address: str):
        try:
            return self._apps[address]
        except KeyError:
            raise LookupError(f"No application at {address}") from None

    @staticmethod
    def address(app) -> str:
        return logic.get_application_address(app.__app_id__)

    @staticmethod
    def app_id(app) -> int:
        return app.__app_id__

    def subscribe(self, observer: typing.Callable) -> None:
        """Call `observer` with the receipt of every committed transaction."""
        self._observers.append(observer)

    # Execution

    def call(self, sender: str, method, *args) -> Receipt:
        """
        Call a contract method as a transaction signed by `sender`.

        Arguments may be plain Python values; they are converted to the
        method's ABI types.

        Returns:
            Receipt with the method's return value and logs
        """
        _require_address(sender)
        receipt = self.run(self._transact, sender, _contract_of(method), method.__name__, args)
        for observer in self._observers:
            observer(receipt)
        return receipt

    def read(self, method, *args, sender: str | None = None):
        """Evaluate a read-only method and return its result as Python values."""
        return self.run(self._read, sender, _contract_of(method), method.__name__, args)

    def _read(self, sender, app, name: str, args):
        overrides = {"sender": Account(sender)} if sender else None
        with self._context.txn.create_group(active_txn_overrides=overrides):
            result = getattr(app, name)(*_arguments(type(app), name, args))
        return _to_python(result)

    def _transact(self, sender: str, app, name: str, args) -> Receipt:
        ledger_snapshot = self._snapshot()
        fhe_snapshot = self.coprocessor.snapshot()
        self._inner_logs = []
        try:
            with mock.patch.object(arc4, "abi_call", self._abi_call):
                with self._context.txn.create_group(active_txn_overrides={"sender": Account(sender)}):
                    result = getattr(app, name)(*_arguments(type(app), name, args))
        except Exception as exc:
            self._restore(ledger_snapshot)
            self.coprocessor.restore(fhe_snapshot)
            logger.info("Reverted %s.%s from %s: %s", type(app).__name__, name, sender, exc)
            raise
        finally:
            self.coprocessor.end_transaction()

        txn = self._context.txn.last_active
        receipt = Receipt(
            tx_id=base64.b32encode(_as_bytes(txn.txn_id)).decode().rstrip("="),
            sender=sender,
            method=name,
            timestamp=self._timestamp,
            return_value=_to_python(result),
            logs=_logs_of(txn) + self._inner_logs,
        )
        logger.debug("Committed %s %s.%s", receipt.tx_id, type(app).__name__, name)
        return receipt

    def _abi_call(self, method, *args, app_id, **fields):
        """Inner application call: runs `method` on `app_id` as the calling app."""
        target = self._app_ids[_id_of(app_id)]
        caller = Global.current_application_address
        txns = self._context.txn
        outer = txns._active_group
        txns._active_group = None
        try:
            with txns.create_group(active_txn_overrides={"sender": caller}):
                result = getattr(target, method.__name__)(*args)
            inner = txns.last_active
        finally:
            txns._active_group = outer
        self._inner_logs.extend(_logs_of(inner))
        logger.debug("Inner call %s.%s from %s", type(target).__name__, method.__name__, caller)
        return result, inner

    def _snapshot(self) -> dict:
        snapshot = {}
        for app_id in self._app_ids:
            data = self._context.ledger._get_app_data(app_id)
            snapshot[app_id] = (dict(data.global_state), dict(data.boxes))
        return snapshot

    def _restore(self, snapshot: dict) -> None:
        for app_id, (global_state, boxes) in snapshot.items():
            data = self._context.ledger._get_app_data(app_id)
            data.global_state.clear()
            data.global_state.update(global_state)
            data.boxes.clear()
            data.boxes.update(boxes)


def _require_address(address: str) -> None:
    if not encoding.is_valid_address(address):
        raise ValueError(f"Invalid sender address: {address}")


def _contract_of(method) -> ARC4Contract:
    try:
        app = method.__wrapped__.__self__
    except AttributeError:
        app = None
    if not isinstance(app, ARC4Contract):
        raise TypeError(f"{method!r} is not a method of a deployed contract")
    return app


def _id_of(app_id) -> int:
    if isinstance(app_id, Application):
        return int(app_id.id)
    return int(app_id)


def _arguments(contract_cls, name: str, args) -> list:
    fn = inspect.unwrap(getattr(contract_cls, name))
    params = list(inspect.signature(fn).parameters.values())[1:]
    if len(args) != len(params):
        raise TypeError(f"{name} takes {len(params)} arguments, got {len(args)}")
    return [_to_algopy(arg, param.annotation) for arg, param in zip(args, params)]


def _to_algopy(value, annotation):
    if annotation is Application and isinstance(value, ARC4Contract):
        return Application(value.__app_id__)
    try:
        native, convert = _NATIVE_ARGUMENTS[annotation]
    except KeyError:
        return value
    if isinstance(value, native) and not isinstance(value, bool):
        return convert(value)
    return value


def _to_python(value):
    if isinstance(value, tuple) and hasattr(value, "_fields"):
        return type(value)(*(_to_python(item) for item in value))
    if isinstance(value, String):
        return value.value
    if isinstance(value, UInt64):
        return value.value
    if isinstance(value, Bytes):
        return value.value
    if isinstance(value, Account):
        return str(value)
    if isinstance(value, Application):
        return int(value.id)
    return value


def _as_bytes(value) -> bytes:
    return value.value if isinstance(value, Bytes) else bytes(value)


def _logs_of(txn) -> list[bytes]:
    return [_as_bytes(txn.logs(index)) for index in range(int(txn.num_logs))]
