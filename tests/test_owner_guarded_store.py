import threading
from pathlib import Path

import pytest

from ownerstore.audit import ChangeNotifier
from ownerstore.config.schema import Config
from ownerstore.errors import AlreadyInitialized, NotifierError, NotSet, Unauthorized
from ownerstore.store import OwnerGuardedStore, StoreState


class BrokenSink:
    def last_seq(self) -> int:
        raise NotifierError("log unavailable")

    def append(self, event) -> None:
        raise NotifierError("log unavailable")

    def read(self) -> list:
        return []


def _file_store(tmp_path: Path) -> OwnerGuardedStore:
    config = Config()
    config.storage.backend = "file"
    config.storage.data_dir = str(tmp_path / "data")
    return OwnerGuardedStore.from_config(config)


def test_owner_round_trip() -> None:
    store = OwnerGuardedStore()
    store.initialize("owner")
    result = store.set_secret(b"hello", "owner")
    assert result.seq == 1
    assert result.warnings == []
    assert store.get_secret("owner") == b"hello"


def test_owner_read_before_write_is_not_set() -> None:
    store = OwnerGuardedStore()
    store.initialize("owner")
    with pytest.raises(NotSet):
        store.get_secret("owner")


def test_non_owner_is_unauthorized_even_when_unset() -> None:
    store = OwnerGuardedStore()
    store.initialize("owner")

    with pytest.raises(Unauthorized):
        store.get_secret("attacker")
    with pytest.raises(Unauthorized):
        store.set_secret(b"pwned", "attacker")

    # The rejected write left nothing behind.
    with pytest.raises(NotSet):
        store.get_secret("owner")
    assert store.events() == []


def test_non_owner_write_leaves_value_unchanged() -> None:
    store = OwnerGuardedStore()
    store.initialize("owner")
    store.set_secret(b"original", "owner")

    with pytest.raises(Unauthorized):
        store.set_secret(b"pwned", "attacker")
    assert store.get_secret("owner") == b"original"
    assert [e.seq for e in store.events()] == [1]


def test_uninitialized_store_denies_everyone() -> None:
    store = OwnerGuardedStore()
    with pytest.raises(Unauthorized):
        store.set_secret(b"x", "anyone")
    with pytest.raises(Unauthorized):
        store.get_secret("anyone")


def test_second_initialize_keeps_first_owner() -> None:
    store = OwnerGuardedStore()
    store.initialize("owner-a")
    with pytest.raises(AlreadyInitialized):
        store.initialize("owner-b")

    store.set_secret(b"v", "owner-a")
    with pytest.raises(Unauthorized):
        store.get_secret("owner-b")


def test_audit_scenario() -> None:
    store = OwnerGuardedStore()
    store.initialize("ownerA")
    store.set_secret(b"s3cr3t", "ownerA")
    with pytest.raises(Unauthorized):
        store.get_secret("attacker")
    assert store.get_secret("ownerA") == b"s3cr3t"


def test_lifecycle_states() -> None:
    store = OwnerGuardedStore()
    assert store.state(None) is StoreState.UNINITIALIZED

    store.initialize("owner")
    assert store.state("owner") is StoreState.SECRET_UNSET
    with pytest.raises(Unauthorized):
        store.state("attacker")

    store.set_secret(b"a", "owner")
    store.set_secret(b"b", "owner")
    assert store.state("owner") is StoreState.SECRET_SET


def test_overwrite_marks_only_first_event_as_first_write() -> None:
    store = OwnerGuardedStore()
    store.initialize("owner")
    store.set_secret(b"a", "owner")
    store.set_secret(b"b", "owner")
    assert [e.first_write for e in store.events()] == [True, False]


def test_reads_emit_no_events() -> None:
    store = OwnerGuardedStore()
    store.initialize("owner")
    store.set_secret(b"a", "owner")
    store.get_secret("owner")
    store.get_secret("owner")
    assert len(store.events()) == 1


def test_non_bytes_value_is_rejected() -> None:
    store = OwnerGuardedStore()
    store.initialize("owner")
    with pytest.raises(TypeError):
        store.set_secret("hello", "owner")  # type: ignore[arg-type]
    store.set_secret(bytearray(b"ok"), "owner")
    assert store.get_secret("owner") == b"ok"


def test_notifier_failure_does_not_roll_back_write() -> None:
    store = OwnerGuardedStore(notifier=ChangeNotifier(BrokenSink()))
    store.initialize("owner")
    result = store.set_secret(b"kept", "owner")

    assert result.seq is None
    assert [w.message for w in result.warnings] == ["log unavailable"]
    assert store.get_secret("owner") == b"kept"


def test_instances_do_not_share_owner_or_value() -> None:
    a = OwnerGuardedStore()
    b = OwnerGuardedStore()
    a.initialize("alice")
    a.set_secret(b"a-secret", "alice")

    assert b.initialized is False
    with pytest.raises(Unauthorized):
        b.get_secret("alice")


def test_file_store_survives_restart(tmp_path: Path) -> None:
    store = _file_store(tmp_path)
    store.initialize("owner")
    store.set_secret(b"durable", "owner")

    restarted = _file_store(tmp_path)
    assert restarted.initialized is True
    assert restarted.get_secret("owner") == b"durable"
    with pytest.raises(AlreadyInitialized):
        restarted.initialize("attacker")
    assert restarted.set_secret(b"next", "owner").seq == 2


def test_store_sees_writes_from_another_instance_on_same_data_dir(tmp_path: Path) -> None:
    writer = _file_store(tmp_path)
    reader = _file_store(tmp_path)
    assert reader.initialized is False

    writer.initialize("owner")
    writer.set_secret(b"shared", "owner")

    assert reader.initialized is True
    assert reader.state("owner") is StoreState.SECRET_SET
    assert reader.get_secret("owner") == b"shared"
    with pytest.raises(AlreadyInitialized):
        reader.initialize("attacker")
    with pytest.raises(Unauthorized):
        reader.get_secret("attacker")


def test_concurrent_sets_commit_exactly_one_value() -> None:
    store = OwnerGuardedStore()
    store.initialize("owner")
    v1 = b"1" * 4096
    v2 = b"2" * 4096
    barrier = threading.Barrier(2)

    def writer(value: bytes) -> None:
        barrier.wait()
        store.set_secret(value, "owner")

    threads = [threading.Thread(target=writer, args=(v,)) for v in (v1, v2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.get_secret("owner") in {v1, v2}
    assert [e.seq for e in store.events()] == [1, 2]


def test_concurrent_file_writes_and_reads_are_consistent(tmp_path: Path) -> None:
    store = _file_store(tmp_path)
    store.initialize("owner")
    values = [bytes([65 + i]) * 256 for i in range(8)]
    seen: list[bytes] = []
    errors: list[Exception] = []

    def writer(value: bytes) -> None:
        try:
            store.set_secret(value, "owner")
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    def reader() -> None:
        try:
            seen.append(store.get_secret("owner"))
        except NotSet:
            pass
        except Exception as exc:  # pragma: no cover
            errors.append(exc)

    threads = [threading.Thread(target=writer, args=(v,)) for v in values]
    threads += [threading.Thread(target=reader) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert store.get_secret("owner") in values
    assert all(v in values for v in seen)
    assert [e.seq for e in store.events()] == list(range(1, 9))
