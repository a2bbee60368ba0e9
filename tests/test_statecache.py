from gephclient.statecache import FlatFileStateCache


def test_root_created(tmp_path):
    root = tmp_path / "a" / "b" / "melprot"
    FlatFileStateCache(root)
    assert root.is_dir()


def test_insert_then_get(tmp_path):
    cache = FlatFileStateCache(tmp_path)
    cache.insert_blob(b"key", b"value bytes")
    assert cache.get_blob(b"key") == b"value bytes"


def test_missing_key_is_none(tmp_path):
    cache = FlatFileStateCache(tmp_path)
    assert cache.get_blob(b"absent") is None


def test_file_named_by_hex_of_key(tmp_path):
    cache = FlatFileStateCache(tmp_path)
    cache.insert_blob(b"\x00\xffkey", b"data")
    assert (tmp_path / b"\x00\xffkey".hex()).read_bytes() == b"data"


def test_overwrite_keeps_latest(tmp_path):
    cache = FlatFileStateCache(tmp_path)
    cache.insert_blob(b"k", b"one")
    cache.insert_blob(b"k", b"two")
    assert cache.get_blob(b"k") == b"two"


def test_persists_across_instances(tmp_path):
    FlatFileStateCache(tmp_path).insert_blob(b"k", b"stored")
    assert FlatFileStateCache(tmp_path).get_blob(b"k") == b"stored"


def test_empty_value_round_trips(tmp_path):
    cache = FlatFileStateCache(tmp_path)
    cache.insert_blob(b"empty", b"")
    assert cache.get_blob(b"empty") == b""