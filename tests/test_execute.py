import pytest

from afina.execute import Add, Append, Command, Get, Replace, Set, Stats


class DictStorage:
    def __init__(self, **data):
        self.data = dict(data)

    def put(self, key, value):
        self.data[key] = value
        return True

    def put_if_absent(self, key, value):
        if key in self.data:
            return False
        self.data[key] = value
        return True

    def set(self, key, value):
        if key not in self.data:
            return False
        self.data[key] = value
        return True

    def get(self, key):
        return self.data.get(key)


def test_command_is_abstract():
    with pytest.raises(TypeError):
        Command()


def test_keyed_command_defaults():
    cmd = Set("foo")
    assert (cmd.key, cmd.flags, cmd.expire) == ("foo", 0, 0)


def test_set_stores_value():
    storage = DictStorage()
    assert Set("foo").execute(storage, "fooval") == "STORED"
    assert storage.get("foo") == "fooval"


def test_set_overwrites_value():
    storage = DictStorage(foo="old")
    assert Set("foo").execute(storage, "new") == "STORED"
    assert storage.get("foo") == "new"


def test_add_absent_key():
    storage = DictStorage()
    assert Add("bar", 10, -1).execute(storage, "barval") == "STORED"
    assert storage.get("bar") == "barval"


def test_add_present_key_keeps_value():
    storage = DictStorage(bar="first")
    assert Add("bar").execute(storage, "second") == "NOT_STORED"
    assert storage.get("bar") == "first"


def test_append_missing_key():
    storage = DictStorage()
    assert Append("k").execute(storage, "tail") == "NOT_STORED"
    assert storage.get("k") is None


def test_append_existing_key():
    storage = DictStorage(k="head")
    assert Append("k").execute(storage, "tail") == "STORED"
    assert storage.get("k") == "head" + "tail"


def test_replace_missing_key():
    storage = DictStorage()
    assert Replace("k").execute(storage, "v") == "NOT_STORED"
    assert "k" not in storage.data


def test_replace_existing_key():
    storage = DictStorage(k="old")
    assert Replace("k").execute(storage, "new") == "STORED"
    assert storage.get("k") == "new"


def test_get_nothing_found():
    assert Get(["a", "b"]).execute(DictStorage(), "") == "END"


def test_get_single_value_format():
    storage = DictStorage(foo="bar")
    assert Get(["foo"]).execute(storage, "") == "VALUE foo 0 3\r\nbar\r\nEND"


def test_get_skips_missing_keys():
    storage = DictStorage(foo="bar")
    assert Get(["x", "foo", "y"]).execute(storage, "") == Get(["foo"]).execute(storage, "")


def test_get_keeps_key_order():
    storage = DictStorage(a="1", b="2")
    out = Get(["b", "a"]).execute(storage, "")
    assert out.index("VALUE b") < out.index("VALUE a")
    assert out.endswith("END")


def test_get_counts_bytes_not_characters():
    storage = DictStorage(k="\u00e9")
    assert Get(["k"]).execute(storage, "").startswith("VALUE k 0 2\r\n")


def test_stats():
    assert Stats().execute(DictStorage(), "") == "END"