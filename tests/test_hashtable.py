import io

import pytest

from opkgutil.hashtable import HashTable, djb2_hash


def test_djb2_empty_is_seed():
    assert djb2_hash("") == 5381


def test_djb2_recurrence():
    base = "package"
    for ch in "xyz":
        assert djb2_hash(base + ch) == (djb2_hash(base) * 33 + ord(ch)) % (1 << 64)
        base += ch


def test_djb2_fits_64_bits():
    assert 0 <= djb2_hash("a" * 1000) < (1 << 64)


def test_invalid_bucket_count():
    with pytest.raises(ValueError):
        HashTable("t", 0)


def test_insert_and_get():
    table = HashTable("t", 16)
    table.insert("busybox", 1)
    table.insert("opkg", 2)
    assert table.get("busybox") == 1
    assert table.get("opkg") == 2
    assert len(table) == 2


def test_update_existing_key_keeps_length():
    table = HashTable("t", 4)
    table.insert("k", "old")
    table.insert("k", "new")
    assert table.get("k") == "new"
    assert len(table) == 1
    assert table.n_elements == 1


def test_get_missing_counts_miss():
    table = HashTable("t", 8)
    table.insert("present", True)
    assert table.get("absent") is None
    table.get("present")
    assert table.n_misses == 1
    assert table.n_hits == 1


def test_remove():
    table = HashTable("t", 8)
    table.insert("a", 1)
    assert table.remove("a") is True
    assert table.remove("a") is False
    assert table.get("a") is None
    assert len(table) == 0


def test_collisions_single_bucket():
    keys = ["one", "two", "three"]
    table = HashTable("t", 1)
    for i, key in enumerate(keys):
        table.insert(key, i)
    assert table.n_collisions == len(keys) - 1
    assert table.max_bucket_len == len(keys) - 1
    assert table.n_used_buckets == 1
    assert [table.get(k) for k in keys] == list(range(len(keys)))


def test_remove_head_of_chain_keeps_others():
    table = HashTable("t", 1)
    for key in ("first", "second", "third"):
        table.insert(key, key.upper())
    assert table.remove("first")
    assert table.get("second") == "SECOND"
    assert table.get("third") == "THIRD"
    assert len(table) == 2


def test_foreach_visits_all_in_chain_order():
    table = HashTable("t", 1)
    for key, value in [("x", 1), ("y", 2), ("z", 3)]:
        table.insert(key, value)
    seen = []
    table.foreach(lambda k, v: seen.append((k, v)))
    assert seen == [("x", 1), ("y", 2), ("z", 3)]


def test_print_stats():
    table = HashTable("pkgs", 2)
    table.insert("a", 1)
    out = io.StringIO()
    table.print_stats(out)
    text = out.getvalue()
    assert text.startswith("hash_table: pkgs, ")
    assert "n_buckets=2, n_elements=1" in text
    assert "ave_bucket_len=1.00" in text


def test_clear():
    table = HashTable("t", 4)
    for key in ("a", "b", "c"):
        table.insert(key, key)
    table.clear()
    assert len(table) == 0
    assert table.get("a") is None
    assert table.n_elements == 0
    table.insert("a", 5)
    assert table.get("a") == 5