import os
import struct

import pytest

from amorpc.fscheck import (
    CheckFailed,
    append1,
    check1,
    checkn,
    checknot,
    create1,
    createn,
    dircheck,
    main,
    run_coherence,
    run_separate_dirs,
    unlink1,
    unlinkn,
)


def test_create_then_check_round_trip(tmp_path):
    create1(tmp_path, "f1", "aaa", 0)
    assert check1(tmp_path, "f1", "aaa") == b"aaa"
    assert (tmp_path / "f1").read_bytes() == b"aaa"


def test_check1_wrong_content_fails(tmp_path):
    create1(tmp_path, "f1", "aaa", 0)
    with pytest.raises(CheckFailed):
        check1(tmp_path, "f1", "abc")


def test_check1_wrong_length_fails(tmp_path):
    create1(tmp_path, "f1", "aaa", 0)
    with pytest.raises(CheckFailed, match="too little"):
        check1(tmp_path, "f1", "aaaa")


def test_check1_missing_file_fails(tmp_path):
    with pytest.raises(CheckFailed, match="open"):
        check1(tmp_path, "nope", "x")


def test_big_content_round_trip(tmp_path):
    big = "x" * 20000
    create1(tmp_path, "bf", big, 0)
    assert len(check1(tmp_path, "bf", big)) == 20000


def test_unlink_then_checknot(tmp_path):
    create1(tmp_path, "f2", "222", 0)
    unlink1(tmp_path, "f2", 0)
    checknot(tmp_path, "f2")
    assert not (tmp_path / "f2").exists()


def test_checknot_existing_file_fails(tmp_path):
    create1(tmp_path, "f3", "333", 0)
    with pytest.raises(CheckFailed, match="deleted file"):
        checknot(tmp_path, "f3")


def test_unlink_missing_fails(tmp_path):
    with pytest.raises(CheckFailed, match="unlink"):
        unlink1(tmp_path, "missing", 0)


def test_append_concatenates(tmp_path):
    create1(tmp_path, "f1", "aaa", 0)
    append1(tmp_path, "f1", "bbb", 0)
    append1(tmp_path, "f1", "ccc", 0)
    assert check1(tmp_path, "f1", "aaabbbccc") == b"aaabbbccc"


def test_append_missing_fails(tmp_path):
    with pytest.raises(CheckFailed, match="append open"):
        append1(tmp_path, "missing", "x", 0)


def test_createn_checkn_round_trip(tmp_path):
    createn(tmp_path, "aa", 10, 0)
    checkn(tmp_path, "aa", 10)
    for i in range(10):
        data = (tmp_path / f"aa-{i}").read_bytes()
        assert struct.unpack("=i", data)[0] == i


def test_checkn_wrong_value_fails(tmp_path):
    createn(tmp_path, "aa", 3, 0)
    (tmp_path / "aa-1").write_bytes(struct.pack("=i", 7))
    with pytest.raises(CheckFailed, match="contained"):
        checkn(tmp_path, "aa", 3)


def test_checkn_short_file_fails(tmp_path):
    createn(tmp_path, "aa", 2, 0)
    (tmp_path / "aa-0").write_bytes(b"\x00")
    with pytest.raises(CheckFailed, match="too little"):
        checkn(tmp_path, "aa", 2)


def test_unlinkn_removes_all(tmp_path):
    createn(tmp_path, "bb", 5, 0)
    unlinkn(tmp_path, "bb", 5, 0)
    assert dircheck(tmp_path, 0) == []


def test_dircheck_ignores_dot_entries(tmp_path):
    create1(tmp_path, ".hidden", "h", 0)
    create1(tmp_path, "b", "1", 0)
    create1(tmp_path, "a", "2", 0)
    assert dircheck(tmp_path, 2) == ["a", "b"]


def test_dircheck_count_mismatch_fails(tmp_path):
    create1(tmp_path, "a", "1", 0)
    with pytest.raises(CheckFailed, match="wanted 2 dir entries, got 1"):
        dircheck(tmp_path, 2)


def test_dircheck_missing_dir_fails(tmp_path):
    with pytest.raises(CheckFailed, match="opendir"):
        dircheck(tmp_path / "none", 0)


def test_run_coherence_unrelated_dirs_fails(tmp_path):
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()
    with pytest.raises(CheckFailed, match="access"):
        run_coherence(a, b, 0)


def test_run_separate_dirs_leaves_one_each(tmp_path):
    d1, d2 = run_separate_dirs(tmp_path, tmp_path, 0)
    assert dircheck(d1, 1) == ["yy-99"]
    assert dircheck(d2, 1) == ["xx-99"]


def test_main_wrong_arguments():
    assert main(["only-one"]) == 1


def test_main_runs_and_second_run_fails(tmp_path):
    assert main(["--delay", "0", str(tmp_path), str(tmp_path)]) == 0
    assert main(["--delay", "0", str(tmp_path), str(tmp_path)]) == 1


def test_main_separate(tmp_path):
    assert main(["--separate", "--delay", "0", str(tmp_path), str(tmp_path)]) == 0
    assert (tmp_path / f"da{os.getpid()}" / "yy-99").exists()