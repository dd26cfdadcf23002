import os

from layer_builder.framework.ledger import CommitLedger, LedgerKey


def _key(**overrides):
    values = dict(
        stage_name="source_1",
        repo_identity="app",
        params_hash="p" * 8,
        dependencies_checksum="c" * 8,
    )
    values.update(overrides)
    return LedgerKey(**values)


def test_path_encodes_every_key_part(tmp_path):
    ledger = CommitLedger(tmp_path)
    path = ledger.path_for(_key())

    assert path.parent == tmp_path
    assert path.name == "app.source_1.pppppppp.cccccccc.commit"


def test_missing_entry_reads_as_none(tmp_path):
    assert CommitLedger(tmp_path / "nowhere").read(_key()) is None


def test_read_strips_whitespace(tmp_path):
    ledger = CommitLedger(tmp_path)
    ledger.path_for(_key()).write_text("  a1b2\n", encoding="utf-8")

    assert ledger.read(_key()) == "a1b2"


def test_blank_entry_reads_as_none(tmp_path):
    ledger = CommitLedger(tmp_path)
    ledger.path_for(_key()).write_text("\n", encoding="utf-8")

    assert ledger.read(_key()) is None


def test_write_overwrites_and_leaves_no_temp_files(tmp_path):
    ledger = CommitLedger(tmp_path / "build")
    ledger.write(_key(), "a1b2")
    ledger.write(_key(), "c3d4")

    assert ledger.read(_key()) == "c3d4"
    assert ledger.path_for(_key()).read_text(encoding="utf-8") == "c3d4"
    assert sorted(os.listdir(tmp_path / "build")) == [ledger.path_for(_key()).name]


def test_different_checksum_is_a_different_entry(tmp_path):
    ledger = CommitLedger(tmp_path)
    ledger.write(_key(dependencies_checksum="old"), "a1b2")

    assert ledger.read(_key(dependencies_checksum="new")) is None


def test_unreadable_entry_is_treated_as_missing(tmp_path):
    ledger = CommitLedger(tmp_path)
    ledger.path_for(_key()).mkdir()

    assert ledger.read(_key()) is None


def test_stage_and_repo_names_are_made_file_safe(tmp_path):
    ledger = CommitLedger(tmp_path)
    path = ledger.path_for(_key(repo_identity="group/app:v1"))

    assert path.name.startswith("group_app_v1.source_1.")


def test_undecodable_entry_is_treated_as_missing(tmp_path):
    ledger = CommitLedger(tmp_path)
    ledger.path_for(_key()).write_bytes(b"\xff\xfe\x80garbage")

    assert ledger.read(_key()) is None
