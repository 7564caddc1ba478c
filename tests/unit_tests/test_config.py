import pytest

from csv_splitter.config import SplitterConfig, load_config


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = load_config()
    assert cfg == SplitterConfig()
    assert cfg.parallel.max_workers == 2
    assert cfg.excel.max_columns == 100
    assert cfg.excel.max_cell_chars == 500
    assert cfg.strategy.large_file_bytes == 100 * 1024 * 1024


def test_default_file_in_working_directory(tmp_path, monkeypatch):
    (tmp_path / "csv_splitter.yaml").write_text("parallel:\n  max_workers: 4\n")
    monkeypatch.chdir(tmp_path)
    assert load_config().parallel.max_workers == 4


def test_partial_yaml_overrides(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        "io:\n"
        "  source_encoding: latin-1\n"
        "strategy:\n"
        "  force: parallel\n"
        "  row_threshold: 10\n"
        "excel:\n"
        "  sheet_title: Data\n"
        "  row_height_interval: 0\n"
    )

    cfg = load_config(str(path))

    assert cfg.source_encoding == "latin-1"
    assert cfg.shard_encoding == "utf-8"
    assert cfg.strategy.force == "parallel"
    assert cfg.strategy.row_threshold == 10
    assert cfg.strategy.large_file_bytes == 100 * 1024 * 1024
    assert cfg.excel.sheet_title == "Data"
    assert cfg.excel.row_height_interval == 0


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("")
    assert load_config(str(path)) == SplitterConfig()


def test_unknown_strategy_rejected(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("strategy:\n  force: turbo\n")
    with pytest.raises(ValueError, match="strategy.force"):
        load_config(str(path))


def test_zero_workers_rejected(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("parallel:\n  max_workers: 0\n")
    with pytest.raises(ValueError, match="max_workers"):
        load_config(str(path))
