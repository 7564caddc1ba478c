import csv
import io
from pathlib import Path

import pytest

from csv_splitter.config import SplitterConfig


def render_csv(rows, line_ending="\n", trailing_newline=True) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator=line_ending)
    for row in rows:
        writer.writerow(row)
    text = buf.getvalue()
    if not trailing_newline and text.endswith(line_ending):
        text = text[: -len(line_ending)]
    return text


def read_csv(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def shard_files(output_dir, stem="data", ext=".csv"):
    """Shard paths in index order."""
    paths = list(Path(output_dir).glob(f"{stem}_*{ext}"))
    return sorted(paths, key=lambda p: int(p.stem.rsplit("_", 1)[1]))


@pytest.fixture
def make_csv(tmp_path):
    """Write rows to ``tmp_path/<name>`` and return the path."""

    def _make(rows, name="data.csv", line_ending="\n", trailing_newline=True):
        path = tmp_path / name
        path.write_bytes(
            render_csv(rows, line_ending, trailing_newline).encode("utf-8")
        )
        return path

    return _make


@pytest.fixture
def header():
    return ["id", "name", "score"]


@pytest.fixture
def data_rows():
    def _rows(n):
        return [[str(i), f"name {i}", f"{i * 1.5}"] for i in range(1, n + 1)]

    return _rows


@pytest.fixture
def sequential_cfg():
    cfg = SplitterConfig()
    cfg.strategy.force = "sequential"
    return cfg


@pytest.fixture
def parallel_cfg():
    cfg = SplitterConfig()
    cfg.strategy.force = "parallel"
    cfg.parallel.max_workers = 3
    cfg.parallel.scale_with_size = False
    return cfg


@pytest.fixture(name="read_csv")
def read_csv_fixture():
    return read_csv


@pytest.fixture(name="shard_files")
def shard_files_fixture():
    return shard_files
