import tracemalloc

import pytest

from csv_splitter.config import ParallelConfig, SplitterConfig
from csv_splitter.errors import ConcurrencyError, ParseError, ValidationError
from csv_splitter.models import SplitRequest
from csv_splitter.splitting.line_index import build_line_index, plan_chunks, record_lines
from csv_splitter.splitting.parallel import split_parallel, worker_count, write_chunk
from csv_splitter.splitting.sequential import split_sequential
from csv_splitter.tracking import ShardTracker

MB = 1024 * 1024


def _request(path, out, rows, has_header=True):
    return SplitRequest(str(path), str(out), rows, has_header=has_header)


@pytest.mark.parametrize("size, expected", [
    (1, 1),
    (100 * MB, 1),
    (100 * MB + 1, 2),
    (500 * MB + 1, 3),
])
def test_worker_count_follows_size_tiers(size, expected):
    assert worker_count(size, ParallelConfig(max_workers=3)) == expected


def test_worker_count_capped_and_fixed():
    assert worker_count(900 * MB, ParallelConfig(max_workers=2)) == 2
    assert worker_count(1, ParallelConfig(max_workers=4, scale_with_size=False)) == 4


def test_scenario_nine_rows_four_per_file(
        make_csv, tmp_path, header, data_rows, parallel_cfg, read_csv):
    rows = data_rows(9)
    src = make_csv([header] + rows)
    out = tmp_path / "out"
    out.mkdir()
    tracker = ShardTracker()

    shards = split_parallel(_request(src, out, 4), parallel_cfg, tracker)

    assert [p.name for p in shards] == ["data_1.csv", "data_2.csv", "data_3.csv"]
    contents = [read_csv(p) for p in shards]
    assert [len(c) - 1 for c in contents] == [4, 4, 1]
    assert all(c[0] == header for c in contents)
    assert [r for c in contents for r in c[1:]] == rows
    assert [r.shard_index for r in tracker.ordered()] == [1, 2, 3]


@pytest.mark.parametrize("n_rows, rows_per_file", [(1, 1), (10, 1), (10, 3), (25, 7), (30, 10), (5, 100)])
@pytest.mark.parametrize("has_header", [True, False])
@pytest.mark.parametrize("terminated", [True, False])
def test_parallel_matches_sequential(
        make_csv, tmp_path, header, data_rows, sequential_cfg, parallel_cfg,
        n_rows, rows_per_file, has_header, terminated):
    lines = ([header] if has_header else []) + data_rows(n_rows)
    src = make_csv(lines, trailing_newline=terminated)
    seq_out = tmp_path / "seq"
    par_out = tmp_path / "par"
    seq_out.mkdir()
    par_out.mkdir()

    seq = split_sequential(_request(src, seq_out, rows_per_file, has_header), sequential_cfg)
    par = split_parallel(_request(src, par_out, rows_per_file, has_header), parallel_cfg)

    assert [p.name for p in seq] == [p.name for p in par]
    for a, b in zip(seq, par):
        assert a.read_bytes() == b.read_bytes()


def test_balanced_chunks_spread_rows(make_csv, tmp_path, header, data_rows, parallel_cfg, read_csv):
    rows = data_rows(9)
    src = make_csv([header] + rows)
    parallel_cfg.parallel.balanced_chunks = True

    shards = split_parallel(_request(src, tmp_path, 4), parallel_cfg)

    sizes = [len(read_csv(p)) - 1 for p in shards]
    assert sizes == [3, 3, 3]
    assert [r for p in shards for r in read_csv(p)[1:]] == rows


def test_crlf_lines(make_csv, tmp_path, header, data_rows, parallel_cfg, read_csv):
    rows = data_rows(7)
    src = make_csv([header] + rows, line_ending="\r\n")
    shards = split_parallel(_request(src, tmp_path, 3), parallel_cfg)
    assert [r for p in shards for r in read_csv(p)[1:]] == rows


def test_header_only_file(make_csv, tmp_path, header, parallel_cfg):
    src = make_csv([header])
    with pytest.raises(ValidationError, match="no data rows"):
        split_parallel(_request(src, tmp_path, 4), parallel_cfg)


def test_multiline_record_fails_the_run(make_csv, tmp_path, parallel_cfg):
    rows = [["1", "a"], ["2", "b\nc"], ["3", "d"], ["4", "e"]]
    src = make_csv([["id", "text"]] + rows)

    with pytest.raises(ConcurrencyError) as info:
        split_parallel(_request(src, tmp_path, 2), parallel_cfg)

    assert "Processing shard" in str(info.value)
    assert isinstance(info.value.__cause__, ParseError)


def test_failure_still_drains_other_workers(make_csv, tmp_path, header, data_rows, parallel_cfg):
    rows = data_rows(6) + [["7", "short"]] + data_rows(6)
    src = make_csv([header] + rows)
    tracker = ShardTracker()

    with pytest.raises(ConcurrencyError) as info:
        split_parallel(_request(src, tmp_path, 3), parallel_cfg, tracker)

    assert info.value.chunk_id == 3
    statuses = {r.shard_index: r.status for r in tracker.results}
    assert len(statuses) == 5
    assert statuses[3] == "failed"
    assert all(s == "success" for i, s in statuses.items() if i != 3)


@pytest.mark.parametrize("tail", [b"\n", b"\n\n\n", b"\r\n"])
def test_trailing_blank_lines_are_ignored(tmp_path, parallel_cfg, sequential_cfg, read_csv, tail):
    src = tmp_path / "data.csv"
    src.write_bytes(b"a,b\n1,2\n3,4" + b"\n" + tail)
    (tmp_path / "seq").mkdir()
    (tmp_path / "par").mkdir()

    par = split_parallel(_request(src, tmp_path / "par", 1), parallel_cfg)
    seq = split_sequential(_request(src, tmp_path / "seq", 1), sequential_cfg)

    assert [read_csv(p) for p in par] == [[["a", "b"], ["1", "2"]], [["a", "b"], ["3", "4"]]]
    assert [p.read_bytes() for p in par] == [p.read_bytes() for p in seq]


def test_interior_blank_lines_match_sequential(tmp_path, parallel_cfg, sequential_cfg, read_csv):
    src = tmp_path / "data.csv"
    src.write_bytes(b"a,b\n\n1,2\n3,4\n\n\n5,6\n7,8\n\n9,10\n")
    (tmp_path / "seq").mkdir()
    (tmp_path / "par").mkdir()

    par = split_parallel(_request(src, tmp_path / "par", 2), parallel_cfg)
    seq = split_sequential(_request(src, tmp_path / "seq", 2), sequential_cfg)

    assert [len(read_csv(p)) - 1 for p in par] == [2, 2, 1]
    assert [p.read_bytes() for p in par] == [p.read_bytes() for p in seq]


def test_errors_name_the_source_line(make_csv, tmp_path, header, data_rows, parallel_cfg):
    rows = data_rows(5) + [["6", "short"]]
    src = make_csv([header] + rows)

    with pytest.raises(ConcurrencyError, match="Record at line 7 has 2 fields"):
        split_parallel(_request(src, tmp_path, 2), parallel_cfg)


def test_worker_memory_stays_below_chunk_size(tmp_path):
    rows = 120_000
    src = tmp_path / "data.csv"
    with open(src, "wb") as f:
        f.write(b"id,text\n")
        for i in range(rows):
            f.write(b"%d,%s\n" % (i, b"x" * 64))
    out = tmp_path / "out"
    out.mkdir()

    data = src.read_bytes()
    index = build_line_index(data)
    (chunk,) = plan_chunks(index, 1, record_lines(index, data, 1), rows)
    del data, index

    cfg = SplitterConfig()
    cfg.parallel.write_buffer_bytes = 64 * 1024

    tracemalloc.start()
    try:
        written = write_chunk(_request(src, out, rows), chunk, ("id", "text"), cfg)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()

    assert written == rows
    assert chunk.size > 8_000_000
    assert peak < chunk.size // 8
