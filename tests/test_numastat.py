import pytest

from numatools.numastat import (
    Options,
    main,
    parse_args,
    process_report,
    system_file_report,
)
from numatools.sources import capitalize_label, hugepages_bytes

MB = 1024 * 1024


def _sysfs(tmp_path, files):
    base = tmp_path / "sys" / "devices" / "system" / "node"
    for node, entries in files.items():
        directory = base / f"node{node}"
        directory.mkdir(parents=True, exist_ok=True)
        for name, text in entries.items():
            (directory / name).write_text(text)
    return tmp_path / "sys"


def _proc(tmp_path, processes):
    root = tmp_path / "proc"
    for pid, (name, maps) in processes.items():
        directory = root / str(pid)
        directory.mkdir(parents=True)
        (directory / "status").write_text(f"Name:\t{name}\nState:\tS\n")
        if maps is not None:
            (directory / "numa_maps").write_text(maps)
    return root


def _options(tmp_path, **kwargs):
    values = dict(
        screen_width=200,
        page_size=float(MB),
        huge_page_size=2.0 * MB,
        sys_root=str(tmp_path / "sys"),
        proc_root=str(tmp_path / "proc"),
    )
    values.update(kwargs)
    return Options(**values)


def _rows(text, ncols):
    rows = {}
    for line in text.splitlines():
        parts = line.rsplit(None, ncols)
        if len(parts) != ncols + 1:
            continue
        try:
            numbers = [float(p) for p in parts[1:]]
        except ValueError:
            continue
        rows[parts[0].strip()] = numbers
    return rows


def test_parse_args_bundled_flags():
    options = parse_args(["-cmnvz"])
    assert options.compress_display
    assert options.show_system_info
    assert options.show_numastat_info
    assert options.verbose
    assert options.show_zero_data is False
    assert options.compatibility_mode is False


def test_parse_args_pid_specs():
    options = parse_args(["-p123", "-p", "bash", "456", "-m", "sshd"])
    assert options.pid_specs == ["123", "bash", "456", "sshd"]
    assert options.show_system_info


def test_parse_args_sort_optional_argument():
    assert parse_args(["-s2"]).sort_table_node == 2
    bare = parse_args(["-s"])
    assert bare.sort_table and bare.sort_table_node == -1
    separate = parse_args(["-s", "2"])
    assert separate.sort_table_node == -1
    assert separate.pid_specs == ["2"]


def test_parse_args_empty_is_compatibility_mode():
    assert parse_args([]).compatibility_mode is True
    assert parse_args(["-n"]).compatibility_mode is False


def test_parse_args_version():
    assert parse_args(["-V", "-x"]).show_version is True


@pytest.mark.parametrize("argv", [["-x"], ["-p"], ["--help"], ["--bogus"], ["-?"]])
def test_parse_args_rejects(argv):
    with pytest.raises(ValueError):
        parse_args(argv)


def test_numastat_compatibility_mode(tmp_path):
    _sysfs(tmp_path, {0: {"numastat": "numa_hit 100\nnuma_miss 5\n"},
                      1: {"numastat": "numa_hit 200\nnuma_miss 7\n"}})
    options = _options(tmp_path, compatibility_mode=True)
    text = system_file_report(options, [0, 1], "numastat", 0)
    rows = _rows(text, 2)
    assert rows["numa_hit"] == [100.0, 200.0]
    assert rows["numa_miss"] == [5.0, 7.0]
    assert "node0" in text and "node1" in text
    assert "Total" not in text


def test_numastat_totals_and_labels(tmp_path):
    _sysfs(tmp_path, {0: {"numastat": "numa_hit 100\nlocal_node 5\n"},
                      1: {"numastat": "numa_hit 200\nlocal_node 7\n"}})
    text = system_file_report(_options(tmp_path), [0, 1], "numastat", 0)
    rows = _rows(text, 3)
    hit = rows[capitalize_label("numa_hit")]
    assert hit[:2] == [100.0, 200.0]
    assert hit[2] == hit[0] + hit[1]
    local = rows[capitalize_label("local_node")]
    assert local[2] == local[0] + local[1]
    assert "Node 0" in text and "Total" in text


def test_numastat_hides_zero_rows(tmp_path):
    _sysfs(tmp_path, {0: {"numastat": "numa_hit 100\nnuma_foreign 0\n"},
                      1: {"numastat": "numa_hit 200\nnuma_foreign 0\n"}})
    shown = system_file_report(_options(tmp_path), [0, 1], "numastat", 0)
    hidden = system_file_report(_options(tmp_path, show_zero_data=False), [0, 1], "numastat", 0)
    assert "Numa_Foreign" in shown
    assert "Numa_Foreign" not in hidden
    assert "Numa_Hit" in hidden


def test_numastat_unknown_token_note(tmp_path):
    _sysfs(tmp_path, {0: {"numastat": "numa_hit 1\n"},
                      1: {"numastat": "numa_hit 2\nother_hit 3\n"}})
    text = system_file_report(_options(tmp_path), [0, 1], "numastat", 0)
    assert "Token other_hit not in hash table." in text


def test_numastat_sort_by_total(tmp_path):
    _sysfs(tmp_path, {0: {"numastat": "a 1\nb 5\nc 3\n"},
                      1: {"numastat": "a 1\nb 1\nc 1\n"}})
    text = system_file_report(_options(tmp_path, sort_table=True), [0, 1], "numastat", 0)
    labels = [line.split()[0] for line in text.splitlines() if line[:1] in "ABC" and line.strip()]
    assert labels == ["B", "C", "A"]


def test_numastat_sort_by_node(tmp_path):
    _sysfs(tmp_path, {0: {"numastat": "a 9\nb 1\n"},
                      1: {"numastat": "a 1\nb 4\n"}})
    options = _options(tmp_path, sort_table=True, sort_table_node=1)
    text = system_file_report(options, [0, 1], "numastat", 0)
    labels = [line.split()[0] for line in text.splitlines() if line[:1] in "AB" and line.strip()]
    assert labels == ["B", "A"]


def test_meminfo_units(tmp_path):
    sys_root = _sysfs(tmp_path, {
        0: {"meminfo": "Node 0 MemTotal:       2048 kB\nNode 0 HugePages_Total:     3\n"},
        1: {"meminfo": "Node 1 MemTotal:       4096 kB\nNode 1 HugePages_Total:     0\n"},
    })
    pages = sys_root / "devices" / "system" / "node" / "node0" / "hugepages" / "hugepages-2048kB"
    pages.mkdir(parents=True)
    (pages / "nr_hugepages").write_text("3\n")
    text = system_file_report(_options(tmp_path), [0, 1], "meminfo", 2)
    rows = _rows(text, 3)
    assert rows["MemTotal"][0] == pytest.approx(2048 * 1024 / MB)
    assert rows["MemTotal"][1] == pytest.approx(2 * rows["MemTotal"][0])
    expected = hugepages_bytes(0, "HugePages_Total", str(sys_root)) / MB
    assert rows["HugePages_Total"][0] == pytest.approx(expected)
    assert "invalid path" in text


def test_system_report_missing_file(tmp_path):
    _sysfs(tmp_path, {0: {}})
    with pytest.raises(OSError):
        system_file_report(_options(tmp_path), [0], "numastat", 0)


MAPS = (
    "7f00 default heap anon=2 N0=2 kernelpagesize_kB=1024\n"
    "7f01 default stack anon=1 N1=1 kernelpagesize_kB=1024\n"
    "7f02 default file=/lib/x.so N0=3 N1=1\n"
    "7f03 default file=/mnt/x huge dirty=1 N1=1\n"
)


def test_process_single_pid_categories(tmp_path):
    _sysfs(tmp_path, {0: {}, 1: {}})
    _proc(tmp_path, {4242: ("worker", MAPS)})
    options = _options(tmp_path)
    text = process_report(options, [0, 1], [4242])
    assert "for PID 4242 (worker)" in text
    rows = _rows(text, 3)
    assert rows["Private"][:2] == [3.0, 1.0]
    assert rows["Huge"][1] == pytest.approx(options.huge_page_size / MB)
    assert rows["Heap"][1] == 0.0 and rows["Heap"][0] > 0
    for label in ("Huge", "Heap", "Stack", "Private", "Total"):
        assert rows[label][2] == pytest.approx(rows[label][0] + rows[label][1])
    for col in range(3):
        parts = sum(rows[label][col] for label in ("Huge", "Heap", "Stack", "Private"))
        assert rows["Total"][col] == pytest.approx(parts)


def test_process_multiple_pids(tmp_path):
    _sysfs(tmp_path, {0: {}, 1: {}})
    _proc(tmp_path, {4242: ("worker", "7f00 default N0=4\n"),
                     4343: ("helper", "7f00 default N1=2\n")})
    text = process_report(_options(tmp_path), [0, 1], [4242, 4343])
    assert "PID" in text
    rows = _rows(text, 3)
    assert rows["4242 (worker)"][:2] == [4.0, 0.0]
    assert rows["4343 (helper)"][:2] == [0.0, 2.0]
    for col in range(3):
        assert rows["Total"][col] == rows["4242 (worker)"][col] + rows["4343 (helper)"][col]


def test_process_missing_numa_maps(tmp_path, capsys):
    _sysfs(tmp_path, {0: {}})
    _proc(tmp_path, {10: ("gone", None), 11: ("alive", "7f00 default N0=1\n")})
    text = process_report(_options(tmp_path), [0], [10, 11])
    assert "Can't read /proc/10/numa_maps" in capsys.readouterr().err
    assert _rows(text, 2)["11 (alive)"] == [1.0, 1.0]


def test_process_bad_node_token(tmp_path):
    _sysfs(tmp_path, {0: {}})
    _proc(tmp_path, {12: ("bad", "7f00 default N0x5\n")})
    with pytest.raises(ValueError):
        process_report(_options(tmp_path), [0], [12])


def test_process_unknown_node(tmp_path):
    _sysfs(tmp_path, {0: {}})
    _proc(tmp_path, {13: ("far", "7f00 default N7=1\n")})
    with pytest.raises(ValueError):
        process_report(_options(tmp_path), [0], [13])


def test_main_version(capsys):
    assert main(["-V"]) == 0
    assert "numastat version:" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [["--bogus"], ["-p"], ["-q"]])
def test_main_usage_error(argv, capsys):
    assert main(argv) == 1
    assert "Usage: numastat" in capsys.readouterr().err