import os

from portprobe import cli
from portprobe.models import STATUS_OPEN, ProbeResult


def test_bad_target_exits_2(capsys):
    assert cli.main(["-t", "10.0.0.9-3"]) == 2
    captured = capsys.readouterr()
    assert captured.out.count("10.0.0.9-3") == 1
    assert "10.0.0.9-3" not in captured.err


def test_no_valid_ports_exits_2(capsys):
    assert cli.main(["-t", "10.0.0.1", "-p", "abc"]) == 2
    captured = capsys.readouterr()
    assert captured.out.count("No valid ports") == 1
    assert "abc" not in captured.err


def test_parser_defaults():
    args = cli.build_parser().parse_args(["-t", "10.0.0.1"])
    assert args.concurrency == 1000
    assert args.connect_timeout == 3.0
    assert args.read_timeout == 1.0
    assert args.probe_timeout == 2.0
    assert args.ports is None
    assert not args.full and not args.deep


def test_scan_and_save(monkeypatch, tmp_path, capsys):
    captured = {}

    def fake_scan(targets, ports, config, on_result=None):
        captured.update(targets=targets, ports=ports, config=config)
        results = [ProbeResult(t, p, STATUS_OPEN, "svc") for t in targets for p in ports]
        for r in results:
            on_result(r)
        return results

    monkeypatch.setattr(cli, "scan", fake_scan)
    rc = cli.main([
        "-t", "10.0.0.1-2", "-p", "22,80", "--deep", "-c", "50",
        "--format", "csv", "--out-dir", str(tmp_path),
    ])

    assert rc == 0
    assert captured["targets"] == ["10.0.0.1", "10.0.0.2"]
    assert captured["ports"] == [22, 80]
    assert captured["config"].deep is True
    assert captured["config"].concurrency == 50
    assert len(os.listdir(tmp_path)) == 1
    out = capsys.readouterr().out
    assert "Total scans: 4" in out
    assert "Found 4 open ports" in out
