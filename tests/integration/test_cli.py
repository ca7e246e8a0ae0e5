import json
from pathlib import Path

import pytest

from cli.main import main


def _last_json_line(capsys):
    out = capsys.readouterr().out.strip().splitlines()
    return json.loads(out[-1])


def test_cli_smoke_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "blobs-smoke", "--rounds", "6", "--log-level", "WARNING"])
    payload = _last_json_line(capsys)
    assert payload["steps"] == 6
    run_dir = Path("runs/blobs-smoke")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    assert Path(payload["summary_path"]).exists()
    assert Path(payload["metrics_path"]).exists()
    assert len(payload["run_id"]) == 12


def test_cli_config_override_and_dump(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    override = tmp_path / "override.json"
    override.write_text(json.dumps({"train": {"run_dir": "runs/override", "rounds": 3}}))
    dumped = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "blobs-smoke",
            "--config",
            str(override),
            "--seed",
            "5",
            "--dump-config",
            str(dumped),
            "--log-level",
            "WARNING",
        ]
    )
    resolved = json.loads(dumped.read_text())
    assert resolved["train"]["rounds"] == 3
    assert resolved["train"]["seed"] == 5
    assert resolved["model"]["hidden"] == [8]
    assert _last_json_line(capsys)["steps"] == 3
    assert Path("runs/override/metrics.jsonl").exists()


def test_cli_grad_check(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "blobs-smoke", "--grad-check", "2", "--log-level", "WARNING"])
    payload = _last_json_line(capsys)
    assert len(payload["grad_checks"]) == 2
    assert max(payload["grad_checks"]) < 1e-4


def test_cli_list_presets(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--list-presets"])
    assert exc.value.code == 0
    names = capsys.readouterr().out.split()
    assert "blobs-fd" in names and "sine-fd" in names
