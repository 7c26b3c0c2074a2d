"""
Headless command-line runs.
"""

import json

import pytest

from monisim.cli import main


class TestHeadless:

    def test_short_run_reports(self, capsys):
        main(["--mode", "headless", "--duration", "3", "--seed", "1"])
        out = capsys.readouterr().out
        assert "Starting Headless Simulation" in out
        assert out.count("Time:") == 3
        assert "Simulation completed" in out

    def test_scenario_run_writes_event_log(self, tmp_path):
        log_path = tmp_path / "events.jsonl"
        main(["--mode", "headless", "--duration", "130", "--seed", "2",
              "--scenario", "anaphylaxis", "--event-log", str(log_path)])
        events = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
        assert all(e["timestamp"] for e in events)
        steps = [e["description"] for e in events if e["event_type"] == "scenario_step"]
        assert len(steps) == 2
        assert steps[0].endswith("Initial exposure - mild symptoms")
        assert steps[-1].endswith("Rapid onset - tachycardia, bronchospasm")

    def test_rhythm_option(self, capsys):
        # Numerics follow the rhythm from the first jitter tick (2 s).
        main(["--mode", "headless", "--duration", "3", "--rhythm", "Asystole"])
        out = capsys.readouterr().out
        assert "Asystole" in out
        assert "HR:   0" in out

    def test_unknown_scenario_rejected(self):
        with pytest.raises(SystemExit):
            main(["--mode", "headless", "--scenario", "nope"])
