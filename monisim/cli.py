import argparse
import logging
import sys
import time

from monisim.core.config import load_alarm_thresholds, load_config
from monisim.core.engine import SimulationEngine
from monisim.core.event_log import EventLogger, JsonlEventSink
from monisim.core.enums import RhythmType
from monisim.scenarios.templates import SCENARIO_TEMPLATES


class SimulatedClock:
    """Wall clock stand-in for headless runs, advanced by the run loop."""
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


def run_headless(args):
    """Step all four activities on simulated time, as fast as possible."""
    config = load_config(args.config)
    if args.seed is not None:
        config.rng_seed = args.seed
    clock = SimulatedClock()
    sink = JsonlEventSink(args.event_log) if args.event_log else None
    engine = SimulationEngine(
        config,
        thresholds=load_alarm_thresholds(args.alarm_config),
        event_logger=EventLogger(sink),
        clock=clock,
    )
    if args.rhythm:
        engine.set_rhythm(args.rhythm, apply_presets=True)
    if args.scenario:
        engine.start_scenario(args.scenario)

    print(f"Starting Headless Simulation (Duration: {args.duration}s)...")
    engine.start()
    start_real = time.time()

    dt = config.animation_interval_ms
    periods = {
        "scenario": config.scenario_interval_ms,
        "jitter": config.jitter_interval_ms,
        "alarm": config.alarm_interval_ms,
        "flush": config.event_batch_seconds * 1000.0,
        "report": 1000.0,
    }
    due = dict(periods)
    elapsed_ms = 0.0
    while elapsed_ms < args.duration * 1000.0:
        engine.animation_tick(dt)
        elapsed_ms += dt
        clock.now = elapsed_ms / 1000.0
        for name, period in periods.items():
            if elapsed_ms < due[name]:
                continue
            due[name] += period
            if name == "scenario":
                engine.scenario_tick()
            elif name == "jitter":
                engine.jitter_tick()
            elif name == "alarm":
                engine.alarm_tick()
            elif name == "flush":
                engine.flush_events()
            else:
                _report(engine, clock.now)

    engine.stop()
    engine.flush_events()
    print(f"Simulation completed in {time.time() - start_real:.2f}s real time.")
    return engine


def _report(engine: SimulationEngine, t: float):
    d = engine.state.displayed
    active = ", ".join(sorted(str(k) for k in engine.alarms.active_alarms)) or "-"
    print(f"Time: {t:6.0f}s | {engine.state.rhythm.value:8s} | HR: {d.format('heart_rate'):>3} | "
          f"SpO2: {d.format('spo2'):>3} | BP: {d.format('systolic_bp')}/{d.format('diastolic_bp')} | "
          f"RR: {d.format('resp_rate')} | Alarms: {active}")


def run_ui(args):
    """Run simulation with UI."""
    from PySide6.QtWidgets import QApplication
    from monisim.ui.main_window import MainWindow

    app = QApplication.instance()
    if not app:
        app = QApplication(sys.argv)

    config = load_config(args.config)
    if args.seed is not None:
        config.rng_seed = args.seed
    window = MainWindow(config, args.alarm_config, args.event_log, args.scenario)
    if args.rhythm:
        window.engine.set_rhythm(args.rhythm, apply_presets=True)
    window.show()
    sys.exit(app.exec())


def main(argv=None):
    parser = argparse.ArgumentParser(description="MoniSim - Patient Monitor Simulator")
    parser.add_argument("--mode", choices=["ui", "headless"], default="ui", help="Run mode (default: ui)")
    parser.add_argument("--duration", type=float, default=10.0, help="Duration for headless mode in seconds")
    parser.add_argument("--config", type=str, help="Path to JSON configuration file")
    parser.add_argument("--alarm-config", type=str, help="Path to JSON alarm thresholds")
    parser.add_argument("--scenario", choices=sorted(SCENARIO_TEMPLATES), help="Scenario template to play")
    parser.add_argument("--rhythm", choices=[r.value for r in RhythmType], help="Initial rhythm")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible runs")
    parser.add_argument("--event-log", type=str, help="Append monitor events to this JSONL file")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging verbosity")

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.mode == "headless":
        run_headless(args)
    else:
        run_ui(args)


if __name__ == "__main__":
    main()
