from trafficsync.common.config import ConfigManager
from trafficsync.main import main, run_simulation

def test_run_simulation_on_virtual_clock():
    cfg = ConfigManager().load_intersection_config("two_way")

    metrics = run_simulation(cfg)

    # Ticks at 0, 2, ..., 120
    assert metrics.ticks == 61
    assert metrics.callback_failures == 0
    assert metrics.events["transition"] > 0

def test_run_simulation_with_thread_pool():
    cfg = ConfigManager().load_intersection_config(overrides=[
        "intersection.duration=20",
        "intersection.scheduler.time_unit_seconds=0.005",
    ])

    metrics = run_simulation(cfg)

    assert metrics.ticks >= 1
    assert metrics.callback_failures == 0

def test_main_with_profile():
    assert main(["--profile", "two_way", "--duration", "10"]) == 0

def test_main_rejects_bad_config(capsys):
    assert main(["--profile", "two_way", "intersection.tick_interval=0"]) == 2
    assert "Configuration error" in capsys.readouterr().err

def test_main_missing_profile(capsys):
    assert main(["--profile", "nope"]) == 2
