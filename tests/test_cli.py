from __future__ import annotations

import json
import logging
from argparse import Namespace

import pytest

from emokit.cli import main
from emokit.cli.capture import apply_overrides, build_parser
from emokit.config import AppConfig, OverloadPolicy
from emokit.hardware import SimulatedTransport


def _write_config(tmp_path, **device):
    payload = {
        'device': {'transport': 'sim', 'sim_rate_hz': 0, 'sim_max_frames': 300, **device},
        'dispatch': {'threads': 2, 'queue_size': 1024},
        'session': {'name': 'cli-test', 'log_samples_every': 100},
    }
    path = tmp_path / 'capture.json'
    path.write_text(json.dumps(payload), encoding='utf-8')
    return path


def test_cli_runs_simulated_session_to_completion(tmp_path, caplog) -> None:
    config_path = _write_config(tmp_path)
    caplog.set_level(logging.INFO)

    exit_code = main(['--config', str(config_path), '--log-level', 'INFO'])

    assert exit_code == 0
    assert any('Frames: 300' in record.getMessage() for record in caplog.records)


def test_cli_list_devices_sim(capsys) -> None:
    exit_code = main(['--transport', 'sim', '--list-devices'])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert SimulatedTransport.DEFAULT_SERIAL in out


def test_cli_missing_config_returns_error(tmp_path, capsys) -> None:
    exit_code = main(['--config', str(tmp_path / 'missing.json')])

    assert exit_code == 1
    assert 'Config file not found' in capsys.readouterr().err


@pytest.mark.parametrize('serial', ['SN1', 'SN-ÄÖÜ-1234'])
def test_cli_reports_unusable_serial_without_traceback(serial, caplog) -> None:
    exit_code = main(['--transport', 'sim', '--serial', serial])

    assert exit_code == 1
    assert any('Could not open headset' in record.getMessage() for record in caplog.records)


def test_apply_overrides_updates_sections() -> None:
    args = build_parser().parse_args(
        [
            '--transport', 'sim',
            '--serial', 'SN42',
            '--research',
            '--max-frames', '0',
            '--threads', '3',
            '--overload-policy', 'caller-runs',
            '--name', 'bench',
            '--log-every', '0',
        ]
    )

    config = apply_overrides(AppConfig(), args)

    assert config.device.transport == 'sim'
    assert config.device.serial == 'SN42'
    assert config.device.research is True
    assert config.device.sim_max_frames is None
    assert config.dispatch.threads == 3
    assert config.dispatch.overload_policy is OverloadPolicy.CALLER_RUNS
    assert config.session.name == 'bench'
    assert config.session.log_samples_every == 1


def test_apply_overrides_ignores_missing_arguments() -> None:
    config = apply_overrides(AppConfig(), Namespace())
    assert config == AppConfig()
