from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from ithaca_automation.cli import automation_cli
from ithaca_automation.cli.automation_cli import cli, countdown, display_cycle_reports, format_countdown
from ithaca_automation.core.types import OperationResult, OperationStatus, ShutdownRequested
from ithaca_automation.services.wallet_cycle_runner import WalletReport
from tests.utils.test_utils import TX_HASH, FakeRunContext


@pytest.fixture
def cli_runner(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ('AUTOMATION_CONFIG', 'AUTOMATION_KEYS', 'AUTOMATION_PROXIES'):
        monkeypatch.delenv(name, raising=False)
    # keep the global structlog setup untouched by CLI invocations
    monkeypatch.setattr(automation_cli, 'configure_logging', MagicMock())
    return CliRunner()


@pytest.mark.parametrize("seconds,expected", [
    (0, "00:00:00"),
    (59, "00:00:59"),
    (3661, "01:01:01"),
    (25 * 3600, "25:00:00"),
    (-5, "00:00:00"),
])
def test_format_countdown(seconds, expected):
    assert format_countdown(seconds) == expected


@pytest.mark.asyncio
async def test_countdown_ticks_every_second():
    ctx = FakeRunContext()

    await countdown(ctx, 5)

    assert ctx.sleeps == [1, 1, 1, 1, 1]


@pytest.mark.asyncio
async def test_countdown_stops_on_request():
    ctx = FakeRunContext(stop_after=3)

    with pytest.raises(ShutdownRequested):
        await countdown(ctx, 3600)

    assert len(ctx.sleeps) == 3


def test_display_cycle_reports_lists_operations():
    reports = [
        WalletReport(index=1, address="0xabc", results={
            'transfer': OperationResult(OperationStatus.COMPLETED, tx_hash=TX_HASH),
            'bridge': OperationResult(OperationStatus.FAILED, reason="no route"),
        }),
        WalletReport(index=2, address=None, error="invalid private key"),
    ]

    with automation_cli.console.capture() as capture:
        display_cycle_reports(1, reports)

    output = capture.get()
    assert "Cycle 1" in output
    assert "no route" in output
    assert "invalid key" in output


def test_missing_key_file_exits_with_error(cli_runner):
    result = cli_runner.invoke(cli, ['--once', '--keys', 'missing.txt'])

    assert result.exit_code == 1
    assert "missing.txt" in result.output


def test_invalid_config_exits_with_error(cli_runner, tmp_path):
    (tmp_path / 'config.json').write_text('{"transfer_amount_percentage": 150}')
    (tmp_path / 'pk.txt').write_text("")

    result = cli_runner.invoke(cli, ['--once'])

    assert result.exit_code == 1
    assert "transfer_amount_percentage" in result.output


def test_once_with_empty_key_list(cli_runner, tmp_path):
    (tmp_path / 'pk.txt').write_text("\n")

    result = cli_runner.invoke(cli, ['--once'])

    assert result.exit_code == 0
    assert "Cycle 1" in result.output


def test_keys_path_from_environment(cli_runner, monkeypatch):
    monkeypatch.setenv('AUTOMATION_KEYS', 'wallets.txt')

    result = cli_runner.invoke(cli, ['--once'])

    assert result.exit_code == 1
    assert "wallets.txt" in result.output
