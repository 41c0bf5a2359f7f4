from typer.testing import CliRunner

from skillcat.cli import app

runner = CliRunner()


def test_contract_command_lists_contracts() -> None:
    result = runner.invoke(app, ["contract"])
    assert result.exit_code == 0
    assert "listing" in result.stdout
    assert "ingestion-message" in result.stdout
