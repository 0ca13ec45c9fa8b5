from __future__ import annotations

from pathlib import Path

from order_revenue.cli.app import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main

"""Exit code contract tests."""


def test_exit_code_values():
    assert (EXIT_SUCCESS_ALL, EXIT_FATAL, EXIT_PARTIAL_FAILURE) == (0, 1, 2)


def test_exit_code_fatal_startup(temp_workdir: Path, capsys):
    # 明示指定した設定ファイルが無い → exit 1
    code = main(["--config", "config/missing.yml", "list"])
    assert code == EXIT_FATAL
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_all_success(write_config: Path, orders_csv: Path, orders_xlsx: Path):
    assert main(["upload", str(orders_csv), str(orders_xlsx)]) == EXIT_SUCCESS_ALL


def test_exit_code_partial_failure(write_config: Path, orders_csv: Path, temp_workdir: Path):
    empty = temp_workdir / "data" / "empty.csv"
    empty.write_text("", encoding="utf-8")
    assert main(["upload", str(orders_csv), str(empty)]) == EXIT_PARTIAL_FAILURE


def test_exit_code_all_failed_is_partial(write_config: Path, temp_workdir: Path):
    empty = temp_workdir / "data" / "empty.csv"
    empty.write_text("", encoding="utf-8")
    assert main(["upload", str(empty)]) == EXIT_PARTIAL_FAILURE
