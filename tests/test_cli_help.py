import sys


def _run_with_argv(argv):
    import importlib

    cli = importlib.import_module("segment_stability.cli")
    old = sys.argv
    try:
        sys.argv = argv
        try:
            return cli.main()
        except SystemExit as e:
            return e.code
    finally:
        sys.argv = old


def test_cli_top_help():
    code = _run_with_argv(["segment-stability", "--help"])
    assert code == 0


def test_cli_without_command_prints_help(capsys):
    code = _run_with_argv(["segment-stability"])
    assert code == 0
    assert "stability-report" in capsys.readouterr().out


def test_cli_subcommand_helps():
    # Dynamically check help for each discovered module command
    import importlib
    cli = importlib.import_module("segment_stability.cli")
    cmds = [c for c, m, cat in cli._discover_modules()]
    assert "stability-report" in cmds
    for cmd in cmds:
        code = _run_with_argv(["segment-stability", cmd, "--help"])
        assert code == 0, f"Help failed for subcommand: {cmd} (exit {code})"


def test_cli_dispatches_to_module(monkeypatch):
    import importlib
    cli = importlib.import_module("segment_stability.cli")
    mod = importlib.import_module("segment_stability.analyzers.stability_report")

    seen = {}

    def fake_main(argv=None):
        seen["argv"] = argv
        return 7

    monkeypatch.setattr(mod, "main", fake_main)
    code = cli.main(["stability-report", "--cityId=metro", "--dry-run"])
    assert code == 7
    assert seen["argv"] == ["--cityId=metro", "--dry-run"]
