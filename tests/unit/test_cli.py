import logging
from pathlib import Path

import pytest

from maven_scm_checkout import cli, orchestrator
from maven_scm_checkout.models import ScmResult


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)


def test_add_module(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    pom = tmp_path / "pom.xml"
    pom.write_text("<project>\n  <modules>\n    <module>core</module>\n  </modules>\n</project>\n", encoding="utf-8")

    assert cli.main(["add-module", str(pom), "widget"]) == 0
    assert cli.main(["add-module", str(pom), "widget"]) == 0

    out = capsys.readouterr().out
    assert "Added module widget" in out
    assert "Module widget not added" in out
    assert pom.read_text(encoding="utf-8").count("<module>widget</module>") == 1


def test_checkout_failure_exits_1(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    code = cli.main(
        [
            "checkout",
            "--connection-url",
            "scm:git:https://github.com/acme/widget.git",
            "--scm-version",
            "v1.0",
            "--basedir",
            str(tmp_path),
        ]
    )
    captured = capsys.readouterr()
    assert code == 1
    assert "ERROR [idle]" in captured.err
    assert "version type" in captured.err
    assert captured.out == ""


def test_invalid_options_exit_1(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    code = cli.main(["checkout", "--as-snapshot", "--basedir", str(tmp_path)])
    assert code == 1
    assert "Invalid checkout options" in capsys.readouterr().err


def test_checkout_success_prints_summary(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch, scm_client
):
    monkeypatch.setattr(orchestrator, "client_for", lambda repository: scm_client)
    scm_client.files = {"README.md": "hello\n"}

    code = cli.main(
        [
            "checkout",
            "--connection-url",
            "scm:git:https://github.com/acme/widget.git",
            "--checkout-directory",
            str(tmp_path / "out"),
            "--basedir",
            str(tmp_path),
        ]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert f"Checked out scm:git:https://github.com/acme/widget.git into {tmp_path / 'out'}" in out
    assert "files: 1" in out


def test_summary_for_skipped_run(tmp_path: Path):
    from maven_scm_checkout.models import CheckoutResult, CheckoutState

    result = CheckoutResult(state=CheckoutState.DONE, skipped=True, checkout_directory=tmp_path)
    assert "skipped" in cli._summary(result)


def test_summary_lists_files_count(tmp_path: Path):
    from maven_scm_checkout.models import CheckoutResult, CheckoutState

    result = CheckoutResult(
        state=CheckoutState.DONE,
        checkout_directory=tmp_path,
        connection_url="scm:svn:https://h/r",
        scm_result=ScmResult(success=True, checked_out_files=["a", "b"]),
    )
    assert "files: 2" in cli._summary(result)


def test_unknown_command_is_an_argparse_error():
    with pytest.raises(SystemExit):
        cli.main(["frobnicate"])
