from __future__ import annotations

import pytest

from provisioner import run


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BUILD_MODE", "PROVISION_BASE_DIR", "PROVISION_NAMESPACE", "PROVISION_LOG_FORMAT", "PROVISION_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_main_provisions_selected_target(settings, make_variant, tree_writer) -> None:
    tree_writer(settings.provisioning_dir, {"typo3/general/typo3.conf": "x"})
    variant = make_variant("typo3", "ubuntu-16.04")

    code = run.main(["typo3", "--base-dir", str(settings.base_dir), "--log-format", "json"])

    assert code == run.EXIT_OK
    assert (variant / "conf" / "typo3.conf").read_text() == "x"


def test_main_skips_in_push_mode(settings, make_variant, tree_writer, monkeypatch: pytest.MonkeyPatch) -> None:
    tree_writer(settings.provisioning_dir, {"typo3/general/typo3.conf": "x"})
    variant = make_variant("typo3", "ubuntu-16.04")
    monkeypatch.setenv("BUILD_MODE", "push")

    assert run.main(["typo3", "--base-dir", str(settings.base_dir)]) == run.EXIT_OK
    assert not (variant / "conf").exists()


def test_main_unresolved_macro_exit_code(settings, make_variant) -> None:
    make_variant("php", "alpine-3", "#++ php:missing ++#\n")

    code = run.main(["Dockerfile", "--base-dir", str(settings.base_dir)])

    assert code == run.EXIT_UNRESOLVED_MACRO


def test_main_unknown_target(settings) -> None:
    assert run.main(["nope", "--base-dir", str(settings.base_dir)]) == run.EXIT_USAGE


def test_main_copy_failure(settings, make_variant) -> None:
    make_variant("piwik", "latest")

    assert run.main(["piwik", "--base-dir", str(settings.base_dir)]) == run.EXIT_FAILURE
    assert run.main(["piwik", "--base-dir", str(settings.base_dir), "--lenient"]) == run.EXIT_OK


def test_main_lists_targets(settings, capsys: pytest.CaptureFixture[str]) -> None:
    assert run.main(["--list", "--base-dir", str(settings.base_dir)]) == run.EXIT_OK
    listed = capsys.readouterr().out.split()
    assert listed[0] == "bootstrap"
    assert "php-nginx" in listed


def test_settings_from_env(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    from provisioner.config import ProvisionSettings

    monkeypatch.setenv("PROVISION_BASE_DIR", str(tmp_path))
    monkeypatch.setenv("PROVISION_NAMESPACE", "acme")
    settings = ProvisionSettings.from_env()

    assert settings.docker_dir == tmp_path / "docker"
    assert settings.provisioning_dir == tmp_path / "provisioning"
    assert settings.image_namespace == "acme"
    assert not settings.skip_provisioning


def test_settings_build_mode_and_logging_from_env(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    from provisioner.config import ProvisionSettings

    monkeypatch.setenv("BUILD_MODE", "push")
    monkeypatch.setenv("PROVISION_LOG_FORMAT", "json")
    monkeypatch.setenv("PROVISION_LOG_LEVEL", "DEBUG")
    settings = ProvisionSettings.from_env(base_dir=tmp_path)

    assert settings.base_dir == tmp_path
    assert settings.skip_provisioning
    assert settings.log_format == "json"
    assert settings.log_level == "DEBUG"


def test_settings_accept_explicit_values(tmp_path) -> None:
    from provisioner.config import ProvisionSettings

    settings = ProvisionSettings(base_dir=tmp_path, build_mode="build")

    assert not settings.skip_provisioning
    assert settings.image_namespace == "webdevops"
