import pytest

from maven_scm_checkout.errors import PatchApplicationError
from maven_scm_checkout.modules import add_module, has_module, register_module

AGGREGATOR = """<project>
  <artifactId>aggregator</artifactId>
  <packaging>pom</packaging>
  <modules>
      <module>core</module>
      <module>web</module>
  </modules>
</project>
"""


def test_inserts_before_first_module_with_its_indentation():
    result = add_module(AGGREGATOR, "widget")
    assert result.changed is True
    assert result.text == AGGREGATOR.replace(
        "<modules>\n      <module>core</module>",
        "<modules>\n      <module>widget</module>\n      <module>core</module>",
    )


def test_always_inserts_even_when_present():
    once = add_module(AGGREGATOR, "core").text
    assert once.count("<module>core</module>") == 2


def test_empty_modules_block():
    text = "<project>\n  <modules>\n  </modules>\n</project>\n"
    result = add_module(text, "widget")
    assert result.text == "<project>\n  <modules>\n      <module>widget</module>\n  </modules>\n</project>\n"


def test_empty_modules_on_one_line():
    result = add_module("<project><modules></modules></project>", "widget")
    assert result.text == "<project><modules>\n    <module>widget</module>\n</modules></project>"
    assert has_module(result.text, "widget")


def test_self_closing_modules():
    result = add_module("<project>\n  <modules/>\n</project>", "widget")
    assert has_module(result.text, "widget")
    assert result.text.startswith("<project>\n  <modules>\n")


def test_no_modules_element():
    text = "<project><artifactId>a</artifactId></project>"
    result = add_module(text, "widget")
    assert result.changed is False
    assert result.reason == "not_found"
    assert result.text == text


def test_nested_modules_elements_are_ignored():
    text = "<project><profiles><profile><modules><module>x</module></modules></profile></profiles></project>"
    assert add_module(text, "widget").changed is False


def test_register_module_writes_once(tmp_path):
    pom = tmp_path / "pom.xml"
    pom.write_text(AGGREGATOR, encoding="utf-8")

    assert register_module(pom, "widget") is True
    assert register_module(pom, "widget") is False
    assert pom.read_text(encoding="utf-8").count("<module>widget</module>") == 1


def test_register_module_missing_file(tmp_path):
    with pytest.raises(PatchApplicationError, match="Cannot read"):
        register_module(tmp_path / "missing.xml", "widget")


def test_register_module_keeps_declared_encoding(tmp_path):
    pom = tmp_path / "pom.xml"
    text = '<?xml version="1.0" encoding="ISO-8859-1"?>\n' + AGGREGATOR.replace(
        "<project>", "<project>\n  <!-- Zürich -->", 1
    )
    pom.write_bytes(text.encode("iso-8859-1"))

    assert register_module(pom, "widget") is True
    written = pom.read_bytes()
    assert "<!-- Zürich -->".encode("iso-8859-1") in written
    assert b"<module>widget</module>" in written


def test_register_module_undecodable_file(tmp_path):
    pom = tmp_path / "pom.xml"
    pom.write_bytes(b"<project><!-- Z\xfcrich --><modules/></project>")
    with pytest.raises(PatchApplicationError, match="Cannot read"):
        register_module(pom, "widget")
