from pathlib import Path

import pytest

from texmake.adapters.tools import ToolId, ToolRegistry
from texmake.core.config import find_config_file, load_project_config, parse_project_config
from texmake.core.documents import DefaultTarget
from texmake.core.exceptions import (
    ConfigurationError,
    InvalidDocumentError,
    OutputEqualsSourceDirectory,
)


CONFIG = """
output_dir: build
variables:
  VERSION: 1.2
  DRAFT: true
tools:
  latex:
    flags: "-interaction=batchmode"
glossary_flags: "-q"
documents:
  - main: report.tex
    inputs: intro.tex
    bibliography: [refs.bib]
    images: [figures]
    configure: [intro.tex]
    use_index: true
    multibib: [sec]
    default_target: pdf
"""


def _write(tmp_path: Path, text: str, name: str = "texmake.yml") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_load_project_config(tmp_path: Path) -> None:
    config = load_project_config(_write(tmp_path, CONFIG))

    assert config.root == tmp_path.resolve()
    assert config.resolved_source_dir() == tmp_path.resolve()
    assert config.resolved_output_dir() == (tmp_path / "build").resolve()
    assert config.variables == {"VERSION": "1.2", "DRAFT": "ON"}
    assert config.tools[ToolId.LATEX].flags == "-interaction=batchmode"

    (document,) = config.descriptors()
    assert document.main_input == Path("report.tex")
    assert document.inputs == (Path("intro.tex"),)
    assert document.is_configured(Path("intro.tex"))
    assert document.features.use_index
    assert document.features.multibib_suffixes == ("sec",)
    assert document.features.default_target is DefaultTarget.PDF
    assert not document.features.mangle_target_names


def test_config_builds_environment(tmp_path: Path) -> None:
    config = load_project_config(_write(tmp_path, CONFIG))
    tools = ToolRegistry(
        config.tool_overrides(), which=lambda name: f"/usr/bin/{name}"
    ).discover()

    env = config.create_environment(tools, program=("texmake", "-c", "texmake.yml"))

    assert env.source_dir == tmp_path.resolve()
    assert env.glossary_flags == ("-q",)
    assert env.raster_scale == 100
    assert env.variables["VERSION"] == "1.2"
    assert env.program == ("texmake", "-c", "texmake.yml")
    assert tools.require(ToolId.LATEX).default_args == ("-interaction=batchmode",)


def test_find_config_file_in_directory(tmp_path: Path) -> None:
    path = _write(tmp_path, CONFIG, name="texmake.yaml")

    assert find_config_file(tmp_path) == path
    assert load_project_config(tmp_path).documents[0].main == "report.tex"
    with pytest.raises(ConfigurationError):
        find_config_file(tmp_path / "nowhere")


def test_several_documents_are_mangled(tmp_path: Path) -> None:
    config = parse_project_config(
        {"documents": [{"main": "a.tex"}, {"main": "b.tex"}]}, root=tmp_path
    )

    assert all(document.features.mangle_target_names for document in config.descriptors())


def test_small_images_selects_small_scale(tmp_path: Path) -> None:
    config = parse_project_config(
        {"small_images": True, "documents": [{"main": "a.tex"}]}, root=tmp_path
    )

    assert config.effective_raster_scale == 16
    with pytest.raises(ConfigurationError):
        parse_project_config(
            {"small_images": True, "raster_scale": 50, "documents": [{"main": "a.tex"}]},
            root=tmp_path,
        )


@pytest.mark.parametrize(
    "text",
    [
        "documents: [\n",
        "- just a list\n",
        "",
        "documents: []\n",
        "documents:\n  - main: a.tex\n    colour: blue\n",
        "html_converter: pandoc\ndocuments:\n  - main: a.tex\n",
        "tools:\n  lualatex: {path: /bin/lualatex}\ndocuments:\n  - main: a.tex\n",
        "raster_scale: 0\ndocuments:\n  - main: a.tex\n",
    ],
)
def test_invalid_configuration_is_rejected(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigurationError):
        load_project_config(_write(tmp_path, text))


def test_inconsistent_document_is_rejected(tmp_path: Path) -> None:
    config = parse_project_config(
        {"documents": [{"main": "a.tex", "configure": ["b.tex"]}]}, root=tmp_path
    )

    with pytest.raises(InvalidDocumentError):
        config.descriptors()


def test_in_source_build_is_rejected(tmp_path: Path) -> None:
    config = parse_project_config(
        {"output_dir": ".", "documents": [{"main": "a.tex"}]}, root=tmp_path
    )
    tools = ToolRegistry(which=lambda name: f"/usr/bin/{name}").discover()

    with pytest.raises(OutputEqualsSourceDirectory):
        config.create_environment(tools)
