from pathlib import Path

from texmake.adapters.makefile import MakefileExporter, make_escape, make_path
from texmake.adapters.tools import ToolRegistry
from texmake.core.documents import DocumentDescriptor, FeatureFlags
from texmake.core.environment import create_environment
from texmake.core.graph import BuildGraph, GraphBuilder


def _graph(tmp_path: Path, document: DocumentDescriptor) -> BuildGraph:
    source = tmp_path / "src"
    (source / "figures").mkdir(parents=True, exist_ok=True)
    (source / "report.tex").write_text("", encoding="utf-8")
    (source / "version.tex").write_text("@VERSION@", encoding="utf-8")
    (source / "figures" / "chart.svg").write_text("", encoding="utf-8")
    (source / "mystyle.sty").write_text("", encoding="utf-8")
    tools = ToolRegistry(which=lambda name: f"/usr/bin/{name}").discover()
    env = create_environment(
        source, tmp_path / "build", tools, program=("texmake", "--config", "texmake.yml")
    )
    return GraphBuilder(env).build(document)


def _lines(text: str) -> list[str]:
    return text.splitlines()


def test_makefile_contains_targets_and_recipes(tmp_path: Path) -> None:
    document = DocumentDescriptor(
        main_input=Path("report.tex"),
        inputs=(Path("version.tex"),),
        image_sources=(Path("figures"),),
        configure_files=(Path("version.tex"),),
        features=FeatureFlags(use_glossary=True),
    )
    graph = _graph(tmp_path, document)
    out = graph.environment.output_dir
    src = graph.environment.source_dir

    text = MakefileExporter(graph.environment.program).render([graph])
    lines = _lines(text)

    assert lines[0].startswith("# Generated by texmake")
    assert "all: dvi" in lines
    assert "FORCE:" in lines
    phony = next(line for line in lines if line.startswith(".PHONY:"))
    for name in ("all", "dvi", "pdf", "ps", "safepdf", "html", "auxclean", "images_pdf"):
        assert f" {name}" in phony
    assert f"dvi: {out}/report.dvi" in lines
    assert f"{out}/report.tex: {src}/report.tex" in lines
    assert "\ttexmake --config texmake.yml stage" in lines
    assert f"images_pdf: {out}/figures/chart.pdf" in lines
    assert f"\tcd {out} && /usr/bin/convert {src}/figures/chart.svg {out}/figures/chart.pdf" in lines

    dvi_rule = next(line for line in lines if line.startswith(f"{out}/report.dvi:"))
    assert f"{out}/figures/chart.eps" in dvi_rule
    assert dvi_rule.endswith(f"| {out}/mystyle.sty")

    recipe = [line for line in lines if line.startswith("\t") and "driver glossary" in line]
    assert len(recipe) == 4
    assert recipe[0].startswith(
        f"\ttexmake --config texmake.yml driver glossary --target report --workdir {out}"
    )
    assert sum(1 for line in lines if line.startswith(f"\tcd {out} && /usr/bin/latex ")) == 5


def test_always_rebuilt_targets_depend_on_force(tmp_path: Path) -> None:
    graph = _graph(tmp_path, DocumentDescriptor(main_input=Path("report.tex")))
    out = graph.environment.output_dir

    lines = _lines(MakefileExporter().render([graph]))

    assert f"safepdf: {out}/report.ps FORCE" in lines
    auxclean = lines.index("auxclean:")
    assert lines[auxclean + 1].startswith("\trm -f ")
    assert f"{out}/report.aux" in lines[auxclean + 1]


def test_write_creates_the_makefile(tmp_path: Path) -> None:
    graph = _graph(tmp_path, DocumentDescriptor(main_input=Path("report.tex")))
    destination = tmp_path / "build" / "Makefile"

    written = MakefileExporter().write([graph], destination)

    assert written == destination
    assert "all: dvi" in destination.read_text(encoding="utf-8")


def test_make_escaping() -> None:
    assert make_escape("echo $HOME") == "echo $$HOME"
    assert make_path(Path("/tmp/my dir/a.tex")) == "/tmp/my\\ dir/a.tex"


def test_raster_images_depend_on_the_rescale_stamp(tmp_path: Path) -> None:
    (tmp_path / "src" / "figures").mkdir(parents=True)
    (tmp_path / "src" / "figures" / "photo.gif").write_text("", encoding="utf-8")
    document = DocumentDescriptor(main_input=Path("report.tex"), image_sources=(Path("figures"),))
    graph = _graph(tmp_path, document)
    out = graph.environment.output_dir
    src = graph.environment.source_dir

    lines = _lines(MakefileExporter().render([graph]))

    assert ".DELETE_ON_ERROR:" in lines
    assert lines.count(f"{out}/raster_image_rescale_100:") == 1
    assert f"\tcd {out} && rm -f raster_image_rescale_*" in lines
    assert (
        f"{out}/figures/photo.eps: {src}/figures/photo.gif {out}/raster_image_rescale_100"
        in lines
    )
    assert f"{out}/figures/chart.eps: {src}/figures/chart.svg" in lines
