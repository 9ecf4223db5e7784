from pathlib import Path

import pytest

from texmake.adapters.tools import ToolId, ToolRegistry, ToolSet
from texmake.core.exceptions import ToolNotFound
from texmake.core.images import (
    FAMILY_EXTENSIONS,
    RENDERER_FAMILIES,
    Convert,
    CopyVerbatim,
    FormatFamily,
    ImageRecord,
    ImageRouter,
    Renderer,
    Skip,
    classify_extension,
    converter_argv,
    discover_images,
    plan_images,
    rescale_stamp_name,
)


class RecordingEmitter:
    debug_enabled = False

    def __init__(self) -> None:
        self.warnings: list[str] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def event(self, name: str, payload: dict[str, object]) -> None:
        return


def _tools(*missing: str) -> ToolSet:
    return ToolRegistry(
        which=lambda name: None if name in missing else f"/usr/bin/{name}"
    ).discover()


def _record(path: str) -> ImageRecord:
    record = ImageRecord.from_path(path)
    assert record is not None
    return record


@pytest.mark.parametrize("renderer", list(Renderer))
def test_accepted_families_are_copied_verbatim(renderer: Renderer) -> None:
    router = ImageRouter(_tools())
    for family in RENDERER_FAMILIES[renderer]:
        for extension in FAMILY_EXTENSIONS[family]:
            action = router.route(_record(f"fig{extension}"), renderer)
            assert isinstance(action, CopyVerbatim)
            assert action.dest == Path(f"fig{extension}")


def test_raster_images_are_resized_when_scaled() -> None:
    router = ImageRouter(_tools(), raster_scale=16)

    action = router.route(_record("photo.png"), Renderer.PDF)

    assert isinstance(action, Convert)
    assert action.converter is ToolId.CONVERT
    assert action.dest == Path("photo.png")
    assert action.args == ("-resize", "16%")


def test_vector_images_ignore_raster_scale() -> None:
    router = ImageRouter(_tools(), raster_scale=16)

    assert isinstance(router.route(_record("plot.pdf"), Renderer.PDF), CopyVerbatim)
    assert isinstance(router.route(_record("plot.eps"), Renderer.DVI), CopyVerbatim)


def test_eps_to_pdf_uses_ps2pdf_not_generic_converter() -> None:
    router = ImageRouter(_tools())

    action = router.route(_record("figures/plot.eps"), Renderer.PDF)

    assert isinstance(action, Convert)
    assert action.converter is ToolId.PS2PDF
    assert action.args == ("-dEPSCrop",)
    assert action.dest == Path("figures/plot.pdf")


def test_eps_to_pdf_without_ps2pdf_is_fatal() -> None:
    router = ImageRouter(_tools("ps2pdf"))

    with pytest.raises(ToolNotFound, match="ps2pdf"):
        router.route(_record("plot.eps"), Renderer.PDF)


def test_pdf_to_eps_prefers_pdftops() -> None:
    router = ImageRouter(_tools())

    action = router.route(_record("plot.pdf"), Renderer.DVI)

    assert isinstance(action, Convert)
    assert action.converter is ToolId.PDFTOPS
    assert action.args == ("-eps",)
    assert action.dest == Path("plot.eps")


def test_pdf_to_eps_falls_back_to_generic_converter_with_warning() -> None:
    emitter = RecordingEmitter()
    router = ImageRouter(_tools("pdftops"), emitter=emitter)

    action = router.route(_record("plot.pdf"), Renderer.DVI)

    assert isinstance(action, Convert)
    assert action.converter is ToolId.CONVERT
    assert action.args == ()
    assert emitter.warnings


@pytest.mark.parametrize(
    ("path", "renderer", "dest", "args"),
    [
        ("diagram.svg", Renderer.PDF, "diagram.pdf", ()),
        ("diagram.svg", Renderer.DVI, "diagram.eps", ()),
        ("scan.tiff", Renderer.PDF, "scan.png", ("-resize", "100%")),
        ("scan.gif", Renderer.DVI, "scan.eps", ("-resize", "100%")),
        ("photo.jpg", Renderer.DVI, "photo.eps", ("-resize", "100%")),
    ],
)
def test_other_formats_use_generic_converter(
    path: str, renderer: Renderer, dest: str, args: tuple[str, ...]
) -> None:
    action = ImageRouter(_tools()).route(_record(path), renderer)

    assert isinstance(action, Convert)
    assert action.converter is ToolId.CONVERT
    assert action.dest == Path(dest)
    assert action.args == args


def test_missing_generic_converter_is_fatal_only_when_needed() -> None:
    router = ImageRouter(_tools("convert", "magick"))

    assert isinstance(router.route(_record("photo.png"), Renderer.PDF), CopyVerbatim)
    with pytest.raises(ToolNotFound):
        router.route(_record("diagram.svg"), Renderer.PDF)


def test_sibling_in_accepted_family_skips_conversion() -> None:
    router = ImageRouter(_tools())
    png = _record("fig.png")
    eps = _record("fig.eps")

    assert isinstance(router.route(png, Renderer.DVI, [png, eps]), Skip)
    assert isinstance(router.route(eps, Renderer.PDF, [png, eps]), Skip)
    assert isinstance(router.route(png, Renderer.PDF, [png, eps]), CopyVerbatim)


def test_classify_extension() -> None:
    assert classify_extension(".EPS") is FormatFamily.DVI_VECTOR
    assert classify_extension("jpeg") is FormatFamily.PDF_RASTER
    assert classify_extension(".bmp3") is FormatFamily.OTHER_RASTER
    assert classify_extension(".txt") is None
    assert ImageRecord.from_path("notes.txt") is None


def test_discover_images_scans_directories_and_warns(tmp_path: Path) -> None:
    figures = tmp_path / "figures"
    figures.mkdir()
    for name in ("b.png", "a.eps", "readme.txt"):
        (figures / name).write_text("", encoding="utf-8")
    (figures / "nested").mkdir()
    (tmp_path / "logo.svg").write_text("", encoding="utf-8")
    (tmp_path / "data.csv").write_text("", encoding="utf-8")
    emitter = RecordingEmitter()

    records = discover_images(
        ["figures", "logo.svg", "data.csv", "missing.png", "figures/a.eps"],
        tmp_path,
        emitter=emitter,
    )

    assert [record.source_path for record in records] == [
        Path("figures/a.eps"),
        Path("figures/b.png"),
        Path("logo.svg"),
    ]
    assert len(emitter.warnings) == 2


def test_converter_argv_places_imagemagick_operators_after_input() -> None:
    tools = _tools()
    convert = Convert(Path("a.gif"), Path("a.png"), ToolId.CONVERT, ("-resize", "16%"))
    ps2pdf = Convert(Path("a.eps"), Path("a.pdf"), ToolId.PS2PDF, ("-dEPSCrop",))

    assert converter_argv(
        tools.require(ToolId.CONVERT), convert, Path("/src/a.gif"), Path("/out/a.png")
    ) == ("/usr/bin/convert", "/src/a.gif", "-resize", "16%", "/out/a.png")
    argv = converter_argv(
        tools.require(ToolId.PS2PDF), ps2pdf, Path("/src/a.eps"), Path("/out/a.pdf")
    )
    assert argv[0] == "/usr/bin/ps2pdf"
    assert argv[-3:] == ("-dEPSCrop", "/src/a.eps", "/out/a.pdf")


def test_plan_images_resolves_paths_and_drops_skipped(tmp_path: Path) -> None:
    source_dir = tmp_path / "src"
    output_dir = tmp_path / "out"
    tools = _tools()
    records = [_record("figures/fig.png"), _record("figures/fig.eps"), _record("chart.svg")]
    router = ImageRouter(tools)

    rules = plan_images(
        records,
        Renderer.PDF,
        router,
        source_dir=source_dir,
        output_dir=output_dir,
        tools=tools,
    )

    assert [(rule.source, rule.output) for rule in rules] == [
        (source_dir / "figures/fig.png", output_dir / "figures/fig.png"),
        (source_dir / "chart.svg", output_dir / "chart.pdf"),
    ]
    assert rules[0].is_copy and rules[0].argv == ()
    assert rules[1].argv == (
        "/usr/bin/convert",
        str(source_dir / "chart.svg"),
        str(output_dir / "chart.pdf"),
    )


def test_plan_images_keeps_one_rule_per_output(tmp_path: Path) -> None:
    tools = _tools()
    emitter = RecordingEmitter()

    rules = plan_images(
        [_record("plot.gif"), _record("plot.png")],
        Renderer.DVI,
        ImageRouter(tools),
        source_dir=tmp_path / "src",
        output_dir=tmp_path / "out",
        tools=tools,
        emitter=emitter,
    )

    assert [rule.source.name for rule in rules] == ["plot.gif"]
    assert rules[0].output == tmp_path / "out" / "plot.eps"
    assert len(emitter.warnings) == 1
    assert "ignoring plot.png" in emitter.warnings[0]


def test_plan_images_ties_raster_rules_to_the_scale(tmp_path: Path) -> None:
    tools = _tools()
    output_dir = tmp_path / "out"

    rules = plan_images(
        [_record("photo.png"), _record("chart.svg")],
        Renderer.PDF,
        ImageRouter(tools, raster_scale=16),
        source_dir=tmp_path / "src",
        output_dir=output_dir,
        tools=tools,
    )

    photo, chart = rules
    assert photo.stamp == output_dir / rescale_stamp_name(16)
    assert photo.dependencies == (tmp_path / "src" / "photo.png", photo.stamp)
    assert chart.stamp is None
    assert chart.dependencies == (tmp_path / "src" / "chart.svg",)
