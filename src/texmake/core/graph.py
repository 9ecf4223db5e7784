"""Derivation of the per-target command sequences of a document build.

LaTeX resolves cross-references by re-reading what the previous pass wrote to
its auxiliary files, and the bibliography, index, glossary and nomenclature
processors only run on files a pass produced. Every compiling target therefore
encodes the same fixed sequence:

1. one pass;
2. with glossaries, the glossary driver followed by a pass, twice;
3. with a nomenclature, the nomenclature driver followed by a pass, twice;
4. with bibliography files, one ``bibtex`` run per multibib suffix (or one for
   the target name);
5. with an index, a pass followed by ``makeindex``;
6. two final passes;
7. with synctex, the synctex path correction.

Features compose additively; the order never changes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from slugify import slugify

from texmake.adapters.drivers import (
    DriverInvocation,
    DriverKind,
    GlossaryInvocation,
    NomenclatureInvocation,
    SynctexInvocation,
    describe,
)
from texmake.adapters.tools import Tool, ToolId

from .diagnostics import DiagnosticEmitter, ensure_emitter
from .documents import DefaultTarget, DocumentDescriptor
from .environment import BuildEnvironment
from .exceptions import AmbiguousOutputTarget, ToolNotFound, UnknownTargetError
from .images import ImageRecord, ImageRouter, ImageRule, Renderer, discover_images, plan_images
from .staging import StageMode, StagingPlan, plan_staging


class TargetKind(str, Enum):
    """Build targets offered for every document."""

    DVI = "dvi"
    PDF = "pdf"
    SAFEPDF = "safepdf"
    PS = "ps"
    HTML = "html"
    AUXCLEAN = "auxclean"


AUX_SUFFIXES: tuple[str, ...] = (
    ".aux",
    ".bbl",
    ".blg",
    "-blx.bib",
    ".idx",
    ".ind",
    ".ilg",
    ".ist",
    ".xdy",
    ".glo",
    ".gls",
    ".glg",
    ".acn",
    ".acr",
    ".alg",
    ".nlo",
    ".nls",
    ".toc",
    ".lof",
    ".lot",
    ".out",
    ".log",
    ".synctex.gz",
    ".synctex.bak.gz",
)
MULTIBIB_SUFFIXES: tuple[str, ...] = (".aux", ".bbl", ".blg")

_DEFAULT_KINDS: dict[DefaultTarget, TargetKind] = {
    DefaultTarget.DVI: TargetKind.DVI,
    DefaultTarget.PDF: TargetKind.PDF,
    DefaultTarget.SAFEPDF: TargetKind.SAFEPDF,
    DefaultTarget.PS: TargetKind.PS,
}
_DEFAULT_TOOLS: dict[TargetKind, tuple[ToolId, ...]] = {
    TargetKind.PDF: (ToolId.PDFLATEX,),
    TargetKind.PS: (ToolId.DVIPS,),
    TargetKind.SAFEPDF: (ToolId.DVIPS, ToolId.PS2PDF),
}


@dataclass(frozen=True, slots=True)
class ToolStep:
    """Run an external tool in the output directory."""

    tool: ToolId
    argv: tuple[str, ...]

    @property
    def label(self) -> str:
        return self.tool.value


@dataclass(frozen=True, slots=True)
class DriverStep:
    """Run a post-processing driver."""

    invocation: DriverInvocation

    @property
    def kind(self) -> DriverKind:
        return self.invocation.kind

    @property
    def label(self) -> str:
        return describe(self.invocation)


@dataclass(frozen=True, slots=True)
class RemoveStep:
    """Delete files; absent files are ignored."""

    paths: tuple[Path, ...]

    @property
    def label(self) -> str:
        return f"remove {len(self.paths)} auxiliary files"


Step = ToolStep | DriverStep | RemoveStep


@dataclass(frozen=True, slots=True)
class BuildTarget:
    """Ordered commands, file dependencies and output of one target."""

    kind: TargetKind
    name: str
    commands: tuple[Step, ...]
    dependencies: tuple[Path, ...] = ()
    requires: tuple[TargetKind, ...] = ()
    output: Path | None = None
    renderer: Renderer | None = None
    default: bool = False
    always_rebuild: bool = False

    def tool_steps(self, tool: ToolId) -> list[ToolStep]:
        return [step for step in self.commands if isinstance(step, ToolStep) and step.tool is tool]

    def driver_steps(self, kind: DriverKind) -> list[DriverStep]:
        return [step for step in self.commands if isinstance(step, DriverStep) and step.kind is kind]


@dataclass(frozen=True, slots=True)
class BuildGraph:
    """Every target derived for one document."""

    document: DocumentDescriptor
    environment: BuildEnvironment
    targets: Mapping[TargetKind, BuildTarget]
    images: Mapping[Renderer, tuple[ImageRule, ...]] = field(default_factory=dict)
    staging: StagingPlan = field(default_factory=lambda: StagingPlan(files=()))

    def target(self, kind: TargetKind | str) -> BuildTarget:
        """Return a target by kind or aggregate name."""
        for candidate in self.targets.values():
            if candidate.name == kind:
                return candidate
        try:
            key = TargetKind(kind)
        except ValueError:
            key = None
        if key is None or key not in self.targets:
            label = kind.value if isinstance(kind, TargetKind) else kind
            available = ", ".join(target.name for target in self.targets.values())
            raise UnknownTargetError(f"Unknown target '{label}' (available: {available}).")
        return self.targets[key]

    @property
    def default_target(self) -> BuildTarget | None:
        for candidate in self.targets.values():
            if candidate.default:
                return candidate
        return None

    def image_rules(self, renderer: Renderer) -> tuple[ImageRule, ...]:
        return tuple(self.images.get(Renderer(renderer), ()))

    def image_target_name(self, renderer: Renderer) -> str:
        return _aggregate_name(self.document, f"images_{Renderer(renderer).value}")

    def build_order(self, kind: TargetKind | str) -> list[BuildTarget]:
        """Return ``kind`` preceded by every target it requires."""
        ordered: list[BuildTarget] = []
        seen: set[TargetKind] = set()

        def _visit(target: BuildTarget) -> None:
            if target.kind in seen:
                return
            seen.add(target.kind)
            for requirement in target.requires:
                _visit(self.target(requirement))
            ordered.append(target)

        _visit(self.target(kind))
        return ordered


def _aggregate_name(document: DocumentDescriptor, suffix: str) -> str:
    if not document.features.mangle_target_names:
        return suffix
    prefix = slugify(document.target_name, separator="_", lowercase=False)
    return f"{prefix or 'document'}_{suffix}"


def _unique(paths: Iterable[Path]) -> tuple[Path, ...]:
    return tuple(dict.fromkeys(paths))


class GraphBuilder:
    """Assemble the :class:`BuildGraph` of a document."""

    def __init__(
        self,
        environment: BuildEnvironment,
        *,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self._environment = environment
        self._emitter = ensure_emitter(emitter)

    @property
    def environment(self) -> BuildEnvironment:
        return self._environment

    def compile_sequence(self, document: DocumentDescriptor, compiler: Tool) -> list[Step]:
        """Return the fixed-point command sequence for ``compiler``."""
        env = self._environment
        tools = env.tools
        features = document.features
        target = document.target_name
        pass_flags = env.synctex_flags if features.use_synctex else ()
        main = document.main_input.as_posix()

        def compile_pass() -> ToolStep:
            return ToolStep(compiler.tool_id, tuple(compiler.argv(*pass_flags, main)))

        steps: list[Step] = [compile_pass()]

        if features.use_glossary:
            xindy = tools.get(ToolId.XINDY)
            glossary = GlossaryInvocation(
                target=target,
                workdir=env.output_dir,
                makeindex=tools.require(ToolId.MAKEINDEX).path,
                flags=env.glossary_flags,
                xindy=xindy.path if xindy is not None else None,
            )
            for _ in range(2):
                steps.extend([DriverStep(glossary), compile_pass()])

        if features.use_nomenclature:
            nomenclature = NomenclatureInvocation(
                target=target,
                workdir=env.output_dir,
                makeindex=tools.require(ToolId.MAKEINDEX).path,
                flags=env.nomenclature_flags,
            )
            for _ in range(2):
                steps.extend([DriverStep(nomenclature), compile_pass()])

        if document.has_bibliography:
            bibtex = tools.require(ToolId.BIBTEX)
            for name in features.multibib_suffixes or (target,):
                steps.append(ToolStep(ToolId.BIBTEX, tuple(bibtex.argv(name))))

        if features.use_index:
            makeindex = tools.require(ToolId.MAKEINDEX)
            steps.append(compile_pass())
            steps.append(ToolStep(ToolId.MAKEINDEX, tuple(makeindex.argv(f"{target}.idx"))))

        steps.extend([compile_pass(), compile_pass()])

        if features.use_synctex:
            steps.append(
                DriverStep(
                    SynctexInvocation(
                        target=target,
                        source_dir=env.source_dir,
                        output_dir=env.output_dir,
                    )
                )
            )
        return steps

    def build(
        self,
        document: DocumentDescriptor,
        *,
        staging: StagingPlan | None = None,
        images: Sequence[ImageRecord] | None = None,
    ) -> BuildGraph:
        """Derive every target of ``document``."""
        env = self._environment
        tools = env.tools
        target = document.target_name
        features = document.features

        if staging is None:
            staging = plan_staging(document, env, emitter=self._emitter)
        if images is None:
            images = discover_images(document.image_sources, env.source_dir, emitter=self._emitter)

        latex = tools.require(ToolId.LATEX)
        pdflatex = tools.get(ToolId.PDFLATEX)
        renderers = [Renderer.DVI] + ([Renderer.PDF] if pdflatex is not None else [])
        router = ImageRouter(tools, raster_scale=env.raster_scale, emitter=self._emitter)
        image_rules = {
            renderer: tuple(
                plan_images(
                    images,
                    renderer,
                    router,
                    source_dir=env.source_dir,
                    output_dir=env.output_dir,
                    tools=tools,
                    emitter=self._emitter,
                )
            )
            for renderer in renderers
        }

        def output(suffix: str) -> Path:
            return env.output_path(f"{target}{suffix}")

        def name(kind: TargetKind) -> str:
            return _aggregate_name(document, kind.value)

        targets: dict[TargetKind, BuildTarget] = {}
        targets[TargetKind.DVI] = BuildTarget(
            kind=TargetKind.DVI,
            name=name(TargetKind.DVI),
            commands=tuple(self.compile_sequence(document, latex)),
            dependencies=self._dependencies(document, staging, image_rules[Renderer.DVI]),
            output=output(".dvi"),
            renderer=Renderer.DVI,
        )

        if pdflatex is not None:
            targets[TargetKind.PDF] = BuildTarget(
                kind=TargetKind.PDF,
                name=name(TargetKind.PDF),
                commands=tuple(self.compile_sequence(document, pdflatex)),
                dependencies=self._dependencies(document, staging, image_rules[Renderer.PDF]),
                output=output(".pdf"),
                renderer=Renderer.PDF,
            )

        dvips = tools.get(ToolId.DVIPS)
        if dvips is not None:
            targets[TargetKind.PS] = BuildTarget(
                kind=TargetKind.PS,
                name=name(TargetKind.PS),
                commands=(
                    ToolStep(ToolId.DVIPS, tuple(dvips.argv("-o", f"{target}.ps", f"{target}.dvi"))),
                ),
                dependencies=(output(".dvi"),),
                requires=(TargetKind.DVI,),
                output=output(".ps"),
            )
            ps2pdf = tools.get(ToolId.PS2PDF)
            if ps2pdf is not None:
                # Without a distinct name safepdf and pdf share <target>.pdf, so
                # timestamps cannot tell which of them produced it.
                safe_suffix = ".safe.pdf" if features.distinct_safepdf else ".pdf"
                targets[TargetKind.SAFEPDF] = BuildTarget(
                    kind=TargetKind.SAFEPDF,
                    name=name(TargetKind.SAFEPDF),
                    commands=(
                        ToolStep(
                            ToolId.PS2PDF,
                            tuple(ps2pdf.argv(f"{target}.ps", f"{target}{safe_suffix}")),
                        ),
                    ),
                    dependencies=(output(".ps"),),
                    requires=(TargetKind.PS,),
                    output=output(safe_suffix),
                    always_rebuild=not features.distinct_safepdf,
                )

        html = self._html_target(document, staging, name(TargetKind.HTML), output(".dvi"))
        if html is not None:
            targets[TargetKind.HTML] = html

        targets[TargetKind.AUXCLEAN] = BuildTarget(
            kind=TargetKind.AUXCLEAN,
            name=name(TargetKind.AUXCLEAN),
            commands=(RemoveStep(self.cleanup_files(document)),),
            always_rebuild=True,
        )

        default_kind = _DEFAULT_KINDS.get(features.default_target)
        if default_kind is not None:
            if default_kind not in targets:
                missing = [
                    tool.value
                    for tool in _DEFAULT_TOOLS.get(default_kind, ())
                    if tool not in tools
                ]
                raise ToolNotFound(
                    ", ".join(missing) or default_kind.value,
                    f"It is needed by the default target '{default_kind.value}'.",
                )
            chosen = targets[default_kind]
            targets[default_kind] = BuildTarget(
                kind=chosen.kind,
                name=chosen.name,
                commands=chosen.commands,
                dependencies=chosen.dependencies,
                requires=chosen.requires,
                output=chosen.output,
                renderer=chosen.renderer,
                default=True,
                always_rebuild=chosen.always_rebuild,
            )

        return BuildGraph(
            document=document,
            environment=env,
            targets=targets,
            images=image_rules,
            staging=staging,
        )

    def cleanup_files(self, document: DocumentDescriptor) -> tuple[Path, ...]:
        """Every auxiliary file the build might have written."""
        env = self._environment
        target = document.target_name
        paths = [env.output_path(f"{target}{suffix}") for suffix in AUX_SUFFIXES]
        for name in document.features.multibib_suffixes:
            paths.extend(env.output_path(f"{name}{suffix}") for suffix in MULTIBIB_SUFFIXES)
        for path in document.inputs:
            paths.append(env.output_path(path.with_suffix(".aux")))
        return _unique(paths)

    def _dependencies(
        self,
        document: DocumentDescriptor,
        staging: StagingPlan,
        images: Sequence[ImageRule],
    ) -> tuple[Path, ...]:
        env = self._environment
        paths: list[Path] = [env.source_path(path) for path in document.extra_dependencies]
        paths.extend(rule.output for rule in images)
        staged = [*document.staged_inputs]
        if document.has_bibliography:
            staged.extend(document.bibliography_files)
        for relative in staged:
            item = next((entry for entry in staging.files if entry.relative == relative), None)
            if item is not None and item.mode is not StageMode.MISSING:
                paths.append(item.destination)
        if document.features.use_index:
            paths.append(env.tools.require(ToolId.MAKEINDEX).path)
        return _unique(paths)

    def _html_target(
        self,
        document: DocumentDescriptor,
        staging: StagingPlan,
        name: str,
        dvi_output: Path,
    ) -> BuildTarget | None:
        env = self._environment
        preferred = ToolId(env.html_converter)
        fallback = ToolId.HTLATEX if preferred is ToolId.LATEX2HTML else ToolId.LATEX2HTML
        converter = env.tools.get(preferred) or env.tools.get(fallback)
        if converter is None:
            return None

        target = document.target_name
        if converter.tool_id is ToolId.LATEX2HTML:
            html_output = env.output_path(Path(target) / f"{target}.html")
        else:
            html_output = env.output_path(f"{target}.html")
        main = staging.destination(document.main_input) or env.output_path(document.main_input)
        return BuildTarget(
            kind=TargetKind.HTML,
            name=name,
            commands=(
                ToolStep(converter.tool_id, tuple(converter.argv(document.main_input.as_posix()))),
            ),
            dependencies=_unique([dvi_output, main]),
            requires=(TargetKind.DVI,),
            output=html_output,
        )


def build_project(
    documents: Sequence[DocumentDescriptor],
    environment: BuildEnvironment,
    *,
    emitter: DiagnosticEmitter | None = None,
) -> list[BuildGraph]:
    """Build the graph of every document sharing ``environment``."""
    owners: dict[str, DocumentDescriptor] = {}
    for document in documents:
        previous = owners.get(document.target_name)
        if previous is not None:
            raise AmbiguousOutputTarget(
                f"Documents {previous.main_input} and {document.main_input} would both "
                f"write {document.target_name}.* into {environment.output_dir}."
            )
        owners[document.target_name] = document

    builder = GraphBuilder(environment, emitter=emitter)
    graphs = [builder.build(document) for document in documents]

    names: dict[str, Path] = {}
    for graph in graphs:
        for target in graph.targets.values():
            if target.name in names:
                raise AmbiguousOutputTarget(
                    f"Target name '{target.name}' is used by {names[target.name]} and "
                    f"{graph.document.main_input}; enable mangle_target_names."
                )
            names[target.name] = graph.document.main_input
    return graphs


__all__ = [
    "AUX_SUFFIXES",
    "MULTIBIB_SUFFIXES",
    "BuildGraph",
    "BuildTarget",
    "DriverStep",
    "GraphBuilder",
    "RemoveStep",
    "Step",
    "TargetKind",
    "ToolStep",
    "build_project",
]
