"""Export build graphs as a GNU Makefile.

The Makefile runs the same commands as :class:`~texmake.adapters.execution.Executor`.
Post-processing drivers call back into ``texmake driver <kind>``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
import shlex

from jinja2 import Environment, FileSystemLoader

from texmake.core.graph import BuildGraph, BuildTarget, DriverStep, RemoveStep, Step, ToolStep
from texmake.core.images import RESCALE_STAMP_PREFIX, ImageRule
from texmake.core.staging import StagedFile, StageMode
from texmake.version import get_version

from .drivers import driver_command


TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
TEMPLATE_NAME = "Makefile.j2"


def make_escape(text: str) -> str:
    """Escape ``$`` so make passes it through to the shell."""
    return text.replace("$", "$$")


def make_path(path: Path | str) -> str:
    """Render a path usable as a make target or prerequisite."""
    return make_escape(str(path)).replace(" ", "\\ ")


def shell_line(argv: Sequence[str]) -> str:
    return make_escape(shlex.join(str(token) for token in argv))


@dataclass(slots=True)
class MakeRule:
    """One Makefile rule."""

    target: str
    prerequisites: list[str] = field(default_factory=list)
    recipe: list[str] = field(default_factory=list)
    order_only: list[str] = field(default_factory=list)
    comment: str | None = None

    @property
    def header(self) -> str:
        parts = [f"{self.target}:"]
        parts.extend(self.prerequisites)
        if self.order_only:
            parts.append("|")
            parts.extend(self.order_only)
        return " ".join(parts)

    @property
    def lines(self) -> list[str]:
        return [f"\t{line}" for line in self.recipe]


class MakefileExporter:
    """Render one Makefile covering every document graph of a project."""

    def __init__(
        self,
        program: Sequence[str] = ("texmake",),
        *,
        template_dir: Path = TEMPLATE_DIR,
    ) -> None:
        self.program = tuple(program)
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def render(self, graphs: Sequence[BuildGraph]) -> str:
        rules: list[MakeRule] = []
        phony: list[str] = ["all", "FORCE"]
        defaults: list[str] = []
        seen: set[str] = set()

        def add(rule: MakeRule) -> None:
            # Documents may share support files and images.
            if rule.target in seen:
                return
            seen.add(rule.target)
            rules.append(rule)

        for graph in graphs:
            for rule in self._graph_rules(graph, phony):
                add(rule)
            default = graph.default_target
            if default is not None:
                defaults.append(default.name)

        all_rule = MakeRule("all", prerequisites=defaults)
        template = self.env.get_template(TEMPLATE_NAME)
        return template.render(
            version=get_version(),
            phony=list(dict.fromkeys(phony)),
            all_rule=all_rule.header,
            rules=[
                {"comment": rule.comment, "header": rule.header, "recipe": rule.lines}
                for rule in rules
            ],
        )

    def write(self, graphs: Sequence[BuildGraph], destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(self.render(graphs), encoding="utf-8")
        return destination

    def _graph_rules(self, graph: BuildGraph, phony: list[str]) -> list[MakeRule]:
        rules: list[MakeRule] = []
        outdir = graph.environment.output_dir
        support = [make_path(item.destination) for item in graph.staging.support_files]

        for item in (*graph.staging.files, *graph.staging.support_files):
            rule = self._staging_rule(item)
            if rule is not None:
                rules.append(rule)

        for renderer, image_rules in graph.images.items():
            aggregate = graph.image_target_name(renderer)
            phony.append(aggregate)
            rules.append(
                MakeRule(
                    aggregate,
                    prerequisites=[make_path(rule.output) for rule in image_rules],
                    comment=f"images for the {renderer.value} renderer",
                )
            )
            for stamp in dict.fromkeys(rule.stamp for rule in image_rules if rule.stamp):
                rules.append(self._stamp_rule(stamp))
            rules.extend(self._image_rule(rule, outdir) for rule in image_rules)

        for target in graph.targets.values():
            rules.extend(self._target_rules(target, outdir, support, phony))
        return rules

    def _staging_rule(self, item: StagedFile) -> MakeRule | None:
        if item.mode is StageMode.COPY:
            recipe = [
                shell_line(["mkdir", "-p", str(item.destination.parent)]),
                shell_line(["cp", "-p", str(item.source), str(item.destination)]),
            ]
        elif item.mode is StageMode.CONFIGURE:
            recipe = [shell_line([*self.program, "stage"])]
        else:
            return None
        return MakeRule(
            make_path(item.destination),
            prerequisites=[make_path(item.source)],
            recipe=recipe,
        )

    def _stamp_rule(self, stamp: Path) -> MakeRule:
        recipe = [
            shell_line(["mkdir", "-p", str(stamp.parent)]),
            f"cd {shell_line([str(stamp.parent)])} && rm -f {RESCALE_STAMP_PREFIX}*",
            f"echo Built > {shell_line([str(stamp)])}",
        ]
        return MakeRule(
            make_path(stamp),
            recipe=recipe,
            comment="raster images are rebuilt when the scale changes",
        )

    def _image_rule(self, rule: ImageRule, outdir: Path) -> MakeRule:
        recipe = [shell_line(["mkdir", "-p", str(rule.output.parent)])]
        if rule.is_copy:
            # Keeping the source mtime would leave the copy older than the stamp.
            flags = ["-p"] if rule.stamp is None else []
            recipe.append(shell_line(["cp", *flags, str(rule.source), str(rule.output)]))
        else:
            recipe.append(f"cd {shell_line([str(outdir)])} && {shell_line(rule.argv)}")
        return MakeRule(
            make_path(rule.output),
            prerequisites=[make_path(path) for path in rule.dependencies],
            recipe=recipe,
        )

    def _recipe(self, step: Step, outdir: Path) -> str:
        if isinstance(step, ToolStep):
            return f"cd {shell_line([str(outdir)])} && {shell_line(step.argv)}"
        if isinstance(step, DriverStep):
            return shell_line(driver_command(self.program, step.invocation))
        if isinstance(step, RemoveStep):
            return shell_line(["rm", "-f", *(str(path) for path in step.paths)])
        raise TypeError(f"Unsupported build step: {step!r}")  # pragma: no cover

    def _target_rules(
        self,
        target: BuildTarget,
        outdir: Path,
        support: list[str],
        phony: list[str],
    ) -> list[MakeRule]:
        phony.append(target.name)
        recipe = [self._recipe(step, outdir) for step in target.commands]
        prerequisites = [make_path(path) for path in target.dependencies]
        order_only = support if target.renderer is not None else []

        if target.output is None or target.always_rebuild:
            if target.always_rebuild and target.output is not None:
                prerequisites.append("FORCE")
            return [
                MakeRule(
                    target.name,
                    prerequisites=prerequisites,
                    recipe=recipe,
                    order_only=order_only,
                    comment=f"{target.kind.value} target",
                )
            ]

        output = make_path(target.output)
        return [
            MakeRule(
                target.name,
                prerequisites=[output],
                comment=f"{target.kind.value} target",
            ),
            MakeRule(output, prerequisites=prerequisites, recipe=recipe, order_only=order_only),
        ]


__all__ = [
    "TEMPLATE_DIR",
    "MakeRule",
    "MakefileExporter",
    "make_escape",
    "make_path",
    "shell_line",
]
