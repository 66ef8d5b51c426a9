"""Report rendering helpers using Jinja2 templates."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


def _money(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"${value:,.2f}"


def _pct(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.1f}%"


@dataclass
class ReportRenderer:
    """Render reports from structured workflow outputs."""

    template_dir: Path = TEMPLATE_DIR
    template_name: str = "valuation_report.md.j2"

    def __post_init__(self) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._env.filters["money"] = _money
        self._env.filters["pct"] = _pct

    def render(self, context: Dict[str, Any]) -> str:
        """Render the configured template with supplied context."""
        return self.render_template(self.template_name, context)

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        template = self._env.get_template(template_name)
        return template.render(**context)
