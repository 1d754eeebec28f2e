"""Renderer registry and built-in renderers.

Renderers are selected by a static `renderer_kind` tag carried on each
`RenderingMode`; the registry is assembled once at bootstrap.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any, Final

from report_runner.domain import RenderError, RenderingMode, domain_encode_report_data

from .interfaces import ReportRendererPort

RAW_RENDERER_KIND: Final[str] = "raw"
JSON_RENDERER_KIND: Final[str] = "json"


class RawPassthroughRenderer(ReportRendererPort):
    """Renderer for web/no-render modes; the execution engine skips it for raw modes."""

    def renderer_kind(self) -> str:
        return RAW_RENDERER_KIND

    def renderer_rendering_modes(self) -> tuple[RenderingMode, ...]:
        return (RenderingMode(renderer_kind=RAW_RENDERER_KIND, label="Raw data", raw=True),)

    def renderer_render(self, rendering_mode: RenderingMode, data: Any) -> bytes:
        """Return canonical data encoding.

        Args:
            rendering_mode: Selected mode.
            data: Evaluated data set.

        Returns:
            bytes: Canonical JSON bytes of `data`.

        Raises:
            RenderError: Raised when data is not JSON-serializable.
        """

        try:
            return domain_encode_report_data(data)
        except (TypeError, ValueError) as error:
            raise RenderError(f"data is not serializable: {error}", error_code="RENDER_DATA_ERROR") from error


class JsonReportRenderer(ReportRendererPort):
    """Render data sets as UTF-8 JSON documents.

    The mode `argument` selects `compact` (default) or `pretty` output.
    """

    _SUPPORTED_ARGUMENTS: Final[frozenset[str]] = frozenset({"", "compact", "pretty"})

    def renderer_kind(self) -> str:
        return JSON_RENDERER_KIND

    def renderer_rendering_modes(self) -> tuple[RenderingMode, ...]:
        return (
            RenderingMode(renderer_kind=JSON_RENDERER_KIND, label="JSON", argument="compact"),
            RenderingMode(renderer_kind=JSON_RENDERER_KIND, label="JSON (indented)", argument="pretty"),
        )

    def renderer_render(self, rendering_mode: RenderingMode, data: Any) -> bytes:
        """Render one data set as JSON.

        Args:
            rendering_mode: Selected mode.
            data: Evaluated data set.

        Returns:
            bytes: UTF-8 JSON bytes.

        Raises:
            RenderError: Raised when the argument is unsupported or data is not serializable.
        """

        argument = rendering_mode.argument.strip().lower()
        if argument not in self._SUPPORTED_ARGUMENTS:
            raise RenderError(
                f"unsupported json rendering argument={rendering_mode.argument!r}",
                error_code="RENDER_MODE_REJECTED",
            )

        try:
            if argument == "pretty":
                rendered_text = json.dumps(data, sort_keys=True, indent=2, ensure_ascii=False)
            else:
                rendered_text = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as error:
            raise RenderError(f"data is not serializable: {error}", error_code="RENDER_DATA_ERROR") from error
        return rendered_text.encode("utf-8")


class ReportRendererRegistry:
    """Static mapping from renderer kind tag to renderer implementation."""

    def __init__(self, renderers: Iterable[ReportRendererPort]):
        """Initialize registry.

        Args:
            renderers: Renderer implementations to register.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when two renderers share one kind tag.
        """

        self._renderers: dict[str, ReportRendererPort] = {}
        for renderer in renderers:
            renderer_kind = renderer.renderer_kind()
            if renderer_kind in self._renderers:
                raise ValueError(f"duplicate renderer kind={renderer_kind}")
            self._renderers[renderer_kind] = renderer

    def registry_get(self, renderer_kind: str) -> ReportRendererPort:
        """Return renderer registered for one kind tag.

        Args:
            renderer_kind: Renderer kind tag.

        Returns:
            ReportRendererPort: Registered renderer.

        Raises:
            RenderError: Raised when no renderer is registered for the tag.
        """

        renderer = self._renderers.get(renderer_kind)
        if renderer is None:
            raise RenderError(f"unknown renderer kind={renderer_kind}", error_code="RENDER_UNKNOWN_KIND")
        return renderer

    def registry_kinds(self) -> tuple[str, ...]:
        return tuple(sorted(self._renderers))

    def registry_rendering_modes(self) -> list[RenderingMode]:
        """Return every rendering mode offered by registered renderers, ordered by kind."""

        rendering_modes: list[RenderingMode] = []
        for renderer_kind in self.registry_kinds():
            rendering_modes.extend(self._renderers[renderer_kind].renderer_rendering_modes())
        return rendering_modes


def registry_create_default_renderers() -> ReportRendererRegistry:
    """Build registry holding the built-in renderers."""

    return ReportRendererRegistry([RawPassthroughRenderer(), JsonReportRenderer()])
