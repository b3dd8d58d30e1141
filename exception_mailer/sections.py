from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .models import ErrorEvent, RequestContext, SectionBundle
from .options import DATA_KEY, NotifierOptions

logger = logging.getLogger(__name__)

SectionStrategy = Callable[[ErrorEvent, Optional[RequestContext]], Any]


class ExtractionError(Exception):
    """Raised when a section strategy fails."""


def clean_backtrace(frames: Iterable[str], root: Optional[str] = None) -> List[str]:
    """Strip blank frames and the application root from backtrace lines."""
    cleaned: List[str] = []
    prefix = root.rstrip("/") + "/" if root else None
    for frame in frames:
        line = (frame or "").strip()
        if not line:
            continue
        if prefix and line.startswith(prefix):
            line = line[len(prefix):]
        cleaned.append(line)
    return cleaned


def merge_data(
    ambient: Optional[Mapping[str, Any]], explicit: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for source in (ambient, explicit):
        if source is None:
            continue
        if not isinstance(source, Mapping):
            logger.warning("Ignoring non-mapping exception data: %r", source)
            continue
        merged.update(source)
    return merged


def _request(event: ErrorEvent, context: Optional[RequestContext]) -> Any:
    return dict(context.request) if context is not None else None


def _session(event: ErrorEvent, context: Optional[RequestContext]) -> Any:
    return dict(context.session) if context is not None else None


def _environment(event: ErrorEvent, context: Optional[RequestContext]) -> Any:
    return dict(context.environment) if context is not None else None


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, set, frozenset, Mapping)):
        return len(value) == 0
    return False


class ContextExtractor:
    """Collects the configured diagnostic sections for one notification.

    Section values come from a registry of strategies keyed by section name.
    ``data`` is built in: it merges the context's ambient data with call-time
    data and is included whenever the result is non-empty, whether or not it
    is listed in the configured sections.
    """

    def __init__(
        self,
        strategies: Optional[Mapping[str, SectionStrategy]] = None,
        *,
        backtrace_root: Optional[str] = None,
    ):
        self._backtrace_root = backtrace_root
        self._strategies: Dict[str, SectionStrategy] = {
            "request": _request,
            "session": _session,
            "environment": _environment,
            "backtrace": self._backtrace,
        }
        self._strategies.update(strategies or {})

    def register(self, name: str, strategy: SectionStrategy) -> None:
        if name == DATA_KEY:
            raise ValueError("The data section is built in and cannot be replaced.")
        self._strategies[name] = strategy

    def sections_for(
        self, options: NotifierOptions, background: bool, data: Mapping[str, Any]
    ) -> Tuple[str, ...]:
        names = options.background_sections if background else options.sections
        if data and DATA_KEY not in names:
            names = tuple(names) + (DATA_KEY,)
        return tuple(names)

    def extract(
        self,
        event: ErrorEvent,
        context: Optional[RequestContext],
        options: NotifierOptions,
        background: bool,
        data: Optional[Mapping[str, Any]] = None,
    ) -> SectionBundle:
        ambient = context.data if context is not None else None
        merged_data = merge_data(ambient, data)

        bundle: SectionBundle = {}
        for name in self.sections_for(options, background, merged_data):
            if name in bundle:
                continue
            if name == DATA_KEY:
                value: Any = merged_data
            else:
                strategy = self._strategies.get(name)
                if strategy is None:
                    logger.warning("No strategy registered for section %r; skipping", name)
                    continue
                try:
                    value = self._run(name, strategy, event, context)
                except ExtractionError as exc:
                    logger.warning("Dropping section %r: %s", name, exc.__cause__ or exc)
                    continue
            if _is_empty(value):
                continue
            bundle[name] = value
        return bundle

    def _run(
        self,
        name: str,
        strategy: SectionStrategy,
        event: ErrorEvent,
        context: Optional[RequestContext],
    ) -> Any:
        try:
            return strategy(event, context)
        except Exception as exc:  # noqa: BLE001
            raise ExtractionError(f"Section {name!r} failed: {exc}") from exc

    def _backtrace(self, event: ErrorEvent, context: Optional[RequestContext]) -> List[str]:
        return clean_backtrace(event.backtrace, root=self._backtrace_root)
