"""High-level orchestration for page translation."""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol

from bs4 import Tag

from .batching import BatchBuilder
from .collector import collect_text_units
from .configuration import SettingsProvider
from .errors import (
    EmptySelectionError,
    MissingApiKeyError,
    NoTranslatableTextError,
)
from .providers import TranslationProvider, build_provider
from .reconciler import reconcile
from .structures import Configuration, RunSummary

ProgressCallback = Callable[[float], None]


class RunState(Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    TRANSLATING = "translating"
    RECONCILING = "reconciling"


class Selection(Protocol):
    """A span of user-selected text that can be replaced in place."""

    @property
    def text(self) -> str: ...

    def replace(self, new_text: str) -> None: ...


@dataclass
class TextSelection:
    """Selection backed by a plain string, used by the command line."""

    text: str
    replaced_with: Optional[str] = None

    def replace(self, new_text: str) -> None:
        self.replaced_with = new_text


class PageTranslator:
    """Coordinates collection, batching, translation and write-back."""

    def __init__(
        self,
        *,
        settings_provider: SettingsProvider,
        provider: Optional[TranslationProvider] = None,
        progress: Optional[ProgressCallback] = None,
        verbose: bool = False,
    ) -> None:
        self.settings_provider = settings_provider
        self.progress = progress
        self.verbose = verbose
        self.state = RunState.IDLE
        self._provider = provider

    def _provider_for(self, config: Configuration) -> TranslationProvider:
        if self._provider is None:
            self._provider = build_provider(config.provider, debug=config.debug)
        return self._provider

    def _preflight(self, config: Configuration) -> TranslationProvider:
        provider = self._provider_for(config)
        if provider.requires_api_key and not config.api_key:
            raise MissingApiKeyError("Translation cancelled. API Key is required.")
        return provider

    def _report(self, fraction: float) -> None:
        if self.progress is not None:
            self.progress(fraction)

    async def run(self, root: Tag) -> RunSummary:
        """Translate every eligible text node below ``root``.

        The first failed request ends the run; batches after it are left
        untouched and the error propagates to the caller.
        """

        start_time = time.time()
        config = self.settings_provider.current()
        provider = self._preflight(config)

        try:
            self.state = RunState.COLLECTING
            self._report(0.0)
            units = list(collect_text_units(root))
            if not units:
                raise NoTranslatableTextError("No translatable text found on the page.")

            batches = BatchBuilder(
                config.batch_character_limit, config.delimiter
            ).build(units)
            if self.verbose:
                print(f"Prepared {len(units)} text units in {len(batches)} batches.")

            total_units = len(units)
            processed_units = 0
            translated_units = 0
            warnings: List[str] = []

            for batch in batches:
                self.state = RunState.TRANSLATING
                config = dataclasses.replace(
                    self.settings_provider.current(), delimiter=batch.delimiter
                )
                translated = await provider.translate(batch.combined_payload, config)

                self.state = RunState.RECONCILING
                report = reconcile(batch, translated)
                translated_units += report.written
                if report.warning:
                    warnings.append(report.warning)
                    if self.verbose:
                        print(report.warning)
                if self.verbose:
                    print(
                        f"Processed batch {batch.batch_id} "
                        f"({len(batch)} units, {batch.char_count} chars)."
                    )

                processed_units += len(batch)
                self._report(processed_units / total_units)
        finally:
            self.state = RunState.IDLE

        return RunSummary(
            total_units=total_units,
            translated_units=translated_units,
            total_batches=len(batches),
            processed_batches=len(batches),
            provider_name=provider.name,
            model=config.model,
            elapsed_seconds=time.time() - start_time,
            warnings=warnings,
        )

    async def translate_selection(self, selection: Selection) -> str:
        """Translate the selected text as a single segment and replace it."""

        text = selection.text.strip()
        if not text:
            raise EmptySelectionError("Please select some text to translate first.")

        config = self.settings_provider.current()
        provider = self._preflight(config)

        try:
            self.state = RunState.TRANSLATING
            translated = await provider.translate(text, config)
        finally:
            self.state = RunState.IDLE

        selection.replace(translated)
        return translated
