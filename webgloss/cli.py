"""Command line interface for the webgloss page translator."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import pathlib
import sys
from typing import Callable, Iterable, Optional
from urllib.parse import urlparse

from .collector import load_page
from .configuration import SettingsProvider, get_settings
from .errors import (
    OverwriteRefusedError,
    PreflightError,
    TranslationError,
    TranslationProviderConfigurationError,
    WebglossError,
)
from .settings_store import (
    MODEL_KEY,
    SettingsStore,
    choose_model,
    ensure_api_key,
    reset_api_key,
)
from .structures import AVAILABLE_MODELS, DEFAULT_MODEL, RunSummary
from .translator import PageTranslator, ProgressCallback, TextSelection

KeyPrompt = Callable[[], Optional[str]]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webgloss",
        description="Translate the text of an HTML page into English with an LLM.",
    )
    parser.add_argument(
        "input_file",
        nargs="?",
        help="Path or http(s) URL of the HTML page to translate.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to <name>_en.html next to the input.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier (gemini, openai or echo).",
    )
    parser.add_argument(
        "-b",
        "--batch-limit",
        type=int,
        help="Maximum characters per translation batch (default: 15000).",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-s",
        "--selection",
        metavar="TEXT",
        help="Translate the given text instead of a page ('-' reads stdin).",
    )
    parser.add_argument(
        "--set-api-key",
        action="store_true",
        help="Forget the stored Gemini API key and enter a new one.",
    )
    parser.add_argument(
        "--configure",
        nargs="?",
        const="",
        metavar="MODEL",
        help="Choose the translation model; lists the models when none is given.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    parser.add_argument(
        "--gui",
        action="store_true",
        help="Launch the graphical interface.",
    )
    return parser


def prompt_api_key() -> Optional[str]:
    return getpass.getpass("Please enter your Google Gemini API Key: ")


def print_progress(fraction: float) -> None:
    print(f"Translating... ({round(fraction * 100)}%)")


def is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def derive_output_path(location: str) -> pathlib.Path:
    """Default output path: ``<stem>_en.html`` beside the input."""

    if is_url(location):
        name = pathlib.PurePosixPath(urlparse(location).path).name
        stem = pathlib.PurePosixPath(name).stem or "page"
        return pathlib.Path.cwd() / f"{stem}_en.html"
    input_path = pathlib.Path(location).expanduser().resolve()
    suffix = input_path.suffix or ".html"
    return input_path.with_name(f"{input_path.stem}_en{suffix}")


def validate_paths(
    location: str,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not is_url(location):
        input_path = pathlib.Path(location).expanduser()
        if not input_path.exists():
            raise FileNotFoundError(
                "Input file not found. Please provide a readable HTML file or URL."
            )
        if not input_path.is_file():
            raise WebglossError("Input path must be a file.")
        if input_path.resolve() == output_path.resolve():
            raise OverwriteRefusedError(
                "The output path matches the input page. Refusing to overwrite the source file."
            )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )


def _ensure_key(settings_provider: SettingsProvider, key_prompt: KeyPrompt) -> None:
    if settings_provider.provider_name != "gemini":
        return
    if settings_provider.current().api_key:
        return
    ensure_api_key(settings_provider.store, key_prompt)
    print("API Key saved. You can now use the translation commands.")


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    provider: str | None,
    batch_limit: int | None,
    force_overwrite: bool,
    verbose: bool,
    provider_debug: bool,
    key_prompt: KeyPrompt = prompt_api_key,
    progress: ProgressCallback | None = print_progress,
    settings_provider: SettingsProvider | None = None,
) -> tuple[int, RunSummary | None, str | None]:
    """Translate a page and return the exit code, summary, and message."""

    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_file)
    )

    try:
        validate_paths(input_file, output_path, force_overwrite=force_overwrite)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except WebglossError as exc:
        return 1, None, str(exc)

    settings_provider = settings_provider or SettingsProvider(
        provider=provider,
        batch_limit=batch_limit,
        debug=provider_debug or None,
    )
    translator = PageTranslator(
        settings_provider=settings_provider,
        progress=progress,
        verbose=verbose,
    )

    try:
        _ensure_key(settings_provider, key_prompt)
        page = load_page(input_file)
        summary = asyncio.run(translator.run(page.root))
        output_path.parent.mkdir(parents=True, exist_ok=True)
        page.save(output_path)
    except PreflightError as exc:
        return 1, None, str(exc)
    except TranslationError as exc:
        return 1, None, f"An error occurred during translation: {exc}"
    except TranslationProviderConfigurationError as exc:
        return 1, None, str(exc)
    except WebglossError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."
    except Exception as exc:  # pragma: no cover - defensive catch
        error_message = (
            f"{exc}\n"
            "An unexpected error occurred. Please rerun with --verbose for more details."
        )
        return 1, None, error_message

    summary.source = input_file
    summary.output = str(output_path)
    return 0, summary, None


def execute_selection(
    *,
    text: str,
    provider: str | None,
    provider_debug: bool,
    key_prompt: KeyPrompt = prompt_api_key,
    settings_provider: SettingsProvider | None = None,
) -> tuple[int, str | None, str | None]:
    """Translate a piece of text and return the exit code, translation, and message."""

    settings_provider = settings_provider or SettingsProvider(
        provider=provider,
        debug=provider_debug or None,
    )
    translator = PageTranslator(settings_provider=settings_provider, progress=None)
    selection = TextSelection(text=text)

    try:
        if text.strip():
            _ensure_key(settings_provider, key_prompt)
        translated = asyncio.run(translator.translate_selection(selection))
    except PreflightError as exc:
        return 1, None, str(exc)
    except TranslationError as exc:
        return 1, None, f"An error occurred during translation: {exc}"
    except WebglossError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    return 0, translated, None


def configure_model(store: SettingsStore, model: str | None) -> tuple[int, str]:
    """Store the chosen model, asking interactively when none is given."""

    if not model:
        current = store.get(MODEL_KEY, DEFAULT_MODEL)
        for index, name in enumerate(AVAILABLE_MODELS, start=1):
            marker = "*" if name == current else " "
            print(f" {marker} {index}. {name}")
        answer = input("Translation model (number or name, blank to keep): ").strip()
        if not answer:
            return 0, f"Translation model unchanged: {current}"
        if answer.isdigit() and 1 <= int(answer) <= len(AVAILABLE_MODELS):
            answer = AVAILABLE_MODELS[int(answer) - 1]
        model = answer

    try:
        chosen = choose_model(store, model)
    except ValueError as exc:
        return 1, str(exc)
    except WebglossError as exc:
        return 1, str(exc)
    return 0, f"Translation model saved: {chosen}"


def print_summary(summary: RunSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Source:          {summary.source}")
    print(f"  Output file:     {summary.output}")
    print(
        "  Text nodes:      "
        f"{summary.translated_units} translated / {summary.total_units} total"
    )
    print(f"  Batches:         {summary.total_batches}")
    print(f"  Provider:        {summary.provider_name} ({summary.model})")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.warnings:
        print("  Notes:")
        for message in summary.warnings:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.batch_limit is not None and args.batch_limit <= 0:
        parser.error("--batch-limit must be a positive number of characters.")

    try:
        settings = get_settings()
    except TranslationProviderConfigurationError as exc:
        print(exc)
        return 1
    provider_debug = bool(args.debug_provider or settings.WEBGLOSS_DEBUG_PROVIDER)
    settings_provider = SettingsProvider(
        settings=settings,
        provider=args.provider,
        batch_limit=args.batch_limit,
        debug=provider_debug,
    )

    if args.gui:
        from .gui import launch_gui

        return launch_gui(settings_provider=settings_provider, verbose=args.verbose)

    if args.set_api_key:
        try:
            reset_api_key(settings_provider.store, prompt_api_key)
        except WebglossError as exc:
            print(exc)
            return 1
        print("API Key saved. You can now use the translation commands.")
        return 0

    if args.configure is not None:
        exit_code, message = configure_model(settings_provider.store, args.configure)
        print(message)
        return exit_code

    if args.selection is not None:
        text = sys.stdin.read() if args.selection == "-" else args.selection
        exit_code, translated, message = execute_selection(
            text=text,
            provider=args.provider,
            provider_debug=provider_debug,
            settings_provider=settings_provider,
        )
        if message:
            print(message)
        if translated is not None:
            print(translated)
        return exit_code

    if args.input_file is None:
        parser.error("the following arguments are required: input_file")

    exit_code, summary, message = execute_translation(
        input_file=args.input_file,
        output_file=args.output,
        provider=args.provider,
        batch_limit=args.batch_limit,
        force_overwrite=args.force,
        verbose=args.verbose,
        provider_debug=provider_debug,
        settings_provider=settings_provider,
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
