"""Tkinter-based user interface for webgloss."""

from __future__ import annotations

import asyncio
import pathlib
import threading
from typing import Optional

import tkinter as tk
from tkinter import filedialog, messagebox, simpledialog, ttk
from tkinter.scrolledtext import ScrolledText

from .collector import HtmlPage
from .configuration import SettingsProvider
from .errors import MissingApiKeyError, PreflightError, TranslationError, WebglossError
from .settings_store import MODEL_KEY, choose_model, ensure_api_key, reset_api_key
from .structures import AVAILABLE_MODELS, DEFAULT_MODEL, RunSummary
from .translator import PageTranslator

TITLE = "webgloss"


class TkTextSelection:
    """Selected range of a Tk text widget, replaced on the Tk thread."""

    def __init__(self, widget: tk.Text) -> None:
        self.widget = widget
        try:
            self.start = widget.index("sel.first")
            self.end = widget.index("sel.last")
        except tk.TclError:
            self.start = self.end = None
        self.text = widget.get(self.start, self.end) if self.start else ""

    def replace(self, new_text: str) -> None:
        self.widget.after(0, self._apply, new_text)

    def _apply(self, new_text: str) -> None:
        self.widget.delete(self.start, self.end)
        self.widget.insert(self.start, new_text)


class Overlay:
    """Modal window that blocks the editor while a translation runs."""

    def __init__(self, root: tk.Tk) -> None:
        self.root = root
        self.window: Optional[tk.Toplevel] = None
        self.text_var = tk.StringVar(value="")

    def show(self, text: str) -> None:
        self.text_var.set(text)
        if self.window is not None:
            return
        self.window = tk.Toplevel(self.root)
        self.window.title(TITLE)
        self.window.transient(self.root)
        self.window.resizable(False, False)
        self.window.protocol("WM_DELETE_WINDOW", lambda: None)
        ttk.Label(
            self.window,
            textvariable=self.text_var,
            font=("sans-serif", 18),
            padding=30,
        ).pack()
        self.window.grab_set()

    def hide(self) -> None:
        if self.window is not None:
            self.window.grab_release()
            self.window.destroy()
            self.window = None


class WebglossGUI:
    """Encapsulates the Tkinter UI and the translation commands."""

    def __init__(
        self,
        *,
        root: tk.Tk,
        settings_provider: SettingsProvider,
        verbose: bool = False,
    ) -> None:
        self.root = root
        self.settings_provider = settings_provider
        self.verbose = verbose
        self.translation_in_progress = False
        self.overlay = Overlay(root)
        self.settings_panel: Optional[tk.Toplevel] = None

        self.status_var = tk.StringVar(
            value="Paste text and use Translate selection, or open a page to translate."
        )
        self._build_ui()

    def _build_ui(self) -> None:
        self.root.title("webgloss translator")
        self.root.geometry("720x520")

        menubar = tk.Menu(self.root)
        commands = tk.Menu(menubar, tearoff=False)
        commands.add_command(label="Configure Translator", command=self.toggle_settings_panel)
        commands.add_command(label="Translate Page to English…", command=self.translate_page)
        commands.add_command(label="Translate Selected Text", command=self.translate_selection)
        commands.add_separator()
        commands.add_command(label="Set Gemini API Key", command=self.set_api_key)
        menubar.add_cascade(label="Translator", menu=commands)
        self.root.config(menu=menubar)

        main_frame = ttk.Frame(self.root, padding=10)
        main_frame.pack(fill="both", expand=True)
        self.editor = ScrolledText(main_frame, wrap="word", undo=True)
        self.editor.pack(fill="both", expand=True)
        ttk.Label(main_frame, textvariable=self.status_var, foreground="#555").pack(
            anchor="w", pady=(8, 0)
        )

    # --- Commands -------------------------------------------------------

    def toggle_settings_panel(self) -> None:
        """Show or hide the model selection panel."""

        if self.settings_panel is not None:
            self._close_settings_panel()
            return

        panel = tk.Toplevel(self.root)
        panel.title("Translator Settings")
        panel.transient(self.root)
        panel.protocol("WM_DELETE_WINDOW", self._close_settings_panel)
        frame = ttk.Frame(panel, padding=15)
        frame.pack(fill="both", expand=True)

        ttk.Label(frame, text="Translation Model:").pack(anchor="w", pady=(0, 5))
        model_var = tk.StringVar(
            value=self.settings_provider.store.get(MODEL_KEY, DEFAULT_MODEL)
        )
        select = ttk.Combobox(
            frame,
            textvariable=model_var,
            values=list(AVAILABLE_MODELS),
            state="readonly",
            width=30,
        )
        select.pack(fill="x")
        select.bind(
            "<<ComboboxSelected>>",
            lambda _event: self._save_model(model_var.get()),
        )
        ttk.Button(frame, text="Close", command=self._close_settings_panel).pack(
            fill="x", pady=(15, 0)
        )
        self.settings_panel = panel

    def _close_settings_panel(self) -> None:
        if self.settings_panel is not None:
            self.settings_panel.destroy()
            self.settings_panel = None

    def _save_model(self, model: str) -> None:
        try:
            chosen = choose_model(self.settings_provider.store, model)
        except (ValueError, WebglossError) as exc:
            messagebox.showerror(TITLE, str(exc))
            return
        self.status_var.set(f"Translation model saved: {chosen}")

    def set_api_key(self) -> None:
        """Clear the stored key, then ask for a new one."""

        try:
            reset_api_key(self.settings_provider.store, self._prompt_api_key)
        except MissingApiKeyError as exc:
            messagebox.showwarning(TITLE, str(exc))
            return
        except WebglossError as exc:
            messagebox.showerror(TITLE, str(exc))
            return
        messagebox.showinfo(TITLE, "API Key saved. You can now use the translation commands.")

    def translate_page(self) -> None:
        """Pick an HTML page, translate it, and save the result."""

        if self.translation_in_progress or not self._ensure_api_key():
            return

        source = filedialog.askopenfilename(
            title="Select a page",
            filetypes=[("HTML pages", "*.html *.htm"), ("All files", "*.*")],
        )
        if not source:
            return
        source_path = pathlib.Path(source)
        destination = filedialog.asksaveasfilename(
            title="Save translated page as",
            initialfile=f"{source_path.stem}_en{source_path.suffix or '.html'}",
            filetypes=[("HTML pages", "*.html *.htm"), ("All files", "*.*")],
            defaultextension=".html",
        )
        if not destination:
            return

        self.translation_in_progress = True
        self.overlay.show("Translating... (0%)")
        threading.Thread(
            target=self._execute_page,
            args=(source_path, pathlib.Path(destination)),
            daemon=True,
        ).start()

    def translate_selection(self) -> None:
        """Translate the editor's selected text in place."""

        if self.translation_in_progress:
            return
        selection = TkTextSelection(self.editor)
        if not selection.text.strip():
            messagebox.showwarning(TITLE, "Please select some text to translate first.")
            return
        if not self._ensure_api_key():
            return

        self.translation_in_progress = True
        self.overlay.show("Translating selection...")
        threading.Thread(
            target=self._execute_selection,
            args=(selection,),
            daemon=True,
        ).start()

    # --- Worker threads -------------------------------------------------

    def _execute_page(self, source: pathlib.Path, destination: pathlib.Path) -> None:
        translator = PageTranslator(
            settings_provider=self.settings_provider,
            progress=self._on_progress,
            verbose=self.verbose,
        )
        try:
            page = HtmlPage.from_file(source)
            summary = asyncio.run(translator.run(page.root))
            page.save(destination)
        except Exception as exc:
            self.root.after(0, self._handle_failure, exc)
            return
        summary.source = str(source)
        summary.output = str(destination)
        self.root.after(0, self._handle_page_result, summary)

    def _execute_selection(self, selection: TkTextSelection) -> None:
        translator = PageTranslator(settings_provider=self.settings_provider)
        try:
            asyncio.run(translator.translate_selection(selection))
        except Exception as exc:
            self.root.after(0, self._handle_failure, exc)
            return
        self.root.after(0, self._handle_selection_result)

    def _on_progress(self, fraction: float) -> None:
        self.root.after(
            0, self.overlay.show, f"Translating... ({round(fraction * 100)}%)"
        )

    # --- Result handlers (Tk thread) -------------------------------------

    def _handle_page_result(self, summary: RunSummary) -> None:
        self._finish()
        message = (
            f"Translated {summary.translated_units} of {summary.total_units} text nodes.\n"
            f"The translated page is available at:\n{summary.output}"
        )
        if summary.warnings:
            message += "\n\nNotes:\n" + "\n".join(summary.warnings)
        self.status_var.set("Translation complete.")
        messagebox.showinfo(TITLE, message)

    def _handle_selection_result(self) -> None:
        self._finish()
        self.status_var.set("Selection translated.")

    def _handle_failure(self, exc: Exception) -> None:
        self._finish()
        self.status_var.set("Translation ended with issues.")
        if isinstance(exc, PreflightError):
            messagebox.showwarning(TITLE, str(exc))
        elif isinstance(exc, TranslationError):
            messagebox.showerror(TITLE, f"An error occurred during translation: {exc}")
        else:
            messagebox.showerror(TITLE, str(exc))

    def _finish(self) -> None:
        self.translation_in_progress = False
        self.overlay.hide()

    # --- Helpers --------------------------------------------------------

    def _prompt_api_key(self) -> Optional[str]:
        return simpledialog.askstring(
            TITLE,
            "Please enter your Google Gemini API Key:",
            show="*",
            parent=self.root,
        )

    def _ensure_api_key(self) -> bool:
        """Ask for a key when the Gemini provider has none; False cancels."""

        if self.settings_provider.provider_name != "gemini":
            return True
        if self.settings_provider.current().api_key:
            return True
        try:
            ensure_api_key(self.settings_provider.store, self._prompt_api_key)
        except MissingApiKeyError as exc:
            messagebox.showwarning(TITLE, str(exc))
            return False
        except WebglossError as exc:
            messagebox.showerror(TITLE, str(exc))
            return False
        messagebox.showinfo(TITLE, "API Key saved. You can now use the translation commands.")
        return True


def launch_gui(*, settings_provider: SettingsProvider, verbose: bool = False) -> int:
    """Entry point called from the CLI when --gui is provided."""

    root = tk.Tk()
    WebglossGUI(root=root, settings_provider=settings_provider, verbose=verbose)
    root.mainloop()
    return 0
