# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Main voicescroll application.
Runs a voice-tracked prompting session live from the microphone, or replays a
recorded session.
"""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

from . import debug_log
from .config import (
    DEFAULT_CONFIG,
    Config,
    get_config_path,
    get_transcription_settings,
    load_config,
    save_config,
    update_config_display,
)
from .engine import PrompterEngine
from .providers import PROVIDER_REGISTRY, VoskProvider, create_provider, get_all_available_models
from .replay import ReplaySession, load_replay, run_replay
from .scroll import ScrollState

logger = logging.getLogger(__name__)


class HighlightPrinter:
    """Prints the highlighted word and its neighbours whenever it changes."""

    def __init__(self, engine: PrompterEngine, context_words: int = 4) -> None:
        self.engine = engine
        self.context_words = context_words
        self._last_index: int | None = None

    def __call__(self, state: ScrollState) -> None:
        index: int | None = state.display_highlight_index
        if index is None or index == self._last_index:
            return
        self._last_index = index
        words = self.engine.tracker.script.raw_words
        if not words:
            return
        start: int = max(0, index - self.context_words)
        end: int = min(len(words), index + self.context_words + 1)
        before: str = " ".join(words[start:index])
        after: str = " ".join(words[index + 1:end])
        print(f"[{index:5d}] {before} >{words[min(index, len(words) - 1)]}< {after}".strip())


class VoiceScrollApp:
    """Live prompting session: microphone → recognizer → engine."""

    def __init__(self, config: Config, script_text: str, is_markdown: bool = False,
                 provider_name: str = "vosk", model_id: str | None = None,
                 model_path: str | None = None) -> None:
        self.config = config
        self.script_text = script_text
        self.is_markdown = is_markdown
        self.provider_name = provider_name
        self.model_id = model_id
        self.model_path = model_path
        self.engine: PrompterEngine = PrompterEngine.from_config(config)
        self.engine.on_frame = HighlightPrinter(self.engine)
        self.running: bool = False

    async def start(self) -> None:
        """Load the model, start listening and run until stopped."""
        self.engine.prepare_script(self.script_text, is_markdown=self.is_markdown)

        print(f"Loading transcription model: {self.provider_name} / {self.model_id}")
        loop = asyncio.get_running_loop()
        kwargs: dict[str, object] = {}
        if self.provider_name == "vosk":
            kwargs = {
                "device": self.config.get("audio_device"),
                "chunk_ms": self.config.get("chunk_ms", DEFAULT_CONFIG["chunk_ms"]),
                "model_path": self.model_path,
            }
        # Model loading blocks, keep the loop responsive
        provider = await loop.run_in_executor(
            None, lambda: create_provider(self.provider_name, self.model_id, **kwargs))

        self.running = True
        await self.engine.start(provider)
        print("\n✓ voicescroll ready! Start reading. Press Ctrl+C to stop\n")
        await self.engine.wait_until_stream_ends()

    async def stop(self) -> None:
        self.running = False
        await self.engine.stop()
        print("voicescroll stopped.")


def run_deterministic_replay(config: Config, session: ReplaySession) -> int:
    """Replay against a synthetic clock and print each highlight change."""
    engine: PrompterEngine = PrompterEngine.from_config(config, manual_clock=True)
    printer = HighlightPrinter(engine)
    engine.on_frame = printer
    records = run_replay(engine, session)
    if records:
        last = records[-1]
        print(
            f"\nReplayed {len(records)} frames: confirmed word {last.confirmed_index}, "
            f"offset {last.display_offset:.1f}")
    return 0


def _read_script(path: str) -> tuple[str, bool]:
    script_path = Path(path)
    text: str = script_path.read_text(encoding="utf-8")
    return text, script_path.suffix.lower() in (".md", ".markdown")


def _run_app(app: VoiceScrollApp) -> None:
    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def shutdown(sig: int, frame: object) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM) gracefully."""
        print("\nReceived shutdown signal...")
        app.running = False
        loop.call_soon_threadsafe(app.engine.request_stop)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        app.running = False
    finally:
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
        # Cancel any remaining tasks
        pending: set[asyncio.Task[object]] = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    # Load config first to use as defaults
    config: Config = load_config()
    transcription_config = get_transcription_settings(config)

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="voicescroll - teleprompter scrolling driven by speech recognition"
    )

    parser.add_argument(
        "--script", "-s",
        help="Script file to prompt from (.md files are rendered as Markdown)"
    )

    parser.add_argument(
        "--markdown",
        action="store_true",
        help="Treat the script as Markdown regardless of extension"
    )

    parser.add_argument(
        "--replay", "-r",
        help="Replay a recorded session file deterministically and exit"
    )

    parser.add_argument(
        "--realtime",
        action="store_true",
        help="With --replay, stream the recording in real time instead"
    )

    parser.add_argument(
        "--provider",
        default=transcription_config.get("provider", "vosk"),
        choices=sorted(PROVIDER_REGISTRY),
        help="Transcription provider (default: from config or 'vosk')"
    )

    parser.add_argument(
        "--model-id",
        default=transcription_config.get("model_id"),
        help="Model identifier (e.g., 'vosk-en-us-small')"
    )

    parser.add_argument(
        "--model-path",
        default=transcription_config.get("model_path"),
        help="Path to custom model directory (optional)"
    )

    parser.add_argument(
        "--device", "-d",
        type=int,
        default=config.get("audio_device"),
        help="Audio input device index"
    )

    parser.add_argument(
        "--chunk-ms",
        type=int,
        default=config.get("chunk_ms", 100),
        help="Audio chunk size in milliseconds (default: from config or 100)"
    )

    parser.add_argument(
        "--wpm",
        type=float,
        default=None,
        help="Constant scroll speed in words per minute"
    )

    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List available audio input devices and exit"
    )

    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List all available transcription models and exit"
    )

    parser.add_argument(
        "--download-model",
        action="store_true",
        help="Download the specified model and exit"
    )

    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )

    parser.add_argument(
        "--debug-log",
        action="store_true",
        help="Write tracking decisions to ./logs/tracking.log"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging on the console"
    )

    args: argparse.Namespace = parser.parse_args(argv)

    # Configure logging - minimal console output
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    # Handle special commands
    if args.list_devices:
        # PortAudio is loaded on import; only device listing needs it here
        from .audio import list_devices  # pylint: disable=import-outside-toplevel
        print("\nAvailable audio input devices:")
        print("-" * 50)
        for index, name, channels in list_devices():
            print(f"  [{index}] {name} ({channels} ch)")
        return 0

    if args.list_models:
        print("\nAvailable transcription models:")
        print("-" * 80)
        for model in sorted(get_all_available_models(), key=lambda m: m.name):
            print(f"  {model.id}")
            print(f"    Name: {model.name}")
            print(f"    Size: {model.size_mb}MB")
            if model.description:
                print(f"    Description: {model.description}")
            print()
        return 0

    if args.download_model:
        model_id: str = args.model_id or DEFAULT_CONFIG["transcription"]["model_id"]
        print(f"Downloading model: {model_id}")

        def progress(stage: str, percent: int) -> None:
            print(f"\r  {stage}: {percent}%", end="", flush=True)

        try:
            path = VoskProvider.download_model(model_id, progress_callback=progress)
        except ValueError as e:
            print(f"\nError: {e}", file=sys.stderr)
            return 1
        print(f"\nModel ready at {path}")
        return 0

    if args.save_config:
        config["transcription"]["provider"] = args.provider
        if args.model_id:
            config["transcription"]["model_id"] = args.model_id
        if args.model_path:
            config["transcription"]["model_path"] = args.model_path
        config["audio_device"] = args.device
        config["chunk_ms"] = args.chunk_ms
        if args.wpm is not None:
            config = update_config_display(config, {"scroll_speed": args.wpm})

        if save_config(config):
            print(f"Configuration saved to {get_config_path()}")
            return 0
        return 1

    # Enable debug logging if requested
    if args.debug_log:
        debug_log.enable()
        print("Debug logging enabled (logs will be saved to ./logs/)")

    config["audio_device"] = args.device
    config["chunk_ms"] = args.chunk_ms
    if args.wpm is not None:
        config = update_config_display(config, {"scroll_speed": args.wpm})

    script_text: str | None = None
    is_markdown: bool = args.markdown
    if args.script:
        try:
            script_text, detected_markdown = _read_script(args.script)
        except OSError as e:
            print(f"Error: cannot read script {args.script}: {e}", file=sys.stderr)
            return 1
        is_markdown = is_markdown or detected_markdown

    if args.replay:
        try:
            session: ReplaySession = load_replay(args.replay)
        except (OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        if script_text is not None:
            session.script = script_text
            session.is_markdown = is_markdown
        if session.script is None:
            print("Error: the replay has no script; pass --script", file=sys.stderr)
            return 1
        if not args.realtime:
            return run_deterministic_replay(config, session)
        app = VoiceScrollApp(config, session.script, session.is_markdown,
                             provider_name="replay", model_id=args.replay)
        _run_app(app)
        return 0

    if script_text is None:
        parser.error("--script is required for live prompting")

    app = VoiceScrollApp(
        config, script_text, is_markdown,
        provider_name=args.provider,
        model_id=args.model_id or DEFAULT_CONFIG["transcription"]["model_id"],
        model_path=args.model_path,
    )
    try:
        _run_app(app)
    except RuntimeError as e:
        # Missing model
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
