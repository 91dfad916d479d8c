#!/usr/bin/env python3
"""
Main entry point for the voice interview system.
Allows running the package with: python -m voice_interview
"""
import asyncio
import os
import sys

from .config import get_config, Config
from . import InterviewProblem, InterviewSessionOrchestrator
from .interview import EventType, InterviewEvent, Speaker, VertexReplyService
from .utils import setup_logging

USAGE = """Usage: python -m voice_interview [options]

  --duration=SECONDS   Interview length (default from config)
  --problem="TITLE"    Problem title to discuss
  --language=NAME      Language of the code submission
  --text               Type answers instead of speaking

While the interview runs, type:
  pause               Pause or resume the interview
  end                 End the interview now
  submit <file>       Submit a code file for review
"""


def parse_args(argv, config: Config) -> bool:
    """Apply command-line flags to ``config``. Returns True for text mode."""
    text_mode = not config.enable_tts
    for arg in argv:
        if arg in ["-h", "--help"]:
            print(USAGE)
            sys.exit(0)
        elif arg in ["--text", "--no-tts"]:
            text_mode = True
        elif arg.startswith("--duration="):
            try:
                config.duration_seconds = int(arg.split("=", 1)[1])
            except ValueError:
                print("❌ Invalid duration value. Use --duration=SECONDS")
                sys.exit(1)
            if config.duration_seconds <= 0:
                print("❌ Duration must be positive")
                sys.exit(1)
        elif arg.startswith("--problem="):
            config.problem_title = arg.split("=", 1)[1].strip() or config.problem_title
        elif arg.startswith("--language="):
            config.code_language = arg.split("=", 1)[1].strip() or config.code_language
        else:
            print(f"❌ Unknown option: {arg}")
            print(USAGE)
            sys.exit(1)
    return text_mode


def build_orchestrator(config: Config, text_mode: bool):
    """Wire the real adapters. Returns (orchestrator, console device or None)."""
    from .infrastructure import VertexRestClient, JsonSessionRecorder
    from .infrastructure.console import ConsoleCaptureDevice, ConsoleSpeaker

    llm = VertexRestClient(
        project=config.google_cloud_project,
        location=config.vertex_location,
        model=config.model_name,
        credentials_json=config.google_application_credentials,
    )
    recorder = JsonSessionRecorder(os.path.join(config.workdir, "records"))
    problem = InterviewProblem(config.problem_title, config.problem_description)

    if text_mode:
        console = ConsoleCaptureDevice()
        orchestrator = InterviewSessionOrchestrator(
            capture_device=console,
            reply_service=VertexReplyService(llm),
            local_synthesizer=ConsoleSpeaker(),
            recorder=recorder,
            problem=problem,
            duration=config.duration_seconds,
            language=config.code_language,
            voice=None,
            timings=config.get_timings(),
        )
        return orchestrator, console

    from .infrastructure import GoogleSpeechSynthesizer, EspeakSynthesizer, SubprocessAudioOutput
    from .infrastructure.audio.processing import MicrophoneRecognizer

    orchestrator = InterviewSessionOrchestrator(
        capture_device=MicrophoneRecognizer(language_code=config.language_code),
        reply_service=VertexReplyService(llm),
        synthesizer=GoogleSpeechSynthesizer(language_code=config.language_code),
        audio_output=SubprocessAudioOutput(),
        local_synthesizer=EspeakSynthesizer(),
        recorder=recorder,
        problem=problem,
        duration=config.duration_seconds,
        language=config.code_language,
        voice=config.tts_voice,
        timings=config.get_timings(),
    )
    return orchestrator, None


def print_voice_transcript(event: InterviewEvent) -> None:
    """Echo the conversation to the terminal in voice mode."""
    data = event.data
    if data["speaker"] == Speaker.CANDIDATE.value:
        print(f"🎤 You: {data['content']}")
    elif "transient" not in data["tags"]:
        print(f"\n🤖 Interviewer: {data['content']}\n")


async def handle_command(line: str, orchestrator: InterviewSessionOrchestrator, console) -> None:
    command, _, argument = line.strip().partition(" ")
    command = command.lower()

    if command == "pause":
        await orchestrator.pause_resume()
        print(f"⏯️  Interview is now {orchestrator.phase.value}")
    elif command == "end":
        await orchestrator.end_interview()
    elif command == "submit":
        path = argument.strip()
        try:
            with open(path, "r") as f:
                code = f.read()
        except OSError as e:
            print(f"❌ Could not read {path}: {e}")
            return
        print(f"📤 Submitted {path} ({len(code)} characters)")
        await orchestrator.submit_code_turn(code)
    elif console is not None:
        if not console.submit(line.strip()):
            print("⏳ Please wait for the interviewer to finish")
    else:
        print("❓ Commands: pause, end, submit <file>")


async def run_session(orchestrator: InterviewSessionOrchestrator, console) -> None:
    from .infrastructure.console import StdinReader

    if console is None:
        orchestrator.event_bus.subscribe(EventType.UTTERANCE_APPENDED, print_voice_transcript)

    reader = StdinReader()
    reader.start()

    if not await orchestrator.start_interview():
        print("❌ Interview could not be started. Check the log file for details.")
        return

    completed = asyncio.create_task(orchestrator.wait_until_completed())
    while not completed.done():
        next_line = asyncio.create_task(reader.readline())
        done, _ = await asyncio.wait({completed, next_line}, return_when=asyncio.FIRST_COMPLETED)
        if next_line not in done:
            next_line.cancel()
            break
        line = next_line.result()
        if line is None:
            await orchestrator.end_interview()
            break
        if line.strip():
            await handle_command(line, orchestrator, console)

    await completed


def print_results(orchestrator: InterviewSessionOrchestrator) -> None:
    snapshot = orchestrator.snapshot()
    minutes, seconds = divmod(snapshot.duration_used, 60)

    print("\n" + "=" * 50)
    print("🏁 INTERVIEW COMPLETE")
    print("=" * 50)
    print(f"📋 Problem: {snapshot.problem_title}")
    print(f"⏱️  Time used: {minutes}m {seconds:02d}s")
    print(f"💬 Rounds: {orchestrator.view.round_count}")
    print(f"🔚 Reason: {snapshot.completion_reason}")

    evaluation = snapshot.evaluation
    if evaluation is not None:
        print(f"\n⭐ Overall score: {evaluation.total_score:.1f}/10 ({evaluation.grade})")
        print(f"   Correctness {evaluation.correctness:g} | Efficiency {evaluation.efficiency:g} | "
              f"Quality {evaluation.quality:g} | Communication {evaluation.communication:g} | "
              f"Problem solving {evaluation.problem_solving:g}")
        for strength in evaluation.strengths:
            print(f"   ✅ {strength}")
        for improvement in evaluation.improvements:
            print(f"   📈 {improvement}")
    else:
        print("\n📝 No evaluation was produced for this session")

    metrics = orchestrator.get_metrics()
    if metrics.get("degraded_replies"):
        print(f"\n⚠️  {metrics['degraded_replies']} replies used fallback messages")


def main():
    """Command-line interface for the interview session."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    text_mode = parse_args(sys.argv[1:], config)
    log_path = setup_logging(config.log_file, config.log_level)

    if text_mode:
        print("📝 Text Mode: type your answers, the interviewer's replies are printed")
    else:
        print("🔊 Voice Mode: speak your answers, the interviewer talks back")
        print("   (Use --text to type instead)")
    print(f"📋 Problem: {config.problem_title} ({config.code_language})")
    print(f"⏱️  Duration: {config.duration_seconds // 60} minutes")
    print("⌨️  Commands: pause, end, submit <file>")
    print(f"📄 Log file: {log_path}\n")

    orchestrator, console = build_orchestrator(config, text_mode)

    try:
        asyncio.run(run_session(orchestrator, console))
    except KeyboardInterrupt:
        print("\n👋 Interview interrupted")
        return

    print_results(orchestrator)


if __name__ == "__main__":
    main()
