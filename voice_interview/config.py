"""
Interview Session Configuration
===============================

This file contains ALL configuration for the voice interview system.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional, Tuple


# =============================================================================
# USER SETTINGS - Edit these to customize the interview
# =============================================================================

# REQUIRED: Set your Google Cloud project
GOOGLE_CLOUD_PROJECT = "your-project-id"  # Change this!
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Interview settings
INTERVIEW_DURATION_SECONDS = 1800
PROBLEM_TITLE = "Two Sum"
PROBLEM_DESCRIPTION = (
    "Given an array of integers and a target, return the indices of the two "
    "numbers that add up to the target."
)
CODE_LANGUAGE = "python"
WORKDIR = "./_interviews"

# Speech settings
ENABLE_TTS = True
TTS_VOICE = "en-US-Neural2-F"
LANGUAGE_CODE = "en-US"

# Logging
LOG_FILE = "./_interviews/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# SESSION TIMINGS
# =============================================================================

@dataclass
class SessionTimings:
    """Every delay the session orchestrator waits on, in seconds."""
    # Re-check window after a final transcript arrives
    transcript_settle: float = 0.1
    # Guarded capture restarts
    restart_after_error: float = 1.0
    restart_after_end: float = 0.5
    # Grace period after stopping capture before audio starts
    capture_stop_grace: float = 0.2
    # Delay before re-capturing once playback finished
    resume_after_playback: float = 0.5
    health_check_interval: float = 10.0
    tick: float = 1.0
    # Pause between presenting the final evaluation and completing
    completion_delay: float = 2.0

    @classmethod
    def immediate(cls) -> 'SessionTimings':
        """Near-zero timings, used by tests and the text-only mode."""
        return cls(
            transcript_settle=0.0,
            restart_after_error=0.01,
            restart_after_end=0.01,
            capture_stop_grace=0.0,
            resume_after_playback=0.01,
            health_check_interval=0.05,
            tick=0.01,
            completion_delay=0.0,
        )


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Phase thresholds
FOLLOW_UP_ROUND = 4
CODING_ROUND = 6
FINAL_EVALUATION_FOLLOW_UP_ROUNDS = 4
HISTORY_UTTERANCES = 6

# Transcript filtering
MIN_TRANSCRIPT_LENGTH = 3
CODING_SHORT_UTTERANCE = 10
CODING_ALLOW_LIST: Tuple[str, ...] = (
    "done", "finished", "complete", "how", "correct", "right", "problem",
    "error", "bug", "help", "stuck", "confused", "don't understand", "hint",
)

# Audio capture
SAMPLE_RATE_CAPTURE = 48000
SAMPLE_RATE_TARGET = 16000
CHANNELS = 1
FRAME_MS = 30
TARGET_RMS = 0.06
MAX_LISTEN_SECONDS = 60.0

# Voice Activity Detection
VAD_SILENCE_THRESHOLD = 0.01
VAD_SILENCE_DURATION = 1.2
VAD_MIN_SPEECH_DURATION = 0.5

# TTS technical
TTS_SAMPLE_RATE = 16000
TTS_PITCH = 55
TTS_AMPLITUDE = 120
TTS_RATE_WPM = 180

# LLM
VERTEX_LOCATION = "us-central1"
MODEL_NAME = "gemini-2.5-flash-lite"
LLM_TIMEOUT = 60
MAX_OUTPUT_TOKENS = 512
REPLY_TEMPERATURE = 0.4


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    google_cloud_project: str
    google_application_credentials: Optional[str] = None
    duration_seconds: int = INTERVIEW_DURATION_SECONDS
    problem_title: str = PROBLEM_TITLE
    problem_description: str = PROBLEM_DESCRIPTION
    code_language: str = CODE_LANGUAGE
    workdir: str = WORKDIR
    enable_tts: bool = ENABLE_TTS
    tts_voice: str = TTS_VOICE
    language_code: str = LANGUAGE_CODE
    vertex_location: str = VERTEX_LOCATION
    model_name: str = MODEL_NAME
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    def get_timings(self) -> SessionTimings:
        """Get session timings."""
        return SessionTimings()


def get_config() -> Config:
    """Load configuration."""
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    credentials = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS

    if project == "your-project-id":
        raise ValueError("Please set GOOGLE_CLOUD_PROJECT in config.py or as environment variable")

    duration = os.getenv("INTERVIEW_DURATION_SECONDS")
    try:
        duration_seconds = int(duration) if duration else INTERVIEW_DURATION_SECONDS
    except ValueError:
        raise ValueError(f"INTERVIEW_DURATION_SECONDS must be an integer, got {duration!r}")
    if duration_seconds <= 0:
        raise ValueError("INTERVIEW_DURATION_SECONDS must be positive")

    return Config(
        google_cloud_project=project,
        google_application_credentials=credentials,
        duration_seconds=duration_seconds,
        language_code=os.getenv("INTERVIEW_LANGUAGE_CODE") or LANGUAGE_CODE,
        log_level=os.getenv("INTERVIEW_LOG_LEVEL") or LOG_LEVEL,
    )
