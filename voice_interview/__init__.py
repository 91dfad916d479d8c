"""
Voice interview: a voice-driven mock coding interview session.

Coordinates speech capture, AI interviewer replies, spoken playback and a
countdown timer through a single session orchestrator.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.orchestrator import InterviewSessionOrchestrator
from .interview.models import InterviewProblem, SessionPhase, SessionSnapshot

__all__ = ["InterviewSessionOrchestrator", "InterviewProblem", "SessionPhase", "SessionSnapshot"]
