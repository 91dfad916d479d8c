"""
Interview prompt templates and generation.

This module contains all the prompt templates used throughout the interview system,
keeping them separate from the business logic for easier maintenance and editing.
"""

import re
from typing import Dict, List, Optional

from .schemas import ConversationContext
from .scheduler import Intent


class InterviewPrompts:
    """Collection of all interview-related prompts."""

    @staticmethod
    def interviewer_context(context: ConversationContext) -> str:
        """Shared preamble: role, problem and recent history."""
        history = context.history_text() or "(no conversation yet)"
        return f"""
You are a professional technical interviewer running a mock coding interview
about "{context.problem.title}".

Problem: {context.problem.title}
Description: {context.problem.description}
Language: {context.language}

Conversation so far:
{history}
        """.strip()

    @staticmethod
    def opening_prompt(context: ConversationContext) -> str:
        """Prompt for the scene-setting first question."""
        return f"""
{InterviewPrompts.interviewer_context(context)}

You are starting the interview. Greet the candidate, present the problem briefly
and ask one question about how they would approach it.
Keep it to 2-3 sentences.

Respond with ONLY what the interviewer says - no explanations, no quotes.
        """.strip()

    @staticmethod
    def probing_prompt(context: ConversationContext) -> str:
        """Prompt for general discussion rounds."""
        return f"""
{InterviewPrompts.interviewer_context(context)}

Interview guidelines:
1. Keep the questions about this specific problem
2. Guide the candidate towards an approach without giving it away
3. Stay friendly but professional
4. Keep every reply to 2-3 sentences

Candidate just said: {context.latest_input}

Respond with ONLY what the interviewer says.
        """.strip()

    @staticmethod
    def follow_up_prompt(context: ConversationContext) -> str:
        """Prompt for the first deepening technical question."""
        return f"""
{InterviewPrompts.interviewer_context(context)}

The interview now moves into in-depth discussion. Ask ONE targeted question that
probes the candidate's understanding: time and space complexity, edge cases,
or possible optimizations.

Candidate just said: {context.latest_input}

Respond with ONLY the question.
        """.strip()

    @staticmethod
    def coding_transition_prompt(context: ConversationContext) -> str:
        """Prompt that hands the interview over to implementation."""
        return f"""
{InterviewPrompts.interviewer_context(context)}

The discussion is complete. Tell the candidate to start implementing their
solution in {context.language} and that they can say when they are done or
ask for help if they get stuck. One or two sentences.

Candidate just said: {context.latest_input}
        """.strip()

    @staticmethod
    def coding_support_prompt(context: ConversationContext) -> str:
        """Prompt used while the candidate is coding and asked for something."""
        return f"""
{InterviewPrompts.interviewer_context(context)}

The candidate is implementing the solution right now. Answer briefly and do not
reveal the full solution. If they say they are done, ask them to submit and run
the tests.

Candidate just said: {context.latest_input}

Respond with ONLY what the interviewer says, at most 2 sentences.
        """.strip()

    @staticmethod
    def code_review_prompt(context: ConversationContext) -> str:
        """Prompt for the single question asked about a code submission."""
        rate = context.pass_rate
        rate_text = f"{round(rate * 100)}%" if rate is not None else "not run"
        return f"""
{InterviewPrompts.interviewer_context(context)}

The candidate just submitted their implementation.

Code:
{context.code or ""}

Test pass rate: {rate_text}

Ask ONE follow-up question about the submission, choosing from:
1. Time/space complexity analysis
2. Possible optimizations
3. Edge case handling
4. Alternative approaches

Be concise and professional: one question, at most 20 words.
        """.strip()

    @staticmethod
    def final_evaluation_prompt(context: ConversationContext) -> str:
        """Prompt requesting the structured final score."""
        rate = context.pass_rate
        rate_text = f"{round(rate * 100)}%" if rate is not None else "no tests run"
        return f"""
{InterviewPrompts.interviewer_context(context)}

Submitted code:
{context.code or "(none)"}

Test pass rate: {rate_text}

Evaluate the candidate's whole interview. Score every dimension from 0 to 10.
Return exactly this JSON:
{{
    "correctness": <0-10>,
    "efficiency": <0-10>,
    "quality": <0-10>,
    "communication": <0-10>,
    "problemSolving": <0-10>,
    "totalScore": <0-10, average of the above>,
    "grade": "<excellent|good|average|needs improvement>",
    "summary": "<2-3 sentences>",
    "strengths": ["<strength>", "..."],
    "improvements": ["<suggestion>", "..."],
    "recommendation": "<one sentence>"
}}

Respond ONLY with minified JSON (no code fences).
        """.strip()

    @staticmethod
    def reply_prompt(context: ConversationContext) -> str:
        """Pick the conversational prompt for the context's intent."""
        builders = {
            Intent.OPENING: InterviewPrompts.opening_prompt,
            Intent.PROBING: InterviewPrompts.probing_prompt,
            Intent.FOLLOW_UP: InterviewPrompts.follow_up_prompt,
            Intent.CODING_TRANSITION: InterviewPrompts.coding_transition_prompt,
            Intent.CODING_SUPPORT: InterviewPrompts.coding_support_prompt,
            Intent.CODE_REVIEW: InterviewPrompts.code_review_prompt,
            Intent.FINAL_EVALUATION: InterviewPrompts.final_evaluation_prompt,
        }
        return builders[context.intent](context)

    @staticmethod
    def fallback_messages() -> Dict[str, List[str]]:
        """Fallback messages for when LLM generation fails."""
        return {
            Intent.OPENING.value: [
                "Hello! Today we'll work on \"{title}\". Take a moment to read the problem, "
                "then tell me how you would approach it.",
            ],
            Intent.PROBING.value: [
                "Interesting. Could you walk me through your reasoning in a bit more detail?",
                "Okay. What would you do next?",
            ],
            Intent.FOLLOW_UP.value: [
                "What are the time and space complexities of your approach, and can they be improved?",
            ],
            Intent.CODING_TRANSITION.value: [
                "Great discussion. Please start implementing your solution now, "
                "and let me know when you're done or if you get stuck.",
            ],
            Intent.CODING_SUPPORT.value: [
                "Take your time. Focus on the core logic first and run the tests when you're ready.",
            ],
            Intent.CODE_REVIEW.value: [
                "Thanks for submitting. How would your solution handle edge cases such as empty input?",
            ],
            Intent.FINAL_EVALUATION.value: [
                "Thank you, that concludes our interview.",
            ],
        }

    @staticmethod
    def thinking_placeholder(intent: Optional[Intent] = None) -> str:
        """Text of the transient placeholder shown while a reply is pending."""
        if intent == Intent.CODE_REVIEW:
            return "🤔 Reviewing your code..."
        if intent == Intent.FINAL_EVALUATION:
            return "🤔 Preparing your evaluation..."
        return "🤔 Thinking..."


class PromptFormatter:
    """Helper class for formatting and cleaning model output."""

    SPEAKER_PREFIXES = [
        re.compile(r"^AI\s+Interviewer\s*[:：]\s*", re.IGNORECASE),
        re.compile(r"^Interviewer\s*[:：]\s*", re.IGNORECASE),
        re.compile(r"^AI\s*[:：]\s*"),
    ]

    @staticmethod
    def clean_reply(content: str) -> str:
        """Strip speaker prefixes and wrapping quotes the model sometimes adds."""
        if not content:
            return ""
        cleaned = content.strip()
        for prefix in PromptFormatter.SPEAKER_PREFIXES:
            cleaned = prefix.sub("", cleaned)
        if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "\"'":
            cleaned = cleaned[1:-1]
        return cleaned.strip()
