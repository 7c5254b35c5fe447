"""Prompt construction for the answer-analysis stage.

The remote scoring model receives a single text prompt embedding the question
details, the candidate transcript with its duration and transcription
confidence, and the exact JSON shape it must return.
"""

from __future__ import annotations

from app.domain.models import Question

_RESPONSE_SHAPE = """{
  "overallScore": <number 0-100>,
  "feedback": {
    "strengths": [<array of 3-5 specific strengths>],
    "weaknesses": [<array of 2-4 areas for improvement>],
    "suggestions": [<array of 3-5 actionable recommendations>],
    "detailedFeedback": "<2-3 sentence comprehensive feedback>"
  },
  "scores": {
    "clarity": <number 0-100>,
    "relevance": <number 0-100>,
    "structure": <number 0-100>,
    "completeness": <number 0-100>,
    "confidence": <number 0-100>
  },
  "keyPoints": {
    "covered": [<key points addressed>],
    "missed": [<important points not mentioned>]
  },
  "timeManagement": {
    "efficiency": "<excellent|good|average|poor>",
    "pacing": "<brief description of timing>"
  }
}"""


def build_analysis_prompt(
    question: Question,
    transcript: str,
    duration_seconds: float,
    transcription_confidence: float,
) -> str:
    """Embed the question details and the candidate's transcript in one prompt."""

    skills = ", ".join(question.skills_evaluated) or "general communication"
    confidence_pct = round(transcription_confidence * 100)
    duration = round(duration_seconds, 1)
    return (
        "You are an expert interview coach analyzing a candidate's response. "
        "Provide comprehensive feedback.\n\n"
        "QUESTION DETAILS:\n"
        f'- Question: "{question.text}"\n'
        f"- Type: {question.type.value}\n"
        f"- Difficulty: {question.difficulty}\n"
        f"- Skills Evaluated: {skills}\n"
        f"- Expected Duration: {question.expected_duration_seconds} seconds\n"
        f"- Category: {question.category}\n\n"
        "CANDIDATE'S RESPONSE:\n"
        f'- Transcript: "{transcript}"\n'
        f"- Actual Duration: {duration} seconds\n"
        f"- Transcription Confidence: {confidence_pct}%\n\n"
        "ANALYSIS INSTRUCTIONS:\n"
        "Provide your analysis in valid JSON format only. No markdown, no code blocks, just pure JSON:\n\n"
        f"{_RESPONSE_SHAPE}\n\n"
        "SCORING CRITERIA:\n"
        "- Clarity: How clear and articulate is the response\n"
        "- Relevance: How well the answer addresses the question\n"
        "- Structure: Logical flow and organization\n"
        "- Completeness: Thoroughness of the response\n"
        "- Confidence: Perceived conviction and assertiveness\n\n"
        "Return ONLY the JSON object, no additional text."
    )


__all__ = ["build_analysis_prompt"]
